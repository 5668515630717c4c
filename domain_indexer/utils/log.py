"""
Default logging interface
"""

import logging


_LOG_FORMATTER = logging.Formatter(
    "[%(asctime)s][%(threadName)s][%(levelname)s][%(name)s]:%(message)s"
)


def get_default_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Get default logger for a given name.

    :param name: The logger name.
    :param level: The initial log level.
    :return: The logger object.
    """

    # Set Null log handler to avoid "No handlers could be found for logger XXX".
    # The indexer may also be embedded as a library by a host process
    # that configures logging on its own.
    if len(logging.getLogger().handlers) == 0:
        logging.getLogger().addHandler(logging.NullHandler())

    log = logging.getLogger(name)
    log.setLevel(level)

    # Add a handler for the log if one isn't present.
    if len(log.handlers) == 0:
        handler = logging.StreamHandler()
        handler.setFormatter(_LOG_FORMATTER)
        log.addHandler(handler)
        log.propagate = False

    return log


def flush_logging():
    """
    Flush all handlers of the loggers created so far.
    Called on controlled shutdown so that the last error is not lost.
    """
    loggers = [logging.getLogger()] + [
        logger
        for logger in logging.Logger.manager.loggerDict.values()
        if isinstance(logger, logging.Logger)
    ]
    for logger in loggers:
        for handler in logger.handlers:
            handler.flush()
