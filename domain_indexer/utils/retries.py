import logging
import time
from typing import Tuple, Type


def with_retries(
    operation_to_retry,
    log: logging.Logger,
    max_attempts=5,
    delay=2,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
):
    """
    A function to retry an operation with exponential backoff on transient errors.
    Only used while establishing connections.
    The indexing loop itself never retries; it halts on the first failure.

    :param operation_to_retry: The function/operation to retry
    :param log: The logger used to report attempts and failures.
    :param max_attempts: Maximum number of retry attempts
    :param delay: Initial delay between retries (exponentially increased)
    :param retry_on: Exception types considered transient.
        Other exceptions propagate immediately.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            log.info("Attempt: %s", attempt)
            return operation_to_retry()
        except retry_on as e:
            log.error(e)
            if attempt == max_attempts:
                raise  # re-raise on final failure
            time.sleep(delay * 2 ** (attempt - 1))
