"""
Errors raised by the indexing pipeline.
"""

from typing import Optional


class IndexerError(Exception):
    """Base exception for indexer errors."""


class LogDecodeError(IndexerError):
    """A log did not decode against the interface of its event type."""


class EventApplicationError(IndexerError):
    """An event's arguments are invalid and the event cannot be applied."""


class NameResolutionError(IndexerError):
    """The name resolver has no plaintext for a revealed hash."""


class TransactionError(IndexerError):
    """The store transaction scope was misused."""


class UnrecoverableIndexerError(IndexerError):
    """
    A failure that stops the indexer.
    The enclosing transaction, if any, has already been rolled back
    when this error is raised, and no further writes may be made.
    """

    def __init__(self, phase: str, message: str, context: Optional[dict] = None):
        self.phase = phase
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self):
        error_msg = f"[{self.phase}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            error_msg = f"{error_msg} ({context_str})"
        return error_msg
