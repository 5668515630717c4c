"""domain_indexer

Replays domain registry contract events into a queryable name registry.
"""

from domain_indexer.core.config import IndexerConfig
from domain_indexer.core.errors import (
    EventApplicationError,
    IndexerError,
    LogDecodeError,
    NameResolutionError,
    TransactionError,
    UnrecoverableIndexerError,
)
from domain_indexer.core.event import (
    DomainRegisterArgs,
    DomainTransferArgs,
    Event,
    EventType,
    RainbowTableRevealArgs,
)
from domain_indexer.core.indexer import Indexer
from domain_indexer.core.log_fetcher import LogFetcher, Web3LogFetcher
from domain_indexer.core.name_resolver import (
    NameResolver,
    RainbowTableNameResolver,
    StaticNameResolver,
)
from domain_indexer.core.store import SQLEventStore
from domain_indexer.utils.log import get_default_logger

__all__ = [
    "IndexerConfig",
    "Indexer",
    # Events
    "Event",
    "EventType",
    "DomainRegisterArgs",
    "DomainTransferArgs",
    "RainbowTableRevealArgs",
    # Collaborators
    "SQLEventStore",
    "LogFetcher",
    "Web3LogFetcher",
    "NameResolver",
    "RainbowTableNameResolver",
    "StaticNameResolver",
    # Errors
    "IndexerError",
    "LogDecodeError",
    "EventApplicationError",
    "NameResolutionError",
    "TransactionError",
    "UnrecoverableIndexerError",
    "get_default_logger",
]
