"""
Indexer test utils
"""

from typing import Dict, List, Optional, Tuple

from hexbytes import HexBytes
from sqlalchemy.pool import StaticPool

from domain_indexer.core.event import Event, EventType
from domain_indexer.core.log_fetcher import LogFetcher
from domain_indexer.core.store import SQLEventStore


OWNER_A = "0x" + "aa" * 20
OWNER_B = "0x" + "bb" * 20
ZERO_ADDRESS = "0x" + "00" * 20


def create_memory_store() -> SQLEventStore:
    """
    Create a store on a private in-memory SQLite database.
    StaticPool keeps a single connection so that all sessions see the same database.
    """
    store = SQLEventStore(
        "sqlite://",
        engine_kwargs={
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        },
    )
    store.create_tables()
    return store


def make_register_event(
    name_hash: int,
    registrant: str = OWNER_A,
    lease_length: int = 3600,
    block_number: int = 100,
    block_timestamp: int = 1000,
    transaction_index: int = 0,
    log_index: int = 0,
) -> Event:
    return Event(
        type=EventType.DOMAIN_REGISTER,
        block_number=block_number,
        block_timestamp=block_timestamp,
        transaction_index=transaction_index,
        log_index=log_index,
        args={
            "registrant": registrant,
            "to": registrant,
            "name": name_hash,
            "leaseLength": lease_length,
        },
    )


def make_transfer_event(
    token_id: int,
    to: str = OWNER_B,
    sender: str = OWNER_A,
    block_number: int = 101,
    block_timestamp: int = 1010,
    transaction_index: int = 0,
    log_index: int = 0,
) -> Event:
    return Event(
        type=EventType.DOMAIN_TRANSFER,
        block_number=block_number,
        block_timestamp=block_timestamp,
        transaction_index=transaction_index,
        log_index=log_index,
        args={"from": sender, "to": to, "tokenId": token_id},
    )


def make_reveal_event(
    name_hash: int,
    block_number: int = 102,
    block_timestamp: int = 1020,
    transaction_index: int = 0,
    log_index: int = 0,
) -> Event:
    return Event(
        type=EventType.RAINBOW_TABLE_REVEAL,
        block_number=block_number,
        block_timestamp=block_timestamp,
        transaction_index=transaction_index,
        log_index=log_index,
        args={"hash": name_hash},
    )


def uint256_topic(value: int) -> HexBytes:
    return HexBytes(value.to_bytes(32, "big"))


def address_topic(address: str) -> HexBytes:
    return HexBytes(b"\x00" * 12 + bytes.fromhex(address[2:]))


def make_raw_log(
    address: str,
    topics: List[HexBytes],
    data: bytes = b"",
    block_number: int = 100,
    transaction_index: int = 0,
    log_index: int = 0,
) -> dict:
    """
    Build a raw log as returned by eth_getLogs.
    """
    return {
        "address": address,
        "topics": topics,
        "data": HexBytes(data),
        "blockNumber": block_number,
        "blockHash": HexBytes(block_number.to_bytes(32, "big")),
        "transactionIndex": transaction_index,
        "transactionHash": HexBytes(
            (block_number * 1000 + transaction_index).to_bytes(32, "big")
        ),
        "logIndex": log_index,
        "removed": False,
    }


class FakeLogFetcher(LogFetcher):
    """
    Log fetcher serving canned events from memory.
    Events are returned for every requested range that contains their block.
    """

    def __init__(self, head: int, events: Optional[List[Event]] = None):
        self.head = head
        self.events = list(events or [])
        self.requested_ranges: List[Tuple[int, int]] = []
        self.error: Optional[Exception] = None

    def get_block_number(self) -> int:
        return self.head

    def get_events_in_range(self, from_block: int, to_block: int) -> List[Event]:
        self.requested_ranges.append((from_block, to_block))
        if self.error is not None:
            raise self.error
        return [e for e in self.events if from_block <= e.block_number <= to_block]


def registry_state(entry: Optional[Dict]) -> Optional[Dict]:
    """
    Registry entry without the bookkeeping timestamps.
    """
    if entry is None:
        return None
    return {k: v for k, v in entry.items() if k not in ("createdAt", "updatedAt")}
