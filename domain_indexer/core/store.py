"""
The durable store persists the indexer checkpoint, the queue of captured events
and the materialized name registry in a relational database.
All access to these tables goes through SQLEventStore.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Union

from beeprint import pp
from sqlalchemy import func
from sqlmodel import Session, SQLModel, create_engine, select

from domain_indexer.core.errors import EventApplicationError, TransactionError
from domain_indexer.core.event import Event, EventType
from domain_indexer.core.models import Checkpoint, Name, QueuedEvent
from domain_indexer.utils.chain_utils import now_chain_timestamp
from domain_indexer.utils.log import get_default_logger


_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


# Registry columns that events may write.
_REGISTRY_FIELDS = frozenset(["name", "owner", "expiry"])


class SQLEventStore:
    """
    Durable store based on a SQL database accessed through SQLModel.
    A single store handle is shared by the indexer for the process lifetime.
    """

    def __init__(self, db_url: str, engine_kwargs: Union[dict, None] = None):
        if engine_kwargs is None:
            engine_kwargs = {}

        self.db_engine = create_engine(db_url, **engine_kwargs)
        # Session of the active transaction, if any.
        self._session: Optional[Session] = None

    def create_tables(self):
        """
        Create the store tables if they do not exist.
        Production schemas are provisioned externally;
        this is used for local runs and tests.
        """
        SQLModel.metadata.create_all(self.db_engine)

    def dispose(self):
        """Release pooled database connections."""
        self.db_engine.dispose()

    @property
    def in_transaction(self) -> bool:
        return self._session is not None

    @contextmanager
    def transaction(self) -> Iterator["SQLEventStore"]:
        """
        Scope a transaction over the store.
        All store writes made inside the scope commit together on exit.
        Any exception rolls back every write made inside the scope and propagates.
        Nesting is not supported.
        """
        if self._session is not None:
            raise TransactionError("Nested store transactions are not supported")

        session = Session(self.db_engine)
        self._session = session
        try:
            yield self
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            self._session = None
            session.close()

    @contextmanager
    def _use_session(self) -> Iterator[Session]:
        """
        Yield the session of the active transaction,
        or a short-lived session that commits on its own.
        """
        if self._session is not None:
            yield self._session
            return

        with Session(self.db_engine) as session:
            yield session
            session.commit()

    def get_checkpoint(self) -> Optional[int]:
        """
        Return the next block to scan, or None if the chain has never been scanned.
        The maximum row is authoritative regardless of pruning.
        """
        with self._use_session() as session:
            statement = select(Checkpoint).order_by(Checkpoint.block.desc())
            checkpoint = session.exec(statement).first()
            if checkpoint is None:
                return None
            return checkpoint.block

    def set_checkpoint(self, block: int, prune: bool = True):
        """
        Record a new checkpoint.

        :param block: The next block to scan.
        :param prune: If True, delete the superseded checkpoint rows.
        """
        with self._use_session() as session:
            statement = select(Checkpoint).order_by(Checkpoint.block.desc())
            current = session.exec(statement).first()
            if current is not None and block < current.block:
                raise ValueError(
                    f"Checkpoint must not decrease: current {current.block}, new {block}"
                )

            session.add(Checkpoint(block=block))
            session.flush()

            if prune:
                stale = session.exec(
                    select(Checkpoint).where(Checkpoint.block < block)
                ).all()
                for row in stale:
                    session.delete(row)
                session.flush()

        _LOG.debug("Checkpoint set to block %s", block)

    def enqueue_events(self, events: Sequence[Event]) -> List[Event]:
        """
        Append events to the durable queue in the given order.

        :param events: The events to queue. Their ids must be unset.
        :return: The queued events with their assigned ids.
        """
        with self._use_session() as session:
            rows = []
            for event in events:
                if event.id is not None:
                    raise ValueError(f"Event {event.id} has already been queued")
                row = QueuedEvent(
                    type=EventType(event.type).value,
                    block_number=event.block_number,
                    block_timestamp=event.block_timestamp,
                    transaction_index=event.transaction_index,
                    log_index=event.log_index,
                    args=event.serialize_args(),
                )
                session.add(row)
                rows.append(row)
            # Flush in order so that ids follow the given order.
            session.flush()
            return [event.with_id(row.id) for event, row in zip(events, rows)]

    def next_queued_event(self) -> Optional[Event]:
        """
        Return the oldest queued event in chain order, or None if the queue is empty.
        """
        with self._use_session() as session:
            statement = select(QueuedEvent).order_by(
                QueuedEvent.block_number,
                QueuedEvent.transaction_index,
                QueuedEvent.log_index,
                QueuedEvent.id,
            )
            row = session.exec(statement).first()
            if row is None:
                return None
            return Event(
                id=row.id,
                type=EventType(row.type),
                block_number=row.block_number,
                block_timestamp=row.block_timestamp,
                transaction_index=row.transaction_index,
                log_index=row.log_index,
                args=Event.deserialize_args(row.args),
            )

    def remove_queued_event(self, event_id: int):
        """
        Delete one queued event.

        :param event_id: The queued event id.
        """
        with self._use_session() as session:
            row = session.get(QueuedEvent, event_id)
            if row is None:
                raise ValueError(f"Queued event {event_id} not found")
            session.delete(row)
            session.flush()

    def count_queued_events(self) -> int:
        with self._use_session() as session:
            return session.exec(select(func.count(QueuedEvent.id))).one()

    def upsert_registry_entry(self, name_hash: str, **fields):
        """
        Create the registry row for a hash, or merge the given fields into it.
        Fields that are not given are left untouched.
        A revealed name is fixed: a different name for the same hash is rejected.

        :param name_hash: The registry key.
        :param fields: Any of name, owner, expiry.
        """
        unknown = set(fields) - _REGISTRY_FIELDS
        if unknown:
            raise ValueError(f"Unknown registry fields: {sorted(unknown)}")

        now = now_chain_timestamp()
        with self._use_session() as session:
            entry = session.get(Name, name_hash)
            if entry is None:
                entry = Name(hash=name_hash, created_at=now, updated_at=now, **fields)
            else:
                new_name = fields.get("name")
                if (
                    new_name is not None
                    and entry.name is not None
                    and entry.name != new_name
                ):
                    raise EventApplicationError(
                        f"Name for hash {name_hash} is already revealed as "
                        f"{entry.name!r}, refusing {new_name!r}"
                    )
                for key, value in fields.items():
                    setattr(entry, key, value)
                entry.updated_at = now
            session.add(entry)
            session.flush()

        _LOG.debug("Upserted registry entry %s:", name_hash)
        _LOG.debug(pp(fields, output=False))

    @staticmethod
    def _entry_to_dict(entry: Name) -> dict:
        return {
            "hash": entry.hash,
            "name": entry.name,
            "owner": entry.owner,
            "expiry": entry.expiry,
            "createdAt": entry.created_at,
            "updatedAt": entry.updated_at,
        }

    def get_registry_entry(self, name_hash: str) -> Union[dict, None]:
        """
        Find the registry entry for a hash.
        """
        with self._use_session() as session:
            entry = session.get(Name, name_hash)
            if entry is None:
                return None
            return self._entry_to_dict(entry)

    def find_names_by_owner(self, owner: str) -> List[dict]:
        """
        Find all registry entries owned by an address.
        """
        with self._use_session() as session:
            statement = select(Name).where(Name.owner == owner).order_by(Name.hash)
            entries = session.exec(statement).all()
            return [self._entry_to_dict(entry) for entry in entries]
