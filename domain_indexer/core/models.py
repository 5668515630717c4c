"""SQL models for the indexer state and the name registry."""

from typing import Optional

from sqlalchemy import Column, Index, Text
from sqlmodel import Field, SQLModel


class Checkpoint(SQLModel, table=True):
    """ORM model for the checkpoint table, recording the next block to scan.
    Only the maximum row is authoritative; older rows may linger until pruned."""

    __tablename__ = "checkpoint"
    id: Optional[int] = Field(default=None, primary_key=True)
    block: int = Field(index=True)


class QueuedEvent(SQLModel, table=True):
    """ORM model for the queued_event table, the durable backlog of captured events."""

    __tablename__ = "queued_event"
    __table_args__ = (
        Index(
            "ix_queued_event_order",
            "block_number",
            "transaction_index",
            "log_index",
        ),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    type: str = Field(index=False)
    block_number: int = Field(index=False)
    block_timestamp: int = Field(index=False)
    transaction_index: int = Field(index=False)
    log_index: int = Field(default=0, index=False)
    args: str = Field(sa_column=Column(Text, nullable=False))


class Name(SQLModel, table=True):
    """ORM model for the name table, the materialized domain registry."""

    __tablename__ = "name"
    hash: str = Field(primary_key=True, index=True)
    name: Optional[str] = Field(default=None, index=True)
    owner: Optional[str] = Field(default=None, index=True)
    expiry: Optional[int] = Field(default=None, index=False)
    created_at: int = Field(index=False)
    updated_at: int = Field(index=False)
