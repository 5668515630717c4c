import unittest

from sqlmodel import Session, select

from domain_indexer.core.errors import EventApplicationError, TransactionError
from domain_indexer.core.models import Checkpoint
from domain_indexer.tests.utils import (
    OWNER_A,
    OWNER_B,
    create_memory_store,
    make_register_event,
    make_reveal_event,
    make_transfer_event,
)


class TestSQLEventStoreCheckpoint(unittest.TestCase):
    """Test the checkpoint operations."""

    def setUp(self):
        self.store = create_memory_store()

    def tearDown(self):
        self.store.dispose()

    def test_no_checkpoint(self):
        assert self.store.get_checkpoint() is None

    def test_set_and_get(self):
        self.store.set_checkpoint(101)
        assert self.store.get_checkpoint() == 101
        self.store.set_checkpoint(2150)
        assert self.store.get_checkpoint() == 2150

    def test_prune_keeps_only_maximum(self):
        self.store.set_checkpoint(1)
        self.store.set_checkpoint(2)
        self.store.set_checkpoint(3)
        with Session(self.store.db_engine) as session:
            blocks = [c.block for c in session.exec(select(Checkpoint)).all()]
        assert blocks == [3]

    def test_maximum_is_authoritative_without_pruning(self):
        self.store.set_checkpoint(10, prune=False)
        self.store.set_checkpoint(20, prune=False)
        with Session(self.store.db_engine) as session:
            assert len(session.exec(select(Checkpoint)).all()) == 2
        assert self.store.get_checkpoint() == 20

    def test_checkpoint_must_not_decrease(self):
        self.store.set_checkpoint(10)
        with self.assertRaises(ValueError):
            self.store.set_checkpoint(9)
        assert self.store.get_checkpoint() == 10


class TestSQLEventStoreQueue(unittest.TestCase):
    """Test the durable event queue."""

    def setUp(self):
        self.store = create_memory_store()

    def tearDown(self):
        self.store.dispose()

    def test_empty_queue(self):
        assert self.store.next_queued_event() is None
        assert self.store.count_queued_events() == 0

    def test_enqueue_assigns_ids_in_order(self):
        queued = self.store.enqueue_events(
            [make_register_event(1), make_transfer_event(1), make_reveal_event(1)]
        )
        ids = [e.id for e in queued]
        assert None not in ids
        assert ids == sorted(ids)
        assert self.store.count_queued_events() == 3

    def test_enqueue_rejects_queued_event(self):
        with self.assertRaises(ValueError):
            self.store.enqueue_events([make_register_event(1).with_id(5)])

    def test_round_trip_preserves_event(self):
        event = make_reveal_event(2**200, block_number=7, transaction_index=3)
        (queued,) = self.store.enqueue_events([event])
        restored = self.store.next_queued_event()
        assert restored == queued
        assert restored.args["hash"] == 2**200

    def test_drain_order_follows_chain_order(self):
        # Inserted out of order.
        self.store.enqueue_events(
            [
                make_transfer_event(1, block_number=5, transaction_index=1),
                make_transfer_event(2, block_number=5, transaction_index=0),
                make_transfer_event(3, block_number=4, transaction_index=9),
            ]
        )
        drained = []
        while True:
            event = self.store.next_queued_event()
            if event is None:
                break
            drained.append((event.block_number, event.transaction_index))
            self.store.remove_queued_event(event.id)
        assert drained == [(4, 9), (5, 0), (5, 1)]

    def test_log_index_breaks_transaction_ties(self):
        self.store.enqueue_events(
            [
                make_register_event(1, block_number=5, log_index=1),
                make_transfer_event(1, block_number=5, log_index=0),
            ]
        )
        assert self.store.next_queued_event().log_index == 0

    def test_remove_unknown_event_raises(self):
        with self.assertRaises(ValueError):
            self.store.remove_queued_event(12345)


class TestSQLEventStoreTransaction(unittest.TestCase):
    """Test the transaction scope."""

    def setUp(self):
        self.store = create_memory_store()

    def tearDown(self):
        self.store.dispose()

    def test_commit(self):
        with self.store.transaction():
            self.store.enqueue_events([make_register_event(1)])
            self.store.set_checkpoint(101)
            assert self.store.in_transaction
        assert not self.store.in_transaction
        assert self.store.count_queued_events() == 1
        assert self.store.get_checkpoint() == 101

    def test_rollback_on_error(self):
        self.store.set_checkpoint(100)
        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                self.store.enqueue_events(
                    [make_register_event(1), make_register_event(2)]
                )
                self.store.set_checkpoint(200)
                self.store.upsert_registry_entry("1", owner=OWNER_A)
                raise RuntimeError("connection lost")
        assert not self.store.in_transaction
        assert self.store.count_queued_events() == 0
        assert self.store.get_checkpoint() == 100
        assert self.store.get_registry_entry("1") is None

    def test_nesting_is_rejected(self):
        with self.store.transaction():
            with self.assertRaises(TransactionError):
                with self.store.transaction():
                    pass


class TestSQLEventStoreRegistry(unittest.TestCase):
    """Test the registry upserts."""

    def setUp(self):
        self.store = create_memory_store()

    def tearDown(self):
        self.store.dispose()

    def test_create_then_merge(self):
        self.store.upsert_registry_entry("1", owner=OWNER_A, expiry=4600)
        self.store.upsert_registry_entry("1", owner=OWNER_B)
        entry = self.store.get_registry_entry("1")
        assert entry["owner"] == OWNER_B
        # Fields that are not given are left untouched.
        assert entry["expiry"] == 4600
        assert entry["name"] is None
        assert entry["updatedAt"] >= entry["createdAt"]

    def test_reveal_is_idempotent(self):
        self.store.upsert_registry_entry("1", owner=OWNER_A)
        self.store.upsert_registry_entry("1", name="alice")
        self.store.upsert_registry_entry("1", name="alice")
        assert self.store.get_registry_entry("1")["name"] == "alice"

    def test_conflicting_reveal_is_rejected(self):
        self.store.upsert_registry_entry("1", name="alice")
        with self.assertRaises(EventApplicationError):
            self.store.upsert_registry_entry("1", name="bob")
        assert self.store.get_registry_entry("1")["name"] == "alice"

    def test_unknown_field_is_rejected(self):
        with self.assertRaises(ValueError):
            self.store.upsert_registry_entry("1", hash="2")

    def test_find_names_by_owner(self):
        self.store.upsert_registry_entry("2", owner=OWNER_A)
        self.store.upsert_registry_entry("1", owner=OWNER_A)
        self.store.upsert_registry_entry("3", owner=OWNER_B)
        hashes = [e["hash"] for e in self.store.find_names_by_owner(OWNER_A)]
        assert hashes == ["1", "2"]


if __name__ == "__main__":
    unittest.main()
