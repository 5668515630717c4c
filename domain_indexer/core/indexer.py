"""
The indexer replays contract events into the name registry.

The run loop alternates three phases against a single store:

1. Draining: apply queued events to the registry in chain order,
   one transaction per event.
2. Scanning: fetch the events of the next bounded block range.
3. Persisting: queue the fetched events and advance the checkpoint
   in one transaction.

Any failure halts the indexer with UnrecoverableIndexerError after the
enclosing transaction is rolled back. Restarting resumes from the durable
checkpoint and queue.
"""

import logging
import time
from typing import Callable, Optional, Sequence, Tuple, Union

from beeprint import pp

from domain_indexer.core.config import (
    DEFAULT_MAX_BLOCK_RANGE,
    DEFAULT_POLL_INTERVAL,
    IndexerConfig,
)
from domain_indexer.core.contracts import build_event_filters, get_contract
from domain_indexer.core.errors import UnrecoverableIndexerError
from domain_indexer.core.event import (
    DomainRegisterArgs,
    DomainTransferArgs,
    Event,
    EventType,
    RainbowTableRevealArgs,
)
from domain_indexer.core.log_fetcher import LogFetcher, Web3LogFetcher, connect_web3
from domain_indexer.core.name_resolver import NameResolver, RainbowTableNameResolver
from domain_indexer.core.store import SQLEventStore
from domain_indexer.utils.chain_utils import (
    convert_timestamp_chain_to_str,
    uint256_to_key,
)
from domain_indexer.utils.log import get_default_logger


_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


PHASE_DRAINING = "draining"
PHASE_SCANNING = "scanning"
PHASE_PERSISTING = "persisting"


class Indexer:
    """
    Single worker that materializes the name registry from contract events.
    """

    # pylint: disable-msg=too-many-arguments
    def __init__(
        self,
        store: SQLEventStore,
        fetcher: LogFetcher,
        name_resolver: NameResolver,
        genesis_block: int,
        max_block_range: int = DEFAULT_MAX_BLOCK_RANGE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the indexer.

        :param store: The durable store shared for the process lifetime.
        :param fetcher: The log fetcher.
        :param name_resolver: The resolver for revealed name hashes.
        :param genesis_block: The first block to scan if there is no checkpoint.
        :param max_block_range: Maximum number of blocks past the start block
            covered by one range scan.
        :param poll_interval: Seconds to sleep once caught up with the chain head.
        :param sleep: The sleep function, replaceable in tests.
        """
        self.store = store
        self.fetcher = fetcher
        self.name_resolver = name_resolver
        self.genesis_block = genesis_block
        self.max_block_range = max_block_range
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._halted = False

        self._handlers = {
            EventType.DOMAIN_REGISTER: self._execute_domain_register,
            EventType.DOMAIN_TRANSFER: self._execute_domain_transfer,
            EventType.RAINBOW_TABLE_REVEAL: self._execute_rainbow_table_reveal,
        }
        # Every event type must have a handler.
        assert set(self._handlers) == set(EventType)

    @staticmethod
    def create_instance_from_config(config: IndexerConfig) -> "Indexer":
        """
        Wire the indexer and its collaborators from a configuration.

        :param config: The indexer configuration.
        :return: The indexer.
        """
        store = SQLEventStore(config.db_url)
        try:
            if config.create_tables:
                store.create_tables()

            w3 = connect_web3(config.node_rpc_url)
            domain_contract = get_contract(
                w3, config.domain_address, config.domain_abi_file_name
            )
            rainbow_table_contract = get_contract(
                w3, config.rainbow_table_address, config.rainbow_table_abi_file_name
            )
            fetcher = Web3LogFetcher(
                w3, build_event_filters(domain_contract, rainbow_table_contract)
            )
            name_resolver = RainbowTableNameResolver(
                w3, config.rainbow_table_address, config.rainbow_table_abi_file_name
            )
        except Exception:
            # The store is not handed to an indexer.
            store.dispose()
            raise
        return Indexer(
            store,
            fetcher,
            name_resolver,
            genesis_block=config.genesis_block,
            max_block_range=config.max_block_range,
            poll_interval=config.poll_interval,
        )

    @staticmethod
    def create_instance_from_env(dotenv_path: Union[str, None] = None) -> "Indexer":
        return Indexer.create_instance_from_config(
            IndexerConfig.create_instance_from_env(dotenv_path)
        )

    @property
    def halted(self) -> bool:
        return self._halted

    def _halt(
        self, phase: str, message: str, context: dict, cause: BaseException
    ) -> UnrecoverableIndexerError:
        self._halted = True
        _LOG.error("Indexer halted while %s: %s %s: %s", phase, message, context, cause)
        return UnrecoverableIndexerError(phase, f"{message}: {cause}", context)

    def _execute_domain_register(self, event: Event, args: DomainRegisterArgs):
        expiry = event.block_timestamp + args.lease_length
        _LOG.debug(
            "Registering %s to %s until %s",
            args.name,
            args.registrant,
            convert_timestamp_chain_to_str(expiry),
        )
        self.store.upsert_registry_entry(
            uint256_to_key(args.name), owner=args.registrant, expiry=expiry
        )

    def _execute_domain_transfer(self, _event: Event, args: DomainTransferArgs):
        self.store.upsert_registry_entry(uint256_to_key(args.token_id), owner=args.to)

    def _execute_rainbow_table_reveal(self, _event: Event, args: RainbowTableRevealArgs):
        # The lookup is outside the store transaction
        # and is repeated if the event is executed again.
        name = self.name_resolver.lookup(args.hash)
        self.store.upsert_registry_entry(uint256_to_key(args.hash), name=name)

    def execute_event(self, event: Event):
        """
        Apply one event to the registry.
        Must run inside a store transaction.

        :param event: The queued event.
        """
        payload = event.payload()
        _LOG.debug("Executing event %s:", event.describe())
        _LOG.debug(pp(payload, output=False))
        self._handlers[EventType(event.type)](event, payload)

    def execute_events(self) -> int:
        """
        Drain the queue, applying each event and removing it in one transaction.

        :return: The number of events executed.
        """
        executed = 0
        while True:
            event: Optional[Event] = None
            try:
                with self.store.transaction():
                    event = self.store.next_queued_event()
                    if event is None:
                        break
                    self.execute_event(event)
                    self.store.remove_queued_event(event.id)
            except Exception as e:  # pylint: disable=broad-except
                context = event.describe() if event is not None else {}
                raise self._halt(
                    PHASE_DRAINING, "Failed to execute event", context, e
                ) from e
            executed += 1
            _LOG.info(
                "Executed event %s %s at block %s tx %s",
                event.id,
                EventType(event.type).value,
                event.block_number,
                event.transaction_index,
            )
        return executed

    def next_block_range(self) -> Optional[Tuple[int, int]]:
        """
        Compute the next range to scan.

        :return: The inclusive block range, or None if the indexer has caught up.
        """
        head = self.fetcher.get_block_number()
        from_block = self.store.get_checkpoint()
        if from_block is None:
            # This is the first block to parse, if we're starting over.
            from_block = self.genesis_block
        if from_block > head:
            return None
        to_block = min(from_block + self.max_block_range, head)
        return from_block, to_block

    def get_events(self, from_block: int, to_block: int) -> Sequence[Event]:
        try:
            events = self.fetcher.get_events_in_range(from_block, to_block)
        except Exception as e:  # pylint: disable=broad-except
            raise self._halt(
                PHASE_SCANNING,
                "Failed to fetch events",
                {"from_block": from_block, "to_block": to_block},
                e,
            ) from e
        _LOG.info(
            "Fetched %s events in blocks [%s, %s]", len(events), from_block, to_block
        )
        return events

    def save_events_and_set_block(
        self, events: Sequence[Event], from_block: int, to_block: int
    ):
        """
        Queue the events of a scanned range and advance the checkpoint past it
        in one transaction.
        On failure nothing is queued and the checkpoint is unchanged.

        :param events: The events fetched for the range.
        :param from_block: The first block of the range.
        :param to_block: The last block of the range.
        """
        try:
            with self.store.transaction():
                self.store.enqueue_events(events)
                self.store.set_checkpoint(to_block + 1)
        except Exception as e:  # pylint: disable=broad-except
            raise self._halt(
                PHASE_PERSISTING,
                "Failed to persist events",
                {"from_block": from_block, "to_block": to_block, "events": len(events)},
                e,
            ) from e
        _LOG.info(
            "Queued %s events, next block is %s", len(events), to_block + 1
        )

    def run_once(self) -> Optional[Tuple[int, int]]:
        """
        Run one drain, scan and persist cycle.

        :return: The scanned block range, or None if the indexer had caught up.
        """
        if self._halted:
            raise UnrecoverableIndexerError(
                "halted", "Indexer has halted and will not write again"
            )

        self.execute_events()

        try:
            block_range = self.next_block_range()
        except Exception as e:  # pylint: disable=broad-except
            raise self._halt(PHASE_SCANNING, "Failed to compute block range", {}, e) from e

        if block_range is None:
            _LOG.debug("Caught up with the chain head, sleeping %s s", self.poll_interval)
            self._sleep(self.poll_interval)
            return None

        from_block, to_block = block_range
        events = self.get_events(from_block, to_block)
        self.save_events_and_set_block(events, from_block, to_block)
        return block_range

    def run(self, max_cycles: Optional[int] = None):
        """
        Run the indexer loop.
        Runs until the process is terminated unless max_cycles is given.
        Raises UnrecoverableIndexerError on the first failure.

        :param max_cycles: The number of cycles to run, or None to run forever.
        """
        _LOG.info(
            "Starting indexer at genesis block %s with range %s",
            self.genesis_block,
            self.max_block_range,
        )
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            self.run_once()
            cycles += 1
