"""
The log fetcher module retrieves contract logs for a block range
from an RPC node and decodes them into events.
"""

import concurrent.futures
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Sequence, Tuple

from web3 import Web3

from domain_indexer.core.contracts import EventFilter
from domain_indexer.core.errors import LogDecodeError
from domain_indexer.core.event import Event
from domain_indexer.utils.chain_utils import bytes_to_hex_str_auto, to_int
from domain_indexer.utils.log import get_default_logger
from domain_indexer.utils.retries import with_retries


_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


# Settings for the connection retry for Web3.HTTPProvider.
# Maximum number of attempts.
_W3_CONNECTION_MAX_ATTEMPTS = 5
# Initial backoff in seconds, doubled on each attempt.
_W3_CONNECTION_BACKOFF = 1

# Default number of concurrent block requests.
_DEFAULT_MAX_WORKERS = 8


class LogFetcher(ABC):
    """
    Interface for fetching decoded events from the chain.
    """

    @abstractmethod
    def get_block_number(self) -> int:
        """
        Return the current chain head block number.
        """

    @abstractmethod
    def get_events_in_range(self, from_block: int, to_block: int) -> List[Event]:
        """
        Return the events of all indexed types in an inclusive block range.
        The events have no ids.
        The order of the result is not authoritative.

        :param from_block: The first block of the range.
        :param to_block: The last block of the range.
        :return: The decoded events.
        """


def connect_web3(node_rpc_url: str) -> Web3:
    """
    Connect to the node with retries and backoff.

    :param node_rpc_url: Node RPC URL.
    :return: The connected Web3 object.
    """

    def _connect() -> Web3:
        w3 = Web3(Web3.HTTPProvider(node_rpc_url))
        if not w3.is_connected():
            raise ConnectionError(f"is_connected() returned False for {node_rpc_url}")
        return w3

    return with_retries(
        _connect,
        _LOG,
        max_attempts=_W3_CONNECTION_MAX_ATTEMPTS,
        delay=_W3_CONNECTION_BACKOFF,
        retry_on=(ConnectionError,),
    )


class Web3LogFetcher(LogFetcher):
    """
    Log fetcher accessible using Web3.HTTPProvider.
    Issues one eth_getLogs query per event type for each range
    and resolves block timestamps with concurrent eth_getBlockByNumber calls.
    """

    def __init__(
        self,
        w3: Web3,
        filters: Sequence[EventFilter],
        max_workers: int = _DEFAULT_MAX_WORKERS,
    ):
        """
        Initialize the fetcher.

        :param w3: The Web3 connection.
        :param filters: The filters of the indexed event types.
        :param max_workers: Maximum number of concurrent block requests.
        """
        self.w3 = w3
        self.filters = list(filters)
        self.max_workers = max_workers

    def get_block_number(self) -> int:
        return self.w3.eth.block_number

    def get_events_in_range(self, from_block: int, to_block: int) -> List[Event]:
        if from_block > to_block:
            raise ValueError(f"Invalid block range [{from_block}, {to_block}]")

        # Query all event types first
        # so that each distinct block is requested once per range.
        filter_logs: List[Tuple[EventFilter, list]] = []
        for event_filter in self.filters:
            logs = self.w3.eth.get_logs(
                event_filter.to_filter_params(from_block, to_block)
            )
            _LOG.debug(
                "Fetched %s %s logs in [%s, %s]",
                len(logs),
                event_filter.event_type.value,
                from_block,
                to_block,
            )
            filter_logs.append((event_filter, logs))

        # The timestamp cache lives for this call only.
        block_timestamps = self._get_block_timestamps(
            to_int(log["blockNumber"]) for _, logs in filter_logs for log in logs
        )

        events = []
        for event_filter, logs in filter_logs:
            for log in logs:
                events.append(self._decode_log(event_filter, log, block_timestamps))

        # Sort events in chain order.
        # This is a convenience for callers since the store orders the queue itself.
        return sorted(events, key=lambda e: e.sort_key)

    def _get_block_timestamps(self, block_numbers: Iterable[int]) -> Dict[int, int]:
        """
        Fetch the timestamps of distinct blocks concurrently.

        :param block_numbers: Block numbers, possibly repeated.
        :return: Map of block number to block timestamp.
        """
        distinct = sorted(set(block_numbers))
        if not distinct:
            return {}

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(distinct))
        ) as executor:
            futures = {
                block_number: executor.submit(self.w3.eth.get_block, block_number)
                for block_number in distinct
            }
            # result() re-raises any RPC failure.
            return {
                block_number: to_int(future.result()["timestamp"])
                for block_number, future in futures.items()
            }

    @staticmethod
    def _decode_log(
        event_filter: EventFilter, log: dict, block_timestamps: Dict[int, int]
    ) -> Event:
        """
        Decode a raw log against the interface of its event type.

        :param event_filter: The filter that matched the log.
        :param log: The raw log.
        :param block_timestamps: Map of block number to block timestamp.
        :return: The event, without an id.
        """
        block_number = to_int(log["blockNumber"])
        try:
            event_data = event_filter.contract_event().process_log(log)
        except Exception as e:  # pylint: disable=broad-except
            raise LogDecodeError(
                f"Failed to decode {event_filter.event_type.value} log "
                f"at block {block_number}, "
                f"tx {bytes_to_hex_str_auto(log.get('transactionHash', ''))}: {e}"
            ) from e

        return Event(
            type=event_filter.event_type,
            block_number=block_number,
            block_timestamp=block_timestamps[block_number],
            transaction_index=to_int(log["transactionIndex"]),
            log_index=to_int(log.get("logIndex", 0)),
            args=dict(event_data["args"]),
        )
