"""
Contract interfaces and the fixed log filters of the indexed events.
"""

import json
import os
from dataclasses import dataclass
from typing import Any, List

from web3 import Web3
from web3.contract import Contract

from domain_indexer.core.event import EventType
from domain_indexer.utils.chain_utils import event_topic


_ABI_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "abi")

# Canonical signatures of the indexed events.
REGISTER_SIGNATURE = "Register(address,address,uint256,uint256)"
TRANSFER_SIGNATURE = "Transfer(address,address,uint256)"
REVEALED_SIGNATURE = "Revealed(uint256)"


@dataclass(frozen=True)
class EventFilter:
    """
    Log filter and decoding interface for one event type.

    :param event_type: The event type produced by matching logs.
    :param address: The emitting contract address.
    :param topic: The topic0 of the event signature.
    :param contract_event: The web3 contract event used to decode matching logs.
    """

    event_type: EventType
    address: str
    topic: str
    contract_event: Any

    def to_filter_params(self, from_block: int, to_block: int) -> dict:
        return {
            "address": self.address,
            "topics": [self.topic],
            "fromBlock": from_block,
            "toBlock": to_block,
        }


def get_abi_file_path(abi_file_name: str) -> str:
    """
    Resolve an ABI file name to a path.
    Bare file names refer to the ABIs shipped with the package.

    :param abi_file_name: The file name or path.
    :return: The file path.
    """
    if os.path.isabs(abi_file_name) or os.path.dirname(abi_file_name):
        return abi_file_name
    return os.path.join(_ABI_DIR, abi_file_name)


def load_abi(abi_file_name: str) -> list:
    """
    Load a contract ABI from a JSON artifact file.
    Accepts both artifacts with an "abi" key and bare ABI arrays.

    :param abi_file_name: The file name or path.
    :return: The ABI.
    """
    with open(get_abi_file_path(abi_file_name), encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict) and "abi" in data:
        return data["abi"]
    if isinstance(data, list):
        return data
    raise ValueError(f"Invalid ABI format in {abi_file_name}")


def get_contract(w3: Web3, address: str, abi_file_name: str) -> Contract:
    """
    Connect to a contract.

    :param w3: The Web3 connection.
    :param address: The contract address.
    :param abi_file_name: The ABI file name or path.
    :return: The contract object.
    """
    # Web3 library is fussy about the address parameter type.
    # noinspection PyTypeChecker
    return w3.eth.contract(
        address=Web3.to_checksum_address(address),
        abi=load_abi(abi_file_name),
    )


def build_event_filters(
    domain_contract: Contract, rainbow_table_contract: Contract
) -> List[EventFilter]:
    """
    Build the filters for all indexed event types.

    :param domain_contract: The Domain contract.
    :param rainbow_table_contract: The RainbowTableV1 contract.
    :return: The event filters, one per event type.
    """
    return [
        EventFilter(
            event_type=EventType.DOMAIN_REGISTER,
            address=domain_contract.address,
            topic=event_topic(REGISTER_SIGNATURE),
            contract_event=domain_contract.events.Register,
        ),
        EventFilter(
            event_type=EventType.DOMAIN_TRANSFER,
            address=domain_contract.address,
            topic=event_topic(TRANSFER_SIGNATURE),
            contract_event=domain_contract.events.Transfer,
        ),
        EventFilter(
            event_type=EventType.RAINBOW_TABLE_REVEAL,
            address=rainbow_table_contract.address,
            topic=event_topic(REVEALED_SIGNATURE),
            contract_event=rainbow_table_contract.events.Revealed,
        ),
    ]
