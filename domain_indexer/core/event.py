"""
The event module defines the decoded contract log values
that flow from the log fetcher through the durable queue into the registry.
"""

import json
import types
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional, Union

from web3 import Web3

from domain_indexer.core.errors import EventApplicationError
from domain_indexer.utils.chain_utils import (
    UINT256_MAX,
    bytes_to_hex_str,
    hex_str_to_bytes,
)


class EventType(str, Enum):
    """
    The closed set of contract events the indexer understands.
    """

    DOMAIN_REGISTER = "DomainRegister"
    DOMAIN_TRANSFER = "DomainTransfer"
    RAINBOW_TABLE_REVEAL = "RainbowTableReveal"


# Tags of the explicit argument encoding.
_KIND_BIGINT = "bigint"
_KIND_BYTES = "bytes"


def encode_arg(value: Any) -> Any:
    """
    Encode a decoded log argument into a JSON-compatible value.
    Integers are written as tagged decimal strings so that uint256 values
    survive JSON consumers that parse numbers as doubles.

    :param value: The argument value.
    :return: The JSON-compatible encoding.
    """
    if isinstance(value, bool) or value is None or isinstance(value, (str, float)):
        return value
    if isinstance(value, int):
        return {"kind": _KIND_BIGINT, "decimal": str(value)}
    if isinstance(value, (bytes, bytearray)):
        return {"kind": _KIND_BYTES, "hex": bytes_to_hex_str(value)}
    if isinstance(value, (list, tuple)):
        return [encode_arg(v) for v in value]
    raise TypeError(f"Cannot encode event argument of type {type(value).__name__}")


def decode_arg(value: Any) -> Any:
    """
    Invert encode_arg.

    :param value: The JSON-compatible encoding.
    :return: The argument value.
    """
    if isinstance(value, list):
        return [decode_arg(v) for v in value]
    if isinstance(value, dict):
        kind = value.get("kind")
        if kind == _KIND_BIGINT:
            return int(value["decimal"])
        if kind == _KIND_BYTES:
            return hex_str_to_bytes(value["hex"])
        raise ValueError(f"Unknown event argument encoding: {value!r}")
    return value


def _require_uint256(args: Mapping[str, Any], key: str) -> int:
    value = args.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise EventApplicationError(f"Argument {key} must be an integer, got {value!r}")
    if value < 0 or value > UINT256_MAX:
        raise EventApplicationError(f"Argument {key} is out of uint256 range: {value}")
    return value


def _require_address(args: Mapping[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not Web3.is_address(value):
        raise EventApplicationError(f"Argument {key} must be an address, got {value!r}")
    return value


@dataclass(frozen=True)
class DomainRegisterArgs:
    """
    Payload of Domain.Register(registrant, to, name, leaseLength).
    """

    registrant: str
    name: int
    lease_length: int

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "DomainRegisterArgs":
        return cls(
            registrant=_require_address(args, "registrant"),
            name=_require_uint256(args, "name"),
            lease_length=_require_uint256(args, "leaseLength"),
        )


@dataclass(frozen=True)
class DomainTransferArgs:
    """
    Payload of the ERC-721 Domain.Transfer(from, to, tokenId).
    """

    sender: str
    to: str
    token_id: int

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "DomainTransferArgs":
        return cls(
            sender=_require_address(args, "from"),
            to=_require_address(args, "to"),
            token_id=_require_uint256(args, "tokenId"),
        )


@dataclass(frozen=True)
class RainbowTableRevealArgs:
    """
    Payload of RainbowTableV1.Revealed(hash).
    """

    hash: int

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "RainbowTableRevealArgs":
        return cls(hash=_require_uint256(args, "hash"))


EventPayload = Union[DomainRegisterArgs, DomainTransferArgs, RainbowTableRevealArgs]

_PAYLOAD_TYPES = {
    EventType.DOMAIN_REGISTER: DomainRegisterArgs,
    EventType.DOMAIN_TRANSFER: DomainTransferArgs,
    EventType.RAINBOW_TABLE_REVEAL: RainbowTableRevealArgs,
}


@dataclass(frozen=True)
class Event:
    """
    A decoded contract log with its block context.
    The id is None until the event is durably queued.
    """

    type: EventType
    block_number: int
    block_timestamp: int
    transaction_index: int
    args: Mapping[str, Any]
    log_index: int = 0
    id: Optional[int] = None

    def __post_init__(self):
        # Arguments are a read-only copy of the given mapping.
        object.__setattr__(self, "args", types.MappingProxyType(dict(self.args)))

    @property
    def sort_key(self) -> tuple:
        """Canonical chain order of the event."""
        return (self.block_number, self.transaction_index, self.log_index)

    def with_id(self, event_id: int) -> "Event":
        return replace(self, id=event_id)

    def serialize_args(self) -> str:
        """
        Serialize the arguments losslessly.

        :return: The JSON string.
        """
        return json.dumps(
            {key: encode_arg(value) for key, value in self.args.items()},
            sort_keys=True,
        )

    @staticmethod
    def deserialize_args(data: str) -> dict:
        """
        Restore arguments serialized by serialize_args.

        :param data: The JSON string.
        :return: The argument dictionary.
        """
        return {key: decode_arg(value) for key, value in json.loads(data).items()}

    def payload(self) -> EventPayload:
        """
        Build the typed payload for the event type.
        Raises EventApplicationError if the arguments do not fit the type.

        :return: The typed payload.
        """
        return _PAYLOAD_TYPES[EventType(self.type)].from_args(self.args)

    def describe(self) -> dict:
        """Context used in log and error messages."""
        return {
            "event_id": self.id,
            "type": EventType(self.type).value,
            "block": self.block_number,
            "tx_index": self.transaction_index,
            "log_index": self.log_index,
        }
