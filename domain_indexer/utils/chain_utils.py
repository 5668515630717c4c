"""
Common chain data conversion utility functions
"""

from typing import Union

import pandas as pd
from eth_utils import add_0x_prefix
from web3 import Web3

# Largest value representable by a Solidity uint256.
UINT256_MAX = 2**256 - 1


def event_topic(signature: str) -> str:
    """
    Calculate topic0 for an event signature exactly as Solidity does.

    :param signature: The canonical event signature, e.g. "Revealed(uint256)".
    :return: The keccak256 hash of the signature as a 0x-prefixed hex string.
    """
    return add_0x_prefix(Web3.keccak(text=signature).hex().removeprefix("0x"))


def bytes_to_hex_str(byte_arr: bytes) -> str:
    """
    Convert a byte array to a hex string.

    :param byte_arr: The byte array to convert.
    :return: The resulting hex string.
    """
    return "0x" + bytes(byte_arr).hex()


def bytes_to_hex_str_auto(byte_arr: Union[bytes, str]) -> str:
    """
    Convert a byte array to a hex string
    with intelligent conversion of bytes and string representations.
    Some nodes return transaction hashes as bytes, HexBytes, or strings.

    :param byte_arr: The byte array to convert.
    :return: The resulting hex string.
    """
    if isinstance(byte_arr, bytes):
        hex_str = byte_arr.hex()
    else:
        hex_str = str(byte_arr)
    if hex_str.startswith("0x"):
        return hex_str
    return "0x" + hex_str


def hex_str_to_bytes(hex_str: str) -> bytes:
    """
    Convert a hex string to a byte array.

    :param hex_str: The hex string to convert.
    :return: The resulting byte array.
    """
    return bytes.fromhex(hex_str.removeprefix("0x"))


def to_int(value: Union[int, str, bytes]) -> int:
    """
    Convert an RPC quantity to an integer.
    Nodes return block numbers and indexes either as ints or hex strings.

    :param value: The quantity to convert.
    :return: The resulting integer.
    """
    if isinstance(value, bool):
        raise TypeError("Boolean is not a chain quantity")
    if isinstance(value, int):
        return value
    if isinstance(value, bytes):
        return int.from_bytes(value, "big")
    return int(value, 16) if value.startswith("0x") else int(value)


def uint256_to_key(value: int) -> str:
    """
    Convert a uint256 name hash to the registry key.
    Registry rows are keyed by the decimal string of the hash.

    :param value: The uint256 value.
    :return: The decimal string key.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Expected an integer hash, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"Value {value} is out of uint256 range")
    return str(value)


def convert_timestamp_chain_to_str(ts: int) -> str:
    """
    Convert a chain timestamp to a Pandas timestamp string.

    :param ts: The chain timestamp in Unix seconds.
    :return: The pandas timestamp in string representation.
    """
    # Ethereum and Web3 use UTC as the time zone.
    return str(pd.Timestamp(ts, unit="s", tz="UTC"))


def now_chain_timestamp() -> int:
    """
    Current wall-clock time in the chain timestamp format.

    :return: Unix seconds.
    """
    return int(pd.Timestamp.now(tz="UTC").timestamp())
