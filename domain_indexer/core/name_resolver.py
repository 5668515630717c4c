"""
Name resolvers map a revealed name hash to its plaintext name.
"""

import logging
from abc import ABC, abstractmethod
from typing import Mapping, Sequence

from web3 import Web3

from domain_indexer.core.contracts import get_contract
from domain_indexer.core.errors import NameResolutionError
from domain_indexer.utils.log import get_default_logger


_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


class NameResolver(ABC):
    """
    Interface for resolving a name hash to the plaintext name.
    """

    @abstractmethod
    def lookup(self, name_hash: int) -> str:
        """
        Return the plaintext name for a hash.
        Raises NameResolutionError if the name is not known.

        :param name_hash: The uint256 name hash.
        :return: The plaintext name.
        """


class StaticNameResolver(NameResolver):
    """
    Resolver backed by a fixed mapping.
    Used for offline replays and tests.
    """

    def __init__(self, names: Mapping[int, str]):
        self.names = dict(names)

    def lookup(self, name_hash: int) -> str:
        if name_hash not in self.names:
            raise NameResolutionError(f"No name known for hash {name_hash}")
        return self.names[name_hash]


class RainbowTableNameResolver(NameResolver):
    """
    Resolver that reads revealed preimages from the RainbowTableV1 contract.
    """

    def __init__(
        self,
        w3: Web3,
        rainbow_table_address: str,
        rainbow_table_abi_file_name: str = "RainbowTableV1.json",
    ):
        self.w3 = w3
        self.contract = get_contract(
            w3, rainbow_table_address, rainbow_table_abi_file_name
        )

    @staticmethod
    def decode_preimage(preimage: Sequence[int]) -> str:
        """
        Decode a preimage stored by the rainbow table.
        The preimage is a zero-padded sequence of character codes.

        :param preimage: The preimage field elements.
        :return: The plaintext name.
        """
        chars = []
        for code in preimage:
            if code == 0:
                break
            try:
                chars.append(chr(code))
            except (ValueError, OverflowError) as e:
                raise NameResolutionError(
                    f"Preimage element {code} is not a character code"
                ) from e
        return "".join(chars)

    def lookup(self, name_hash: int) -> str:
        preimage = self.contract.functions.lookup(name_hash).call()
        name = self.decode_preimage(preimage)
        if not name:
            raise NameResolutionError(f"Rainbow table has no preimage for {name_hash}")
        _LOG.debug("Resolved hash %s to %r", name_hash, name)
        return name
