"""
Indexer configuration loaded from environment variables or a .env file.
"""

import logging
import os
import pprint
from dataclasses import dataclass
from typing import Optional, Union

from dotenv import load_dotenv

from domain_indexer.utils.error_utils import (
    check_for_missing_env_vars,
    parse_bool_env_var,
    parse_int_env_var,
)
from domain_indexer.utils.log import get_default_logger


_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


# Default genesis blocks for known chains.
# Scanning starts at the block the contracts were deployed in.
CHAIN_GENESIS_BLOCKS = {
    # Local test node.
    31337: 0,
    # Avalanche Fuji testnet.
    43113: 0,
    # Avalanche C-Chain.
    43114: 14909991,
}

# Default maximum number of blocks past the start block covered by a single range scan.
DEFAULT_MAX_BLOCK_RANGE = 2048

# Default sleep between scans once the indexer has caught up with the chain head.
DEFAULT_POLL_INTERVAL = 2.0

# Construction arguments read from required environment variables.
_REQUIRED_ENV_VARS = {
    "node_rpc_url": "DOMAIN_INDEXER_NODE_RPC_URL",
    "db_url": "DOMAIN_INDEXER_DB_URL",
    "domain_address": "DOMAIN_INDEXER_DOMAIN_ADDRESS",
    "rainbow_table_address": "DOMAIN_INDEXER_RAINBOW_TABLE_ADDRESS",
}


@dataclass
class IndexerConfig:
    """
    Settings consumed by the indexer.
    """

    node_rpc_url: str
    db_url: str
    domain_address: str
    rainbow_table_address: str
    genesis_block: int
    max_block_range: int = DEFAULT_MAX_BLOCK_RANGE
    poll_interval: float = DEFAULT_POLL_INTERVAL
    chain_id: Optional[int] = None
    domain_abi_file_name: str = "Domain.json"
    rainbow_table_abi_file_name: str = "RainbowTableV1.json"
    create_tables: bool = False

    def __post_init__(self):
        if self.genesis_block < 0:
            raise ValueError(f"genesis_block must be non-negative: {self.genesis_block}")
        if self.max_block_range < 0:
            raise ValueError(
                f"max_block_range must be non-negative: {self.max_block_range}"
            )
        if self.poll_interval < 0:
            raise ValueError(f"poll_interval must be non-negative: {self.poll_interval}")

    @staticmethod
    def resolve_genesis_block(
        chain_id: Optional[int], genesis_block: Optional[int]
    ) -> int:
        """
        Pick the genesis block from an explicit value or the chain presets.

        :param chain_id: The chain id, if known.
        :param genesis_block: The explicit genesis block, if any.
        :return: The genesis block.
        """
        if genesis_block is not None:
            return genesis_block
        if chain_id in CHAIN_GENESIS_BLOCKS:
            return CHAIN_GENESIS_BLOCKS[chain_id]
        raise EnvironmentError(
            "Genesis block is not set and there is no default "
            f"for chain id {chain_id}"
        )

    @staticmethod
    def get_init_args_from_env(dotenv_path: Union[str, None] = None) -> dict:
        """
        Worker function to load the environment variables.

        :param dotenv_path: The .env file path, if any.
        :return: The dictionary of construction arguments.
        """
        # Load .env file if it exists.
        if dotenv_path:
            load_dotenv(dotenv_path, verbose=True, override=True)
        required_env_vars = {
            name: os.getenv(name) for name in _REQUIRED_ENV_VARS.values()
        }
        # Check for missing environment variables since these are unrecoverable.
        check_for_missing_env_vars(required_env_vars)
        required_args = {
            arg: required_env_vars[name] for arg, name in _REQUIRED_ENV_VARS.items()
        }

        chain_id = parse_int_env_var(
            "DOMAIN_INDEXER_CHAIN_ID", os.getenv("DOMAIN_INDEXER_CHAIN_ID")
        )
        genesis_block = parse_int_env_var(
            "DOMAIN_INDEXER_GENESIS_BLOCK", os.getenv("DOMAIN_INDEXER_GENESIS_BLOCK")
        )
        max_block_range = parse_int_env_var(
            "DOMAIN_INDEXER_MAX_BLOCK_RANGE",
            os.getenv("DOMAIN_INDEXER_MAX_BLOCK_RANGE"),
        )
        poll_interval = os.getenv("DOMAIN_INDEXER_POLL_INTERVAL")
        create_tables = parse_bool_env_var(os.getenv("DOMAIN_INDEXER_CREATE_TABLES"))

        init_args = dict(required_args)
        init_args["chain_id"] = chain_id
        init_args["create_tables"] = create_tables
        init_args["genesis_block"] = IndexerConfig.resolve_genesis_block(
            chain_id, genesis_block
        )
        if max_block_range is not None:
            init_args["max_block_range"] = max_block_range
        if poll_interval is not None:
            init_args["poll_interval"] = float(poll_interval)

        _LOG.debug(
            "IndexerConfig.get_init_args_from_env(): init_args =\n%s",
            pprint.pformat(
                {k: v for k, v in init_args.items() if k not in ("db_url",)}
            ),
        )
        return init_args

    @staticmethod
    def create_instance_from_env(
        dotenv_path: Union[str, None] = None
    ) -> "IndexerConfig":
        return IndexerConfig(**IndexerConfig.get_init_args_from_env(dotenv_path))
