"""
Command line entry point for running the indexer.
"""

import argparse
import logging
import sys
from typing import List, Optional

from domain_indexer.core.errors import UnrecoverableIndexerError
from domain_indexer.core.indexer import Indexer
from domain_indexer.utils.log import flush_logging, get_default_logger


_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="domain-indexer",
        description="Index domain registry contract events into a SQL database.",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file with DOMAIN_INDEXER_* settings.",
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many cycles. Runs forever by default.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the indexer until termination.
    An unrecoverable error shuts the indexer down with exit status 1.

    :param argv: Command line arguments.
    :return: The process exit status.
    """
    args = parse_args(argv)
    indexer: Optional[Indexer] = None
    try:
        indexer = Indexer.create_instance_from_env(args.env_file)
        indexer.run(max_cycles=args.max_cycles)
    except (EnvironmentError, ConnectionError, ValueError) as e:
        _LOG.error("Failed to start the indexer: %s", e)
        return 1
    except UnrecoverableIndexerError as e:
        _LOG.error("Shutting down: %s", e)
        return 1
    except KeyboardInterrupt:
        _LOG.info("Interrupted, shutting down")
        return 0
    finally:
        if indexer is not None:
            indexer.store.dispose()
        flush_logging()
    return 0


if __name__ == "__main__":
    sys.exit(main())
