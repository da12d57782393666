"""
Address Sync - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the address sync pipeline.

- Creates the schema
- Syncs one or more addresses through the worker pool
- Configuration from environment (.env), logging level from CLI

============================================================
USAGE
============================================================
address-sync init-db
address-sync sync 0xabc... 0xdef...
python -m address_sync.cli --log-level DEBUG sync 0xabc...

============================================================
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from address_sync.config import SyncConfig
from address_sync.orchestrator import AddressSyncOrchestrator
from address_sync.price_cache import PriceCache
from address_sync.risk import FlagRiskProvider
from address_sync.worker_pool import SyncWorkerPool
from explorer_adapters.providers.blockscout import BlockscoutClient
from explorer_adapters.providers.coingecko import CoinGeckoClient
from storage.database import (
    DatabaseConnectionError,
    DatabaseInitializationError,
    create_all_tables,
    create_database_engine,
    get_session_factory,
    verify_database_connection,
)
from storage.models.address import Address


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="address-sync",
        description="Synchronize EVM addresses from a Blockscout explorer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init-db                              # Create tables
  %(prog)s sync 0x00000000219ab540356cbb839cbe05303d7705fa
        """,
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    sync_parser = subparsers.add_parser("sync", help="Sync one or more addresses")
    sync_parser.add_argument("addresses", nargs="+", help="0x-prefixed addresses")
    sync_parser.add_argument(
        "--max-concurrent",
        type=int,
        default=None,
        help="Concurrent syncs (default: MAX_CONCURRENT_SYNCS or 4)",
    )

    return parser


# ============================================================
# COMMANDS
# ============================================================

def init_db(config: SyncConfig) -> int:
    engine = create_database_engine(config.database_url)
    try:
        verify_database_connection(engine)
        create_all_tables(engine)
    except (DatabaseConnectionError, DatabaseInitializationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()
    print("Database initialized")
    return 0


def format_outcome(address: str, outcome: object) -> str:
    if isinstance(outcome, Address):
        line = f"{address}  {outcome.sync_status}"
        if outcome.last_error:
            line += f"  ({outcome.last_error})"
        return line
    return f"{address}  failed  ({type(outcome).__name__}: {outcome})"


async def run_sync(config: SyncConfig, addresses: List[str], max_concurrent: int) -> int:
    engine = create_database_engine(config.database_url)
    create_all_tables(engine)
    session_factory = get_session_factory(engine)

    explorer = BlockscoutClient(
        base_url=config.explorer_api_url,
        api_key=config.explorer_api_key,
        connect_timeout=config.connect_timeout_seconds,
        read_timeout=config.read_timeout_seconds,
        heavy_read_timeout=config.heavy_read_timeout_seconds,
        max_attempts=config.max_attempts,
    )
    prices = CoinGeckoClient(
        base_url=config.price_api_url,
        api_key=config.price_api_key,
        connect_timeout=config.connect_timeout_seconds,
        read_timeout=config.read_timeout_seconds,
        max_attempts=config.max_attempts,
    )

    try:
        async with explorer, prices:
            price_cache = PriceCache(
                lambda: prices.get_simple_price(config.native_coin_id),
                ttl_seconds=config.price_cache_ttl_seconds,
            )
            orchestrator = AddressSyncOrchestrator(
                session_factory,
                explorer,
                price_cache=price_cache,
                risk_provider=FlagRiskProvider(),
                config=config,
            )
            pool = SyncWorkerPool(orchestrator, max_concurrent=max_concurrent)
            outcomes = await pool.sync_many(addresses)
    finally:
        engine.dispose()

    for address, outcome in outcomes.items():
        print(format_outcome(address, outcome))

    failed = [a for a, outcome in outcomes.items() if not isinstance(outcome, Address)]
    return 1 if failed else 0


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code; non-zero when any sync failed
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = SyncConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1
    logger.debug(f"Configuration: {config.to_dict()}")

    if args.command == "init-db":
        return init_db(config)

    max_concurrent = args.max_concurrent
    if max_concurrent is None:
        max_concurrent = config.max_concurrent_syncs
    if max_concurrent < 1:
        print("Error: --max-concurrent must be at least 1", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run_sync(config, args.addresses, max_concurrent))
    except DatabaseInitializationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
