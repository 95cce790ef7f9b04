"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from poolsync.config import STORE_BACKENDS, Config
from poolsync.errors import DecodeError, FetchError, PersistenceError
from poolsync.jobs.runner import SyncRunner
from poolsync.logging_conf import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Mirror a money pool's contributors and payments into a database")

    parser.add_argument(
        "--pool-id",
        default=None,
        help="Pool to sync (overrides POOL_ID)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Read settings from this env file instead of .env",
    )
    parser.add_argument(
        "--store",
        choices=STORE_BACKENDS,
        default=None,
        help="Store backend (overrides STORE_BACKEND)",
    )
    parser.add_argument(
        "--sqlite-path",
        type=Path,
        default=None,
        help="SQLite database file (overrides SQLITE_PATH)",
    )

    # Mode flags
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode (verbose logs, snapshot and plan saved to data/dev/)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry run: read the store but write nothing",
    )
    parser.add_argument(
        "--store-html",
        action="store_true",
        help="Save the compressed pool page with the dev output",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Load configuration and apply CLI overrides."""
    config = Config(env_file=args.env_file)
    if args.pool_id:
        config.POOL_ID = args.pool_id
    if args.store:
        config.STORE_BACKEND = args.store
    if args.sqlite_path:
        config.SQLITE_PATH = args.sqlite_path
    return config


def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)

    try:
        config = build_config(args)
        config.validate()
    except ValueError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(config.LOG_LEVEL)
    if args.dev:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info("=" * 60)
    logger.info("Pool sync starting")
    logger.info(f"Mode: {'DEV' if args.dev else 'PROD'}")
    logger.info(f"Pool: {config.POOL_ID}")
    logger.info(f"Store: {config.STORE_BACKEND}")
    logger.info(f"Dry-run: {args.dry_run}")
    logger.info("=" * 60)

    try:
        runner = SyncRunner(
            config,
            dry_run=args.dry_run,
            dev_mode=args.dev,
            store_html=args.store_html,
        )
        report = asyncio.run(runner.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except (FetchError, DecodeError, PersistenceError) as e:
        logger.error(f"Run aborted: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    if not report.ok:
        logger.error(f"Run finished with failed batches: {', '.join(report.batch_errors)}")
        return 1
    logger.info("Import done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
