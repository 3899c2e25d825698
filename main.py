#!/usr/bin/env python3
"""
Listing Worker - Main Entry Point

Usage:
    # Create tables in the configured SQLite file
    python main.py init-db

    # Poll the queue until stopped (SIGINT/SIGTERM)
    python main.py run

    # Claim and process at most one job, then exit
    python main.py once
"""

import argparse
import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

# Settings are read from the environment at import time
load_dotenv()

from core.storage_client import StorageClient  # noqa: E402
from browser.session_bootstrapper import BrowserLauncher  # noqa: E402
from worker.accounts import AccountStore  # noqa: E402
from worker.config import get_config  # noqa: E402
from worker.database import Database  # noqa: E402
from worker.job_queue import JobQueue  # noqa: E402
from worker.queue_worker import QueueWorker  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def check_environment() -> bool:
    """Check that required settings are present."""
    missing = get_config().validate()
    if missing:
        print("❌ Missing required settings:")
        for var in missing:
            print(f"  - {var}")
        print("\nPlease set these in your .env file or environment.")
        return False
    return True


async def build_worker(launcher: BrowserLauncher) -> QueueWorker:
    config = get_config()
    db = Database(config.DATABASE_PATH)
    await db.init_schema()

    storage = None
    if config.STORAGE_URL and config.STORAGE_SERVICE_KEY:
        storage = StorageClient(config.STORAGE_URL, config.STORAGE_SERVICE_KEY)

    browser = await launcher.start()
    return QueueWorker(
        queue=JobQueue(db),
        accounts=AccountStore(db, encryption_key=config.ENCRYPTION_KEY),
        browser=browser,
        config=config,
        storage=storage,
    )


async def run_forever():
    launcher = BrowserLauncher()
    worker = await build_worker(launcher)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    worker.start()
    logger.info(f"Worker {worker.worker_id} polling every {worker.config.POLL_INTERVAL_SECONDS}s")
    try:
        await stop.wait()
    finally:
        await worker.stop()
        await launcher.stop()


async def run_single():
    launcher = BrowserLauncher()
    try:
        worker = await build_worker(launcher)
        job_id = await worker.run_once()
        if job_id:
            logger.info(f"Processed job {job_id}")
        else:
            logger.info("No queued jobs")
    finally:
        await launcher.stop()


async def init_db():
    config = get_config()
    await Database(config.DATABASE_PATH).init_schema()
    logger.info(f"Database ready at {config.DATABASE_PATH}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Listing Worker - marketplace listing automation"
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')
    subparsers.add_parser('run', help='Poll the queue until stopped')
    subparsers.add_parser('once', help='Process at most one queued job')
    subparsers.add_parser('init-db', help='Create database tables')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.command == 'init-db':
        asyncio.run(init_db())
        return

    if not check_environment():
        sys.exit(1)

    if args.command == 'run':
        asyncio.run(run_forever())
    elif args.command == 'once':
        asyncio.run(run_single())


if __name__ == "__main__":
    main()
