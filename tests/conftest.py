"""
Pytest fixtures and configuration for the listing worker test suite.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

# Log files go to a throwaway directory; must be set before worker imports
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="listing_worker_logs_"))

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from worker.accounts import AccountStore  # noqa: E402
from worker.config import AppConfig  # noqa: E402
from worker.database import Database  # noqa: E402
from worker.job_queue import JobQueue  # noqa: E402

TEST_ENCRYPTION_KEY = "test-encryption-key-for-sessions"


# === Configuration ===

@pytest.fixture
def test_config(tmp_path):
    """Config with short timeouts and an isolated scratch directory."""
    return AppConfig(
        DATABASE_PATH=str(tmp_path / "worker.db"),
        SCRATCH_DIR=str(tmp_path / "scratch"),
        ENCRYPTION_KEY=TEST_ENCRYPTION_KEY,
        IMAGE_SETTLE_MS=10,
        SUBMIT_NAVIGATION_TIMEOUT_MS=200,
        PHOTO_FETCH_TIMEOUT_SECONDS=5,
        STORAGE_DOWNLOAD_TIMEOUT_SECONDS=5,
        POLL_INTERVAL_SECONDS=0.01,
        LOOP_ERROR_BACKOFF_SECONDS=0.01,
        JOB_TIMEOUT_SECONDS=None,
    )


# === Persistence ===

@pytest_asyncio.fixture
async def db(test_config):
    database = Database(test_config.DATABASE_PATH)
    await database.init_schema()
    return database


@pytest.fixture
def queue(db):
    return JobQueue(db)


@pytest.fixture
def accounts(db):
    return AccountStore(db, encryption_key=TEST_ENCRYPTION_KEY)


# === Scratch ===

@pytest.fixture
def scratch(tmp_path):
    from core.photo_ingestion import ScratchSpace
    space = ScratchSpace(root=str(tmp_path / "scratch"))
    yield space
    space.cleanup()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "e2e: end-to-end worker runs against fake browser pages")
    config.addinivalue_line("markers", "resilience: failure-mode and cleanup tests")
