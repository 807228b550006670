"""
Shared test fixtures and helpers for Shellite test suite.
"""

import shutil

import pytest
import pytest_asyncio

from shellite import Database


SQLITE3 = shutil.which("sqlite3")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db():
    """Memory database on the shell backend."""
    if SQLITE3 is None:
        pytest.skip("sqlite3 binary not installed")
    database = Database(":memory:")
    yield database
    await database.close()


@pytest_asyncio.fixture
async def native_db():
    """Memory database on the in-process backend."""
    database = Database(":memory:", backend="native")
    yield database
    await database.close()


@pytest.fixture
def example_rows():
    return [
        {"id": 1, "title": "title1", "description": "description1"},
        {"id": 2, "title": "title2", "description": "description2"},
        {"id": 3, "title": "title3", "description": "description3"},
    ]
