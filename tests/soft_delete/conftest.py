"""
Pytest configuration for soft delete tests

Every test in this package runs against the PostgreSQL test container.
"""

import pytest_asyncio


@pytest_asyncio.fixture(autouse=True)
async def _database(test_db_pool):
    yield test_db_pool
