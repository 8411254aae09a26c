"""Shared fixtures."""

import pytest_asyncio

from caremind.db.migrations import run_migrations
from caremind.db.repository import Repository


@pytest_asyncio.fixture
async def repo(tmp_path):
    """Repository on a fresh database file."""
    db_path = tmp_path / "caremind.db"
    await run_migrations(db_path)

    repository = Repository(db_path)
    await repository.connect()
    yield repository
    await repository.close()
