"""Shared fixtures for the filecatalog test suite."""

from __future__ import annotations

from pathlib import Path

import pytest_asyncio

from filecatalog.config.models import DatabaseSettings
from filecatalog.store import CatalogStore


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest_asyncio.fixture
async def store(tmp_path: Path):
    settings = DatabaseSettings(url=sqlite_url(tmp_path / "catalog.sqlite3"))
    catalog = CatalogStore.from_settings(settings)
    await catalog.create_schema()
    try:
        yield catalog
    finally:
        await catalog.dispose()
