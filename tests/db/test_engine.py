from __future__ import annotations

import asyncio

import pytest

from academy.db import engine as db_engine


def test_no_database_configured_in_tests() -> None:
    assert db_engine.engine is None
    assert db_engine.async_session_factory is None


def test_unit_of_work_requires_database() -> None:
    async def open_unit() -> None:
        async with db_engine.unit_of_work():
            pass

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        asyncio.run(open_unit())


def test_sync_url_targets_psycopg2() -> None:
    assert (
        db_engine.sync_url("postgresql+asyncpg://app:pw@db:5432/academy")
        == "postgresql+psycopg2://app:pw@db:5432/academy"
    )
    assert (
        db_engine.sync_url("postgresql://app@db/academy")
        == "postgresql+psycopg2://app@db/academy"
    )


def test_sync_url_leaves_other_drivers_alone() -> None:
    url = "postgresql+psycopg2://app@db/academy"
    assert db_engine.sync_url(url) == url
    assert db_engine.sync_url("sqlite:///local.db") == "sqlite:///local.db"
