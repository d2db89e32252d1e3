"""Shared test fixtures for the event store test suite.

DB-backed tests share one PostgreSQL testcontainer per session; every use of
``migrated_database`` provisions a fresh randomly named database so rows never
leak between tests. Those tests are skipped when Docker is not installed.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from testcontainers.postgres import PostgresContainer

    from eventstore.db import Database


def _unique_test_db_name() -> str:
    """Generate a unique database name for test isolation."""
    return f"test_{uuid.uuid4().hex[:12]}"


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Shared Postgres testcontainer for all DB-backed tests in this session."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16") as pg:
        yield pg


@pytest.fixture
def database_factory(postgres_container: PostgresContainer) -> Callable[..., Database]:
    """Factory that creates Database instances wired to the test container."""
    from eventstore.db import Database

    def _make(db_name: str | None = None, max_pool_size: int = 3) -> Database:
        return Database(
            db_name=db_name or _unique_test_db_name(),
            host=postgres_container.get_container_host_ip(),
            port=int(postgres_container.get_exposed_port(5432)),
            user=postgres_container.username,
            password=postgres_container.password,
            min_pool_size=1,
            max_pool_size=max_pool_size,
        )

    return _make


@pytest.fixture
def migrated_database(
    database_factory: Callable[..., Database],
) -> Callable[..., AbstractAsyncContextManager[Database]]:
    """Provision a fresh database, migrate it to head and open its pool.

    Tests should use this as:
        async with migrated_database() as db:
            ...
    """
    from eventstore.migrations import run_migrations

    @asynccontextmanager
    async def _provision(max_pool_size: int = 3) -> AsyncIterator[Database]:
        db = database_factory(max_pool_size=max_pool_size)
        await db.provision()
        await run_migrations(db.url)
        await db.connect()
        try:
            yield db
        finally:
            await db.close()

    return _provision
