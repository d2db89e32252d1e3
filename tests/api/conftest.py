"""Shared fixtures for event API tests.

Builds an app whose ``get_event_store`` dependency is replaced by a mocked
``EventStore`` so route behaviour can be checked without a database.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import FastAPI

from eventstore.api.app import create_app
from eventstore.api.deps import get_event_store
from eventstore.events import EventStore


def make_mock_store() -> MagicMock:
    """Create an EventStore double whose four operations are AsyncMocks."""
    store = MagicMock(spec=EventStore)
    store.list = AsyncMock(return_value=[])
    store.insert = AsyncMock()
    store.update = AsyncMock()
    store.delete = AsyncMock()
    return store


@pytest.fixture
def mock_store() -> MagicMock:
    return make_mock_store()


@pytest.fixture
def app(mock_store: MagicMock) -> FastAPI:
    app = create_app()
    app.dependency_overrides[get_event_store] = lambda: mock_store
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c
