"""API-specific test fixtures."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient


@pytest.fixture
def api_client(ledger, order_store):
    """FastAPI test client wired to an in-memory ledger and order store.

    The test lifespan skips the database and the SIGTERM handler (TestClient
    runs the lifespan outside the main thread).
    """
    from sikupi.main import create_app

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        app.state.shutting_down = False
        app.state.ledger = ledger
        app.state.order_store = order_store
        yield

    app = create_app(app_lifespan=test_lifespan)

    with TestClient(app) as client:
        yield client
