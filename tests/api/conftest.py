# tests/api/conftest.py
from __future__ import annotations

import time
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from api.deps import get_store
from api.main import app

_STATE_KEYS = ("registry", "runner", "store", "vector_service")


@pytest.fixture
def client(store):
    """Test client with a fresh app state and a temporary store."""
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    for key in _STATE_KEYS:
        if hasattr(app.state, key):
            delattr(app.state, key)


@pytest.fixture
def wait_for_job(client) -> Callable[..., dict]:
    def _wait(collection: str, job_id: str, *, timeout: float = 10.0) -> dict:
        deadline = time.monotonic() + timeout
        while True:
            snapshot = client.get(f"/{collection}/{job_id}").json()
            if snapshot["phase"] in ("complete", "error"):
                return snapshot
            if time.monotonic() > deadline:
                raise AssertionError(f"job {job_id} still {snapshot['phase']}")
            time.sleep(0.05)

    return _wait
