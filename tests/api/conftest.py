"""
Fixtures for the HTTP layer: an app wired to the in-memory database, the
deterministic clock and the recording notifier from the root conftest.
"""

from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from rental_api.app import create_app
from rental_config import get_active_config


@pytest.fixture
def app(session_factory, clock, notifier):
    return create_app(
        config=get_active_config(),
        session_factory=session_factory,
        clock=clock,
        notifier=notifier,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def as_user():
    def _headers(user_id: UUID) -> dict[str, str]:
        return {"X-User-Id": str(user_id)}

    return _headers
