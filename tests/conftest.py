"""Test configuration and fixtures."""

from typing import Any, Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from claude_relay.config import Settings
from claude_relay.main import create_app
from tests.helpers import KEYS, UPSTREAM_URL, FakeClock, FakeUpstream, SleepRecorder


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Settings factory isolated from the process environment."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "upstream_api_url": UPSTREAM_URL,
            "upstream_api_keys": ",".join(KEYS),
            "custom_auth_key": None,
            "max_retries": 3,
            "retry_backoff_seconds": 0,
            "key_recovery_seconds": 60,
            "log_level": "warning",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_client(make_settings: Callable[..., Settings]) -> Iterator[Callable[..., TestClient]]:
    """Gateway test client factory wired to a fake upstream.

    The client is entered so the application lifespan runs.
    """
    clients: list[TestClient] = []

    def _make(upstream: FakeUpstream, **overrides: Any) -> TestClient:
        app = create_app(make_settings(**overrides), transport=upstream.transport)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
