"""Shared pytest fixtures.

These fixtures live at `tests/` scope so they are available to both unit and e2e
tests.

Key goals:
- Prevent global singletons (settings, connection manager) from leaking
  state across tests.
- Keep KVCONN_* variables from the developer's shell out of unit tests.
"""

from __future__ import annotations

import os

import pytest

from kvconn.config import reset_settings
from kvconn.infra.redis.connection import reset_connection_manager


@pytest.fixture(autouse=True)
def _reset_global_singletons() -> None:
    """Ensure global singletons do not leak between tests."""
    reset_connection_manager()
    reset_settings()
    yield
    reset_connection_manager()
    reset_settings()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop KVCONN_* environment variables except the live test switch."""
    for name in list(os.environ):
        if name.startswith("KVCONN_") and name != "KVCONN_TEST_REDIS_URL":
            monkeypatch.delenv(name, raising=False)
