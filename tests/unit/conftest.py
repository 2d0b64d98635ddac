"""Fixtures for connection manager tests.

FakeTransport records every driver call so tests can assert on the exact
dial/auth/select/close/invoke sequence without a Redis server.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from kvconn.infra.redis.exceptions import AuthError, ConnectError, SelectError
from kvconn.infra.redis.transport import DialAddress, DialOptions, Transport


class FakeHandle:
    """Stand-in for a live connection."""

    def __init__(self, address: DialAddress, number: int) -> None:
        self.address = address
        self.number = number
        self.closed = False

    def __repr__(self) -> str:
        return f"FakeHandle({self.address!r}, #{self.number})"


class FakeTransport(Transport):
    """Scriptable transport.

    Attributes:
        calls: Ordered log of (operation, detail) tuples
        invoke_outcomes: Queue of results/exceptions returned by invoke();
            once empty, invoke() returns `default_result`
        fail_dial / fail_auth / fail_select: Raise on the matching step
        fail_close: Raise from close()
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.handles: list[FakeHandle] = []
        self.invoke_outcomes: list[Any] = []
        self.default_result: Any = "OK"
        self.fail_dial = False
        self.fail_auth = False
        self.fail_select = False
        self.fail_close = False

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    def dial(self, address: DialAddress, options: DialOptions) -> FakeHandle:
        self.calls.append(("dial", address))
        if self.fail_dial:
            raise ConnectError(f"connect failed {address.host}")
        handle = FakeHandle(address, len(self.handles) + 1)
        self.handles.append(handle)
        return handle

    def authenticate(self, handle: FakeHandle, password: str) -> None:
        self.calls.append(("auth", password))
        if self.fail_auth:
            raise AuthError("WRONGPASS invalid username-password pair")

    def select_database(self, handle: FakeHandle, index: int) -> None:
        self.calls.append(("select", index))
        if self.fail_select:
            raise SelectError("ERR DB index is out of range", database=index)

    def close(self, handle: FakeHandle) -> None:
        self.calls.append(("close", handle))
        if self.fail_close:
            raise OSError("Broken pipe")
        handle.closed = True

    def invoke(self, handle: FakeHandle, command_name: str, args: Sequence[Any]) -> Any:
        self.calls.append(("invoke", (handle, command_name, tuple(args))))
        if self.invoke_outcomes:
            outcome = self.invoke_outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return self.default_result


@pytest.fixture
def transport() -> FakeTransport:
    """Create a fresh fake transport."""
    return FakeTransport()
