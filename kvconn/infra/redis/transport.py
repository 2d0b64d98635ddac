"""Transport driver for the managed Redis connection.

Wraps the synchronous redis-py client behind a small driver interface:

- dial: open one dedicated connection to a resolved target
- authenticate: AUTH on that connection
- select_database: SELECT on that connection
- invoke: run any command by name
- close: best-effort disconnect

Design principles:
- One redis-py client per handle, pinned to a single socket
  (single_connection_client) so AUTH/SELECT state stays on the handle
- redis-py's own retries are disabled; the connection manager owns the
  retry policy
- Map redis-py errors to the exceptions in kvconn.infra.redis.exceptions
"""

import enum
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, NamedTuple

import redis
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import MovedError, RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from kvconn.infra.redis.exceptions import (
    AuthError,
    CommandError,
    ConnectError,
    RedirectError,
    SelectError,
    TransientError,
)

logger = logging.getLogger(__name__)


class SocketFlag(enum.IntFlag):
    """Bitmask of socket options applied when dialing."""

    NONE = 0
    KEEPALIVE = 1
    TLS_NO_VERIFY = 2


class DialAddress(NamedTuple):
    """Physical address split out of a resolved target string.

    Attributes:
        scheme: "tcp" or "unix"
        host: Hostname/IP for tcp, socket path for unix
        port: TCP port (None for unix sockets)
    """

    scheme: str
    host: str
    port: int | None = None


@dataclass(frozen=True)
class DialOptions:
    """Transport parameters consumed by the dial step."""

    connection_timeout: float | None = None
    data_timeout: float | None = None
    use_ssl: bool = False
    socket_flags: SocketFlag = SocketFlag.NONE


class Transport(ABC):
    """Abstract driver used by ConnectionManager.

    Handles are opaque to the manager; only the transport that produced a
    handle knows how to use it.
    """

    @abstractmethod
    def dial(self, address: DialAddress, options: DialOptions) -> Any:
        """Open a connection to the address.

        Raises:
            ConnectError: If the connection cannot be established
        """

    @abstractmethod
    def authenticate(self, handle: Any, password: str) -> None:
        """Authenticate the handle.

        Raises:
            AuthError: If the credentials are rejected
        """

    @abstractmethod
    def select_database(self, handle: Any, index: int) -> None:
        """Select the logical database on the handle.

        Raises:
            SelectError: If the database cannot be selected
        """

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Close the handle (best-effort, may raise)."""

    @abstractmethod
    def invoke(self, handle: Any, command_name: str, args: Sequence[Any]) -> Any:
        """Run a command on the handle.

        Raises:
            TransientError: If the connection failed while running the command
            CommandError: If the store rejected the command
        """


class RedisTransport(Transport):
    """Transport backed by the synchronous redis-py client.

    Example:
        transport = RedisTransport()
        handle = transport.dial(DialAddress("tcp", "localhost", 6379), DialOptions())
        transport.select_database(handle, 0)
        transport.invoke(handle, "set", ["a", 1])
        transport.close(handle)
    """

    def __init__(self, decode_responses: bool = True) -> None:
        """Initialize the transport.

        Args:
            decode_responses: Decode replies to str instead of bytes
        """
        self.decode_responses = decode_responses

    def dial(self, address: DialAddress, options: DialOptions) -> redis.Redis:
        kwargs: dict[str, Any] = {
            "socket_timeout": options.data_timeout,
            "socket_connect_timeout": options.connection_timeout,
            "decode_responses": self.decode_responses,
            "single_connection_client": True,
            # Retries belong to the connection manager
            "retry": Retry(NoBackoff(), 0),
            # Nothing may reach the server before our AUTH: a server with
            # requirepass answers NOAUTH to HELLO and CLIENT SETINFO
            "protocol": 2,
            "driver_info": None,
        }
        if address.scheme == "unix":
            kwargs["unix_socket_path"] = address.host
        else:
            kwargs["host"] = address.host
            kwargs["port"] = address.port
            kwargs["socket_keepalive"] = bool(options.socket_flags & SocketFlag.KEEPALIVE)
            if options.use_ssl:
                kwargs["ssl"] = True
                if options.socket_flags & SocketFlag.TLS_NO_VERIFY:
                    kwargs["ssl_cert_reqs"] = "none"

        target = _format_address(address)
        try:
            # single_connection_client connects eagerly
            return redis.Redis(**kwargs)
        except RedisError as e:
            raise ConnectError(f"connect failed {target}: {e}", target) from e

    def authenticate(self, handle: redis.Redis, password: str) -> None:
        try:
            handle.auth(password)
        except RedisError as e:
            raise AuthError(f"Authentication failed: {e}") from e

    def select_database(self, handle: redis.Redis, index: int) -> None:
        try:
            handle.execute_command("SELECT", index)
        except RedisError as e:
            raise SelectError(f"Failed to select database {index}: {e}", database=index) from e

    def close(self, handle: redis.Redis) -> None:
        handle.close()

    def invoke(self, handle: redis.Redis, command_name: str, args: Sequence[Any]) -> Any:
        # Multi-word commands ("config get") are sent as separate tokens
        command = command_name.upper().split()
        if not command:
            raise CommandError("Command name must be non-empty")

        try:
            return handle.execute_command(*command, *args)
        except MovedError as e:
            raise RedirectError(
                f"Key moved to {e.host}:{e.port}", f"{e.host}:{e.port}", e.slot_id
            ) from e
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise TransientError(f"Connection failure during {command_name}: {e}") from e
        except RedisError as e:
            raise CommandError(f"{command_name} failed: {e}") from e


def _format_address(address: DialAddress) -> str:
    if address.scheme == "unix":
        return f"unix://{address.host}"
    return f"tcp://{address.host}:{address.port}"


__all__ = [
    "DialAddress",
    "DialOptions",
    "RedisTransport",
    "SocketFlag",
    "Transport",
]
