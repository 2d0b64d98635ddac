"""Managed Redis connection with redirect support and command retries.

A ConnectionManager owns every live connection made for one configured
endpoint:

- Resolves the target to dial from static configuration plus an optional
  runtime redirect (cluster MOVED replies)
- Lazily opens, authenticates and selects a database, caching the handle
  keyed by the resolved target
- Dispatches any command by name, retrying connection failures with a
  close/wait/reopen cycle

Not thread-safe: use one manager per thread/worker or serialize access.

Example:
    manager = ConnectionManager(hostname="localhost", port=6379, retries=2)
    manager.set("a", 1)
    manager.execute("get", "a")  # "1"
    manager.close()
"""

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from types import MappingProxyType
from typing import Any

from kvconn.config import Settings
from kvconn.infra.observability.logging import correlation_scope
from kvconn.infra.observability.metrics import (
    record_command,
    record_connection_error,
    record_connection_opened,
    record_pool_cleared,
    record_retry,
)
from kvconn.infra.redis.exceptions import AuthError, ConnectError, TransientError
from kvconn.infra.redis.transport import (
    DialAddress,
    DialOptions,
    RedisTransport,
    SocketFlag,
    Transport,
)

logger = logging.getLogger(__name__)

AfterOpenListener = Callable[["ConnectionManager"], None]


class ConnectionManager:
    """Connection to a single Redis endpoint.

    Attributes:
        hostname: Redis host (ignored when unix_socket is set)
        port: Redis port (ignored when unix_socket is set)
        unix_socket: Unix socket path, takes precedence over hostname/port
        redirect_target: Runtime "host:port" override of the dial target
        password: Password for AUTH (skipped when empty)
        database: Logical database index (None skips SELECT)
        connection_timeout: Dial timeout in seconds
        data_timeout: Read/write timeout in seconds
        use_ssl: Connect over TLS
        socket_flags: SocketFlag bitmask passed to the transport
        retries: Retries for commands failing with a TransientError
        retry_interval: Seconds to wait before reopening on retry
        transport: Driver used to dial and run commands
    """

    def __init__(
        self,
        hostname: str = "localhost",
        port: int = 6379,
        unix_socket: str | None = None,
        password: str | None = None,
        database: int | None = 0,
        connection_timeout: float | None = None,
        data_timeout: float | None = None,
        use_ssl: bool = False,
        socket_flags: SocketFlag | int = SocketFlag.NONE,
        retries: int = 0,
        retry_interval: float = 0.0,
        redirect_target: str | None = None,
        transport: Transport | None = None,
    ) -> None:
        if retries < 0:
            raise ValueError("retries must be >= 0")
        if retry_interval < 0:
            raise ValueError("retry_interval must be >= 0")

        self.hostname = hostname
        self.port = port
        self.unix_socket = unix_socket
        self.password = password
        self.database = database
        self.connection_timeout = connection_timeout
        self.data_timeout = data_timeout
        self.use_ssl = use_ssl
        self.socket_flags = SocketFlag(socket_flags)
        self.retries = retries
        self.retry_interval = retry_interval
        self.redirect_target = self._normalize_redirect(redirect_target)
        self.transport = transport or RedisTransport()

        self._pool: dict[str, Any] = {}
        self._after_open_listeners: list[AfterOpenListener] = []

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Transport | None = None
    ) -> "ConnectionManager":
        """Build a manager from application settings.

        Args:
            settings: Application settings
            transport: Optional transport override (tests)

        Returns:
            Unopened ConnectionManager
        """
        return cls(
            hostname=settings.redis_hostname,
            port=settings.redis_port,
            unix_socket=settings.redis_unix_socket,
            password=settings.redis_password,
            database=settings.redis_database,
            connection_timeout=settings.redis_connection_timeout_seconds,
            data_timeout=settings.redis_data_timeout_seconds,
            use_ssl=settings.redis_use_ssl,
            socket_flags=settings.redis_socket_flags,
            retries=settings.redis_retries,
            retry_interval=settings.redis_retry_interval_seconds,
            transport=transport,
        )

    @property
    def driver_name(self) -> str:
        return "redis"

    # ========================================
    # Address resolution
    # ========================================

    @property
    def connection_string(self) -> str:
        """Resolved target, also used as the pool key.

        During a redirect this is the redirect target.
        """
        if self.unix_socket:
            return f"unix://{self.unix_socket}"
        return "tcp://" + (self.redirect_target or f"{self.hostname}:{self.port}")

    def set_redirect(self, target: str | None) -> None:
        """Point subsequent resolutions at another "host:port".

        An already open connection is not migrated; close() and the next
        command will dial the new target. Pass None to drop the redirect.
        A target without a port gets the configured port.

        Raises:
            ValueError: If the target is not a usable "host:port"
        """
        target = self._normalize_redirect(target)
        logger.info(
            "Redis redirect target changed",
            extra={"connection_string": self.connection_string, "redirect_target": target},
        )
        self.redirect_target = target

    def dial_address(self) -> DialAddress:
        """Split the resolved target into the address the transport dials."""
        if self.unix_socket:
            return DialAddress("unix", self.unix_socket)

        target = self.redirect_target or f"{self.hostname}:{self.port}"
        host, _, port = target.rpartition(":")
        return DialAddress("tcp", host.strip("[]"), int(port))

    def _normalize_redirect(self, target: str | None) -> str | None:
        if target is None:
            return None
        if ":" not in target or target.endswith("]"):
            host, port = target, str(self.port)
        else:
            host, _, port = target.rpartition(":")
        if not host.strip("[]") or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"Invalid redirect target {target!r}, expected host:port")
        return f"{host}:{int(port)}"

    @property
    def dial_options(self) -> DialOptions:
        return DialOptions(
            connection_timeout=self.connection_timeout,
            data_timeout=self.data_timeout,
            use_ssl=self.use_ssl,
            socket_flags=self.socket_flags,
        )

    # ========================================
    # Pool & lifecycle
    # ========================================

    @property
    def pool(self) -> Mapping[str, Any]:
        """Read-only view of the pool (resolved target -> handle)."""
        return MappingProxyType(self._pool)

    @property
    def socket(self) -> Any | None:
        """Handle for the current resolved target, or None."""
        return self._pool.get(self.connection_string)

    @property
    def is_active(self) -> bool:
        """Whether a connection to the current resolved target is open."""
        return self.socket is not None

    def open(self) -> None:
        """Establish the connection for the current resolved target.

        Does nothing if it is already established. Errors are never retried
        here.

        Raises:
            ConnectError: If dialing fails
            AuthError: If the password is rejected
            SelectError: If the database cannot be selected
        """
        if self.is_active:
            return

        connection_string = self.connection_string
        log_extra = {"connection_string": connection_string, "database": self.database}
        logger.debug("Opening redis connection", extra=log_extra)

        try:
            handle = self.transport.dial(self.dial_address(), self.dial_options)
        except ConnectError as e:
            record_connection_error("dial")
            if e.connection_string is None:
                e.connection_string = connection_string
            raise

        try:
            if self.password:
                self.transport.authenticate(handle, self.password)
            if self.database is not None:
                self.transport.select_database(handle, self.database)
        except ConnectError as e:
            record_connection_error("auth" if isinstance(e, AuthError) else "select")
            if e.connection_string is None:
                e.connection_string = connection_string
            self._close_handle(connection_string, handle)
            raise

        self._pool[connection_string] = handle
        record_connection_opened(len(self._pool))
        logger.info("Redis connection opened", extra=log_extra)
        self.init_connection()

    def init_connection(self) -> None:
        """Notify after-open listeners.

        Invoked right after a connection is established. Subclasses may
        override to run per-connection setup.
        """
        for listener in tuple(self._after_open_listeners):
            listener(self)

    def add_after_open_listener(self, listener: AfterOpenListener) -> Callable[[], None]:
        """Register a callback run once per successful open().

        Returns:
            Callable removing the listener
        """
        self._after_open_listeners.append(listener)

        def _remove() -> None:
            if listener in self._after_open_listeners:
                self._after_open_listeners.remove(listener)

        return _remove

    def close(self) -> None:
        """Close every pooled connection.

        Best-effort: errors closing individual handles are logged and
        ignored. The pool is emptied regardless.
        """
        for connection_string, handle in list(self._pool.items()):
            logger.debug(
                "Closing redis connection",
                extra={"connection_string": connection_string, "database": self.database},
            )
            self._close_handle(connection_string, handle)

        self._pool.clear()
        record_pool_cleared()

    def prepare_for_handoff(self) -> None:
        """Close all connections before the manager leaves this process.

        Call before pickling, forking or otherwise handing the manager to
        another owner; sockets cannot cross that boundary. The next command
        reopens lazily.
        """
        self.close()

    def _close_handle(self, connection_string: str, handle: Any) -> None:
        try:
            self.transport.close(handle)
        except Exception as exc:
            # Closing an already broken connection is expected to fail
            logger.warning(
                "Ignoring error while closing redis connection",
                extra={"connection_string": connection_string},
                exc_info=exc,
            )

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ========================================
    # Command dispatch
    # ========================================

    def execute(self, command_name: str, *args: Any) -> Any:
        """Run any Redis command by name.

        Args:
            command_name: Command name, e.g. "hset" or "config get"
            *args: Command arguments

        Returns:
            Reply parsed by the driver

        Raises:
            ConnectError: If the connection cannot be (re)established
            TransientError: If the last attempt failed with a connection error
            CommandError: If the store rejected the command (never retried)
        """
        return self.execute_command(command_name, args)

    def execute_command(self, command_name: str, args: Sequence[Any] = ()) -> Any:
        """Run a command with its arguments given as one sequence.

        Every attempt and reconnect logs under one correlation ID.
        """
        started = time.perf_counter()
        success = False
        with correlation_scope():
            try:
                result = self._dispatch(command_name, args)
                success = True
                return result
            finally:
                record_command(command_name.lower(), time.perf_counter() - started, success)

    def _dispatch(self, command_name: str, args: Sequence[Any]) -> Any:
        self.open()
        if self.retries > 0:
            tries = self.retries
            while tries > 0:
                tries -= 1
                try:
                    return self.transport.invoke(self.socket, command_name, args)
                except TransientError as e:
                    logger.error(
                        f"Redis command failed, reconnecting: {e}",
                        extra={
                            "connection_string": self.connection_string,
                            "command": command_name,
                            "attempt": self.retries - tries,
                            "retries": self.retries,
                        },
                    )
                    record_retry(command_name.lower())
                    self._reconnect()

        # Final attempt is unguarded: its error reaches the caller
        return self.transport.invoke(self.socket, command_name, args)

    def _reconnect(self) -> None:
        # Commands issued while reconnecting (after-open listeners) must not retry
        retries = self.retries
        self.retries = 0
        try:
            self.close()
            if self.retry_interval > 0:
                time.sleep(self.retry_interval)
            self.open()
        finally:
            self.retries = retries

    # ========================================
    # Typed commands
    # ========================================

    def ping(self) -> Any:
        return self.execute("ping")

    def set(self, key: str, value: Any, *args: Any) -> Any:
        """SET key value [EX seconds | PX ms | NX | XX ...]."""
        return self.execute("set", key, value, *args)

    def get(self, key: str) -> Any:
        return self.execute("get", key)

    def delete(self, *keys: str) -> Any:
        return self.execute("del", *keys)

    def exists(self, *keys: str) -> Any:
        return self.execute("exists", *keys)

    def expire(self, key: str, seconds: int) -> Any:
        return self.execute("expire", key, seconds)

    def hset(self, key: str, field: str, value: Any) -> Any:
        return self.execute("hset", key, field, value)

    def hget(self, key: str, field: str) -> Any:
        return self.execute("hget", key, field)

    def hdel(self, key: str, *fields: str) -> Any:
        return self.execute("hdel", key, *fields)

    def hgetall(self, key: str) -> Any:
        return self.execute("hgetall", key)

    def sadd(self, key: str, *members: Any) -> Any:
        return self.execute("sadd", key, *members)

    def smembers(self, key: str) -> Any:
        return self.execute("smembers", key)

    def srem(self, key: str, *members: Any) -> Any:
        return self.execute("srem", key, *members)


# Global connection manager instance
_connection_manager: ConnectionManager | None = None


def get_connection_manager(settings: Settings | None = None) -> ConnectionManager:
    """Get global connection manager instance (singleton).

    Args:
        settings: Application settings (defaults to the global settings)

    Returns:
        ConnectionManager instance

    Example:
        manager = get_connection_manager()
        manager.execute("incr", "hits")
    """
    global _connection_manager

    if _connection_manager is None:
        if settings is None:
            from kvconn.config import get_settings

            settings = get_settings()
        _connection_manager = ConnectionManager.from_settings(settings)

    return _connection_manager


def reset_connection_manager() -> None:
    """Close and drop the global connection manager.

    Mainly used by test fixtures and at shutdown.
    """
    global _connection_manager
    if _connection_manager is not None:
        _connection_manager.close()
    _connection_manager = None


__all__ = [
    "AfterOpenListener",
    "ConnectionManager",
    "get_connection_manager",
    "reset_connection_manager",
]
