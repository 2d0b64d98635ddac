"""Managed Redis connection: transport driver, exceptions and connection manager."""

from kvconn.infra.redis.connection import (
    ConnectionManager,
    get_connection_manager,
    reset_connection_manager,
)
from kvconn.infra.redis.exceptions import (
    AuthError,
    CommandError,
    ConnectError,
    KVConnError,
    RedirectError,
    SelectError,
    TransientError,
)
from kvconn.infra.redis.transport import (
    DialAddress,
    DialOptions,
    RedisTransport,
    SocketFlag,
    Transport,
)

__all__ = [
    # Connection
    "ConnectionManager",
    "get_connection_manager",
    "reset_connection_manager",
    # Transport
    "DialAddress",
    "DialOptions",
    "RedisTransport",
    "SocketFlag",
    "Transport",
    # Exceptions
    "AuthError",
    "CommandError",
    "ConnectError",
    "KVConnError",
    "RedirectError",
    "SelectError",
    "TransientError",
]
