"""Redis connection exceptions.

Strongly-typed exceptions for the managed Redis connection.
Maps low-level redis-py errors to domain-level exceptions so callers can
tell connectivity problems apart from command mistakes.

Exception hierarchy:
- KVConnError (base)
  - ConnectError (dial failed)
    - AuthError (credentials rejected)
    - SelectError (logical database rejected)
  - TransientError (established connection failed mid-command)
  - CommandError (error reported by the store for a command)
    - RedirectError (MOVED reply, carries the new target)
"""


class KVConnError(Exception):
    """Base exception for all managed connection errors."""

    pass


# Connection setup errors
class ConnectError(KVConnError):
    """Raised when dialing the resolved target fails.

    Attributes:
        connection_string: Resolved target that was dialed
    """

    def __init__(self, message: str, connection_string: str | None = None):
        super().__init__(message)
        self.connection_string = connection_string


class AuthError(ConnectError):
    """Raised when the AUTH step is rejected."""

    pass


class SelectError(ConnectError):
    """Raised when the SELECT step is rejected.

    Attributes:
        database: Logical database index that was requested
    """

    def __init__(
        self,
        message: str,
        connection_string: str | None = None,
        database: int | None = None,
    ):
        super().__init__(message, connection_string)
        self.database = database


# Command errors
class TransientError(KVConnError):
    """Raised when an established connection fails while running a command.

    This is the only error class the dispatcher retries.
    """

    pass


class CommandError(KVConnError):
    """Raised for errors the store reports for a command (bad arguments, wrong type)."""

    pass


class RedirectError(CommandError):
    """Raised when the store answers MOVED for a key.

    Attributes:
        target: New "host:port" owning the key
        slot: Hash slot reported by the store (if available)
    """

    def __init__(self, message: str, target: str, slot: int | None = None):
        super().__init__(message)
        self.target = target
        self.slot = slot


__all__ = [
    "AuthError",
    "CommandError",
    "ConnectError",
    "KVConnError",
    "RedirectError",
    "SelectError",
    "TransientError",
]
