"""Command-line interface for kvconn.

Runs a single Redis command through a ConnectionManager. Configuration is
loaded from a config file, environment variables and command-line arguments
with proper precedence.

Example:
    kvconn --host cache.internal --retries 3 set greeting hello
    kvconn --config config/prod.yaml smembers online-users
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from kvconn.config import Settings, load_settings_from_file, set_settings
from kvconn.infra.observability.logging import correlation_scope, setup_logging
from kvconn.infra.observability.metrics import get_metrics_text
from kvconn.infra.redis.connection import ConnectionManager
from kvconn.infra.redis.exceptions import KVConnError

logger = logging.getLogger(__name__)

# argparse destination -> Settings field
_OVERRIDES = {
    "log_level": "log_level",
    "log_format": "log_format",
    "host": "redis_hostname",
    "port": "redis_port",
    "unix_socket": "redis_unix_socket",
    "password": "redis_password",
    "database": "redis_database",
    "connection_timeout": "redis_connection_timeout_seconds",
    "data_timeout": "redis_data_timeout_seconds",
    "socket_flags": "redis_socket_flags",
    "retries": "redis_retries",
    "retry_interval": "redis_retry_interval_seconds",
}


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="kvconn",
        description="kvconn - run Redis commands through a managed, retrying connection",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config", "-c", type=Path, help="Path to configuration file (YAML or TOML)"
    )

    # Application settings
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )

    parser.add_argument("--log-format", choices=["json", "text"], help="Log output format")

    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print Prometheus metrics to stdout after the command",
    )

    # Endpoint
    parser.add_argument("--host", help="Redis hostname or IP")

    parser.add_argument("--port", type=int, help="Redis port")

    parser.add_argument("--unix-socket", help="Unix socket path (overrides host/port)")

    parser.add_argument("--password", help="Password for AUTH")

    parser.add_argument("--database", "-n", type=int, help="Logical database index")

    parser.add_argument(
        "--no-select", action="store_true", help="Do not send SELECT after connecting"
    )

    # Transport
    parser.add_argument("--connection-timeout", type=float, help="Connect timeout in seconds")

    parser.add_argument("--data-timeout", type=float, help="Read/write timeout in seconds")

    parser.add_argument("--ssl", action="store_true", help="Connect over TLS")

    parser.add_argument("--socket-flags", type=int, help="Socket flag bitmask")

    # Retry policy
    parser.add_argument("--retries", type=int, help="Retries on connection failure")

    parser.add_argument("--retry-interval", type=float, help="Seconds between retries")

    parser.add_argument("--version", "-v", action="version", version="%(prog)s 0.1.0")

    # Command
    parser.add_argument("command", nargs="?", help="Redis command name (e.g. get, hset)")

    parser.add_argument("args", nargs=argparse.REMAINDER, help="Command arguments")

    return parser


def settings_from_args(parsed_args: argparse.Namespace) -> Settings:
    """Build settings from parsed arguments, config file and environment.

    Args:
        parsed_args: Namespace returned by the argument parser

    Returns:
        Configured Settings instance
    """
    if parsed_args.config:
        settings = load_settings_from_file(parsed_args.config)
    else:
        settings = Settings()

    cli_overrides: dict[str, Any] = {}

    for dest, field in _OVERRIDES.items():
        value = getattr(parsed_args, dest)
        if value is not None:
            cli_overrides[field] = value

    if parsed_args.debug:
        cli_overrides["debug"] = True

    if parsed_args.no_select:
        cli_overrides["redis_database"] = None

    if parsed_args.ssl:
        cli_overrides["redis_use_ssl"] = True

    if cli_overrides:
        settings = Settings(**{**settings.model_dump(), **cli_overrides})

    return settings


def load_config_from_cli(args: list[str] | None = None) -> Settings:
    """Load configuration from CLI arguments and environment.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Configured Settings instance
    """
    parser = create_argument_parser()
    return settings_from_args(parser.parse_args(args))


def format_reply(reply: Any) -> str:
    """Render a command reply the way redis-cli does (roughly)."""
    if reply is None:
        return "(nil)"
    if isinstance(reply, bool):
        return "OK" if reply else "(false)"
    if isinstance(reply, bytes):
        return reply.decode("utf-8", errors="replace")
    if isinstance(reply, dict):
        return "\n".join(f"{key}: {value}" for key, value in reply.items())
    if isinstance(reply, (list, tuple, set)):
        if not reply:
            return "(empty)"
        items = sorted(reply, key=str) if isinstance(reply, set) else reply
        return "\n".join(f"{index}) {item}" for index, item in enumerate(items, start=1))
    return str(reply)


def main(args: list[str] | None = None) -> int:
    """Main entry point for the kvconn CLI.

    Returns:
        Exit code (0 success, 1 Redis error, 2 usage/configuration error)
    """
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    try:
        settings = settings_from_args(parsed_args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if not parsed_args.command:
        parser.print_usage(sys.stderr)
        return 2

    set_settings(settings)
    setup_logging(
        level="DEBUG" if settings.debug else settings.log_level,
        json_format=settings.log_format == "json",
    )

    exit_code = 0
    manager = ConnectionManager.from_settings(settings)
    with correlation_scope():
        logger.debug("Effective settings: %s", settings.to_dict())
        try:
            print(format_reply(manager.execute(parsed_args.command, *parsed_args.args)))
        except KVConnError as e:
            logger.debug("Command failed", exc_info=e)
            print(f"(error) {e}", file=sys.stderr)
            exit_code = 1
        finally:
            manager.close()

    if parsed_args.metrics:
        print(get_metrics_text(), end="")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
