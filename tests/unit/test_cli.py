"""Tests for CLI module."""

import logging
import tempfile
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from kvconn.cli import create_argument_parser, format_reply, load_config_from_cli, main
from kvconn.config import get_settings
from kvconn.infra.redis.connection import ConnectionManager
from kvconn.infra.redis.exceptions import ConnectError


class TestCreateArgumentParser:
    """Tests for create_argument_parser function."""

    def test_parser_creation(self) -> None:
        parser = create_argument_parser()
        assert parser.prog == "kvconn"

    def test_parser_help(self) -> None:
        help_text = create_argument_parser().format_help()
        assert "--config" in help_text
        assert "--retries" in help_text
        assert "--unix-socket" in help_text

    def test_command_and_arguments(self) -> None:
        parsed = create_argument_parser().parse_args(["--port", "6380", "set", "a", "1", "EX", "10"])

        assert parsed.command == "set"
        assert parsed.args == ["a", "1", "EX", "10"]
        assert parsed.port == 6380


class TestLoadConfigFromCli:
    """Tests for load_config_from_cli function."""

    def test_load_default_config(self) -> None:
        settings = load_config_from_cli([])
        assert settings.redis_hostname == "localhost"
        assert settings.debug is False

    def test_cli_overrides(self) -> None:
        settings = load_config_from_cli(
            [
                "--host", "cache.internal",
                "--port", "6380",
                "--password", "secret",
                "--database", "4",
                "--retries", "2",
                "--retry-interval", "0.5",
                "--connection-timeout", "1.5",
                "--data-timeout", "3",
                "--socket-flags", "1",
                "--ssl",
                "--log-level", "DEBUG",
            ]
        )  # fmt: skip

        assert settings.redis_hostname == "cache.internal"
        assert settings.redis_port == 6380
        assert settings.redis_password == "secret"
        assert settings.redis_database == 4
        assert settings.redis_retries == 2
        assert settings.redis_retry_interval_seconds == 0.5
        assert settings.redis_connection_timeout_seconds == 1.5
        assert settings.redis_data_timeout_seconds == 3.0
        assert settings.redis_socket_flags == 1
        assert settings.redis_use_ssl is True
        assert settings.log_level == "DEBUG"

    def test_no_select(self) -> None:
        settings = load_config_from_cli(["--no-select"])
        assert settings.redis_database is None

    def test_unix_socket(self) -> None:
        settings = load_config_from_cli(["--unix-socket", "/tmp/redis.sock"])
        assert settings.redis_unix_socket == "/tmp/redis.sock"

    def test_config_file_with_override(self) -> None:
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("redis_hostname: from-file\nredis_retries: 5\n")
            config_path = Path(f.name)

        try:
            settings = load_config_from_cli(["--config", str(config_path), "--retries", "1"])
            assert settings.redis_hostname == "from-file"
            assert settings.redis_retries == 1
        finally:
            config_path.unlink()


class TestFormatReply:
    """Tests for reply rendering."""

    @pytest.mark.parametrize(
        ("reply", "expected"),
        [
            (None, "(nil)"),
            (True, "OK"),
            (False, "(false)"),
            (1, "1"),
            ("value", "value"),
            (b"raw", "raw"),
            ([], "(empty)"),
            (["a", "b"], "1) a\n2) b"),
            ({"b", "a"}, "1) a\n2) b"),
            ({"field": "3"}, "field: 3"),
        ],
    )
    def test_format_reply(self, reply: object, expected: str) -> None:
        assert format_reply(reply) == expected


class TestMain:
    """Tests for the main entry point."""

    def test_main_runs_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        with (
            patch("kvconn.cli.ConnectionManager") as mock_manager_class,
            patch("kvconn.cli.setup_logging"),
        ):
            manager = MagicMock()
            manager.execute.return_value = {"a"}
            mock_manager_class.from_settings.return_value = manager

            exit_code = main(["--retries", "2", "smembers", "sa"])

        assert exit_code == 0
        manager.execute.assert_called_once_with("smembers", "sa")
        manager.close.assert_called_once()
        settings = mock_manager_class.from_settings.call_args.args[0]
        assert settings.redis_retries == 2
        assert get_settings() is settings
        assert capsys.readouterr().out == "1) a\n"

    def test_main_reports_redis_errors(self, capsys: pytest.CaptureFixture[str]) -> None:
        with (
            patch("kvconn.cli.ConnectionManager") as mock_manager_class,
            patch("kvconn.cli.setup_logging"),
        ):
            manager = MagicMock()
            manager.execute.side_effect = ConnectError("connect failed tcp://localhost:6379")
            mock_manager_class.from_settings.return_value = manager

            exit_code = main(["get", "a"])

        assert exit_code == 1
        manager.close.assert_called_once()
        assert "connect failed" in capsys.readouterr().err

    def test_main_without_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 2
        assert "usage" in capsys.readouterr().err

    def test_main_invalid_configuration(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--port", "0", "ping"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_main_missing_config_file(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--config", "/nonexistent/kvconn.yaml", "ping"]) == 2
        assert "Config file not found" in capsys.readouterr().err

    def test_main_prints_metrics(self, transport: Any, capsys: pytest.CaptureFixture[str]) -> None:
        with (
            patch(
                "kvconn.cli.ConnectionManager.from_settings",
                side_effect=lambda settings: ConnectionManager(transport=transport),
            ),
            patch("kvconn.cli.setup_logging"),
        ):
            exit_code = main(["--metrics", "ping"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert out.startswith("OK\n")
        assert 'kvconn_commands_total{command="ping",status="success"}' in out

    def test_main_without_metrics_flag_prints_reply_only(
        self, transport: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with (
            patch(
                "kvconn.cli.ConnectionManager.from_settings",
                side_effect=lambda settings: ConnectionManager(transport=transport),
            ),
            patch("kvconn.cli.setup_logging"),
        ):
            main(["ping"])

        assert capsys.readouterr().out == "OK\n"

    def test_main_logs_masked_settings(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="kvconn.cli")
        with (
            patch("kvconn.cli.ConnectionManager") as mock_manager_class,
            patch("kvconn.cli.setup_logging"),
        ):
            mock_manager_class.from_settings.return_value = MagicMock()

            main(["--password", "hunter2", "ping"])

        assert "***REDACTED***" in caplog.text
        assert "hunter2" not in caplog.text
