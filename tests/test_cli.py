"""Tests for CLI interface"""

from __future__ import annotations

import io
import logging
from unittest.mock import MagicMock, patch

import click
import pytest
import requests
from click.testing import CliRunner

from requester.cli import _apply_overrides, _die, _read_body, cli, setup_logging
from requester.domain.config import AppConfig
from requester.infrastructure.http.errors import UnexpectedStatusError


def _make_response(status_code: int = 200, body: bytes = b"", reason: str = "OK") -> requests.Response:
    r = requests.Response()
    r.status_code = status_code
    r.reason = reason
    r.raw = io.BytesIO(body)
    return r


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / ".requester.yml"
    path.write_text("retry:\n  backoff:\n    base_delay: 0\n", encoding="utf-8")
    return path


@pytest.fixture
def mock_client():
    """Patch client creation; the mock records the config it was built from"""
    with patch("requester.cli.client_from_config") as mock_factory:
        client = MagicMock()
        client.__enter__.return_value = client
        client.__exit__.return_value = False
        client.request.return_value = _make_response(200, b'{"id": 1}')
        mock_factory.return_value = client
        yield mock_factory


class TestSetupLogging:
    """Tests for setup_logging function"""

    def test_setup_logging_info_level(self):
        """Test that logging is set to INFO level by default"""
        setup_logging(verbose=False)
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        """Test that logging is set to DEBUG level when verbose"""
        setup_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("urllib3").level == logging.INFO


class TestDie:
    """Tests for _die function"""

    def test_die_without_exception(self):
        """Test _die without exception"""
        with pytest.raises(click.ClickException, match="Test error"):
            _die("Test error", verbose=False)

    def test_die_with_exception_verbose(self):
        """Test _die with exception in verbose mode"""
        exc = ValueError("Test exception")
        with pytest.raises(click.ClickException, match="Test error"):
            _die("Test error", verbose=True, exc=exc)


class TestReadBody:
    """Tests for _read_body function"""

    def test_no_body(self):
        assert _read_body(None, None) is None

    def test_literal_body(self):
        assert _read_body("héllo", None) == "héllo".encode("utf-8")

    def test_file_body(self, tmp_path):
        path = tmp_path / "body.json"
        path.write_bytes(b'{"a": 1}')
        assert _read_body(None, path) == b'{"a": 1}'

    def test_both_rejected(self, tmp_path):
        path = tmp_path / "body.json"
        path.write_bytes(b"x")
        with pytest.raises(click.UsageError, match="mutually exclusive"):
            _read_body("x", path)


class TestApplyOverrides:
    """Tests for CLI overrides on top of the loaded config"""

    def test_no_overrides(self):
        config = AppConfig()
        assert _apply_overrides(config, None, None, False, False, False, False) == config

    def test_overrides(self):
        config = _apply_overrides(AppConfig(), 5.0, 7, True, True, True, True)

        assert config.http.timeout == 5.0
        assert config.http.expect_success is True
        assert config.http.dump is True
        assert config.retry.max_attempts == 7
        assert config.retry.read_response is True
        assert config.retry.idempotent_only is True

    def test_invalid_override(self):
        with pytest.raises(ValueError):
            _apply_overrides(AppConfig(), -1.0, None, False, False, False, False)


class TestSendCommand:
    """Tests for send command"""

    def test_send_success(self, mock_client, config_file):
        """Test successful request prints the body"""
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "send", "get", "http://example.test/items/1"],
            catch_exceptions=False,
        )

        assert result.exit_code == 0
        assert '{"id": 1}' in result.output
        client = mock_client.return_value
        client.request.assert_called_once_with("get", "http://example.test/items/1", data=None)
        config = mock_client.call_args.args[0]
        assert isinstance(config, AppConfig)
        assert config.retry.backoff.base_delay == 0

    def test_send_with_options(self, mock_client, config_file):
        """Test options reach the config and the request"""
        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "--config",
                str(config_file),
                "send",
                "POST",
                "http://example.test/items",
                "--data",
                "payload",
                "--max-attempts",
                "5",
                "--timeout",
                "2",
                "--idempotent-only",
                "--read-response",
            ],
            catch_exceptions=False,
        )

        assert result.exit_code == 0
        mock_client.return_value.request.assert_called_once_with(
            "POST", "http://example.test/items", data=b"payload"
        )
        config = mock_client.call_args.args[0]
        assert config.retry.max_attempts == 5
        assert config.retry.idempotent_only is True
        assert config.retry.read_response is True
        assert config.http.timeout == 2.0

    def test_send_data_file(self, mock_client, config_file, tmp_path):
        """Test --data-file sends the file contents"""
        body = tmp_path / "body.bin"
        body.write_bytes(b"\x00\x01binary")

        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "send", "PUT", "http://example.test/blob", "--data-file", str(body)],
            catch_exceptions=False,
        )

        assert result.exit_code == 0
        mock_client.return_value.request.assert_called_once_with(
            "PUT", "http://example.test/blob", data=b"\x00\x01binary"
        )

    def test_send_unsuccessful_status_exits_nonzero(self, mock_client, config_file):
        """Test a 5xx response is printed and the command fails"""
        mock_client.return_value.request.return_value = _make_response(503, b"try later", "Service Unavailable")

        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "send", "GET", "http://example.test/"])

        assert result.exit_code == 1
        assert "try later" in result.output

    def test_send_expect_success_error(self, mock_client, config_file):
        """Test an unexpected status error prints the response and fails"""
        response = _make_response(404, b"not here", "Not Found")
        mock_client.return_value.request.side_effect = UnexpectedStatusError(
            "server returned an unsuccessful status code: 404", response=response
        )

        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(config_file), "send", "GET", "http://example.test/", "--expect-success"]
        )

        assert result.exit_code == 1
        assert "not here" in result.output
        assert "server returned an unsuccessful status code: 404" in result.output
        assert mock_client.call_args.args[0].http.expect_success is True

    def test_send_transport_error(self, mock_client, config_file):
        """Test transport errors fail with a message"""
        mock_client.return_value.request.side_effect = requests.ConnectionError("connection refused")

        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "send", "GET", "http://example.test/"])

        assert result.exit_code == 1
        assert "Request failed: connection refused" in result.output

    def test_send_closes_client(self, mock_client, config_file):
        """Test the client is used as a context manager"""
        runner = CliRunner()
        runner.invoke(cli, ["--config", str(config_file), "send", "GET", "http://example.test/"])

        client = mock_client.return_value
        client.__enter__.assert_called_once()
        client.__exit__.assert_called_once()

    def test_send_invalid_config(self, mock_client, tmp_path):
        """Test invalid configuration fails before any request is sent"""
        bad = tmp_path / "bad.yml"
        bad.write_text("retry:\n  max_attempts: 0\n", encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(bad), "send", "GET", "http://example.test/"])

        assert result.exit_code == 1
        assert "max_attempts" in result.output
        mock_client.assert_not_called()

    def test_send_invalid_timeout(self, mock_client, config_file):
        """Test out-of-range option values are reported"""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(config_file), "send", "GET", "http://example.test/", "--timeout", "-1"]
        )

        assert result.exit_code == 1
        assert "Invalid option" in result.output
        mock_client.assert_not_called()

    def test_send_max_attempts_must_be_positive(self, mock_client, config_file):
        """Test click rejects --max-attempts 0"""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(config_file), "send", "GET", "http://example.test/", "--max-attempts", "0"]
        )

        assert result.exit_code == 2
        mock_client.assert_not_called()

    def test_send_data_and_data_file_conflict(self, mock_client, config_file):
        """Test --data and --data-file can't be combined"""
        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "--config",
                str(config_file),
                "send",
                "POST",
                "http://example.test/",
                "--data",
                "x",
                "--data-file",
                str(config_file),
            ],
        )

        assert result.exit_code == 2
        assert "mutually exclusive" in result.output
