"""Tests for the server entry point."""

import socket

import pytest

from possync.config import DEFAULT_PORT, MAX_CLIENTS
from possync.main import main, parse_args


def test_parse_args_defaults():
    """Test the server needs no arguments."""
    settings = parse_args([])
    assert settings.port == DEFAULT_PORT
    assert settings.max_clients == MAX_CLIENTS
    assert settings.status_port is None
    assert settings.announce_removals


def test_parse_args_overrides():
    settings = parse_args(["--port", "4000", "--max-clients", "8", "--status-port", "8080", "--no-remove"])
    assert settings.port == 4000
    assert settings.max_clients == 8
    assert settings.status_port == 8080
    assert not settings.announce_removals


def test_parse_args_log_level_is_case_insensitive():
    assert parse_args(["--log-level", "debug"]) is not None


def test_parse_args_rejects_unknown_log_level(capsys):
    """Test a bad log level is a usage error, not a traceback."""
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["--log-level", "bogus"])
    assert excinfo.value.code == 2
    assert "invalid choice" in capsys.readouterr().err


def test_main_reports_bind_failure(capsys):
    """Test a port already in use exits with status 1 and a diagnostic."""
    occupied = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    occupied.bind(("0.0.0.0", 0))
    occupied.listen()
    port = occupied.getsockname()[1]
    try:
        assert main(["--port", str(port)]) == 1
    finally:
        occupied.close()
    assert "Error starting server" in capsys.readouterr().err
