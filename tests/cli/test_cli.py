"""CLI tests using click.testing.CliRunner."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from ratewarden import __version__
from ratewarden.cli.main import cli


@pytest.fixture
def runner():
    """Click CliRunner for CLI testing."""
    return CliRunner()


# ---------------------------------------------------------------------------
# help / version
# ---------------------------------------------------------------------------


def test_cli_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("defaults", "backoff", "serve"):
        assert command in result.output


def test_cli_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


# ---------------------------------------------------------------------------
# defaults
# ---------------------------------------------------------------------------


def test_defaults_table(runner):
    result = runner.invoke(cli, ["defaults"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert len(lines) == 5
    assert lines[0].startswith("api")
    assert "100 req / 60s" in lines[0]
    assert "(block 900s)" in lines[-1]


def test_defaults_json(runner):
    result = runner.invoke(cli, ["defaults", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert set(data) == {"api", "ai_inference", "file_upload", "search", "auth"}
    assert data["auth"] == {
        "endpoint": "auth",
        "max_requests": 5,
        "window_ms": 300000,
        "block_duration_ms": 900000,
    }
    assert data["file_upload"]["endpoint"] == "file-upload"


# ---------------------------------------------------------------------------
# backoff
# ---------------------------------------------------------------------------


def test_backoff_schedule(runner):
    result = runner.invoke(cli, ["backoff", "--attempts", "3", "--seed", "1"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert [line.split(":")[0] for line in lines] == ["attempt 1", "attempt 2", "attempt 3"]
    delays = [float(line.split(": ")[1].removesuffix(" ms")) for line in lines]
    assert 1000 <= delays[0] <= 1100
    assert 2000 <= delays[1] <= 2200
    assert 4000 <= delays[2] <= 4400


def test_backoff_seed_is_reproducible(runner):
    first = runner.invoke(cli, ["backoff", "--seed", "42"])
    second = runner.invoke(cli, ["backoff", "--seed", "42"])
    assert first.output == second.output


def test_backoff_capped(runner):
    result = runner.invoke(cli, ["backoff", "-a", "12", "--seed", "3"])
    assert result.exit_code == 0
    last = float(result.output.splitlines()[-1].split(": ")[1].removesuffix(" ms"))
    assert 30000 <= last <= 33000


def test_backoff_rejects_zero_attempts(runner):
    result = runner.invoke(cli, ["backoff", "--attempts", "0"])
    assert result.exit_code == 1
    assert "--attempts must be at least 1" in result.output


def test_backoff_rejects_negative_base(runner):
    result = runner.invoke(cli, ["backoff", "--base-delay=-5"])
    assert result.exit_code == 1


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


def test_serve_uses_settings(runner, monkeypatch):
    monkeypatch.setenv("RATEWARDEN_HOST", "0.0.0.0")
    monkeypatch.setenv("RATEWARDEN_PORT", "9001")
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(cli, ["serve"])
    assert result.exit_code == 0, result.output
    kwargs = mock_run.call_args.kwargs
    assert (kwargs["host"], kwargs["port"]) == ("0.0.0.0", 9001)


def test_serve_flags_override_settings(runner):
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(cli, ["serve", "--host", "10.1.2.3", "--port", "7000"])
    assert result.exit_code == 0, result.output
    assert mock_run.call_args.kwargs["port"] == 7000
    assert mock_run.call_args.kwargs["host"] == "10.1.2.3"


def test_serve_reports_bad_config(runner, monkeypatch):
    monkeypatch.setenv("RATEWARDEN_PORT", "not-a-port")
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(cli, ["serve"])
    assert result.exit_code == 1
    assert "RATEWARDEN_PORT" in result.output
    mock_run.assert_not_called()
