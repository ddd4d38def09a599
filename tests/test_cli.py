"""Tests for the command-line entry point."""

from __future__ import annotations

import json

import pytest

import cli


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("MCP_HOST", "MCP_PORT", "LOG_LEVEL", "UPSTREAM_CLIENT_SECRET"):
        monkeypatch.delenv(name, raising=False)


def test_version(capsys):
    cli.main(["version"])

    assert capsys.readouterr().out.strip() == f"mcp-oauth-proxy v{cli.VERSION}"


def test_config_masks_client_secret(monkeypatch, capsys):
    monkeypatch.setenv("UPSTREAM_CLIENT_SECRET", "hunter2")

    cli.main(["config"])

    shown = json.loads(capsys.readouterr().out)
    assert shown["upstream_client_secret"] == "***"
    assert "hunter2" not in json.dumps(shown)


def test_start_passes_overrides_to_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))

    cli.main(["start", "--host", "127.0.0.1", "--port", "9000"])

    assert calls == [("main:app", {"host": "127.0.0.1", "port": 9000, "log_level": "info"})]


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        cli.main(["deploy"])
