"""Tests for dahualight.cli."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, patch

from aioresponses import aioresponses
from typer.testing import CliRunner

from dahualight.cli import app
from dahualight.client import Client, OperationResult

runner = CliRunner()

HOST = "192.0.2.10"


def _client_factory(**kwargs: Any) -> Client:
    return Client(HOST, "admin", "secret", **kwargs)


def _table(mode: str, brightness: int) -> list[Any]:
    return [[[{"Mode": mode, "PercentOfMaxBrightness": brightness, "MiddleLight": [{"Light": 1}]}]]]


class TestMain:
    def test_no_command_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert "light" in result.output
        assert "configure" in result.output


class TestConfigureCommand:
    def test_saves_config(self, tmp_path, monkeypatch):
        config_dir = tmp_path / "dahualight"
        config_file = config_dir / "config.json"
        monkeypatch.setattr("dahualight.client.CONFIG_DIR", config_dir)
        monkeypatch.setattr("dahualight.client.CONFIG_FILE", config_file)

        result = runner.invoke(
            app,
            ["configure", "--host", HOST, "--username", "admin", "--password", "secret"],
        )

        assert result.exit_code == 0
        assert f"admin@{HOST}" in result.output
        assert json.loads(config_file.read_text()) == {
            "host": HOST,
            "username": "admin",
            "password": "secret",
        }

    def test_prompts(self, tmp_path, monkeypatch):
        config_dir = tmp_path / "dahualight"
        monkeypatch.setattr("dahualight.client.CONFIG_DIR", config_dir)
        monkeypatch.setattr("dahualight.client.CONFIG_FILE", config_dir / "config.json")

        result = runner.invoke(app, ["configure"], input=f"{HOST}\nadmin\nsecret\n")

        assert result.exit_code == 0
        assert (config_dir / "config.json").exists()


class TestLightCommand:
    def test_requires_config(self, tmp_path, monkeypatch):
        monkeypatch.setattr("dahualight.client.CONFIG_FILE", tmp_path / "missing.json")
        result = runner.invoke(app, ["light", "on"])
        assert result.exit_code == 1
        assert "dahualight configure" in result.output

    def test_success(self):
        handle = AsyncMock(return_value=OperationResult(True, response={"result": True}))
        with (
            patch.object(Client, "from_saved", side_effect=_client_factory),
            patch.object(Client, "handle_command", handle),
        ):
            result = runner.invoke(app, ["light", "auto 60"])

        assert result.exit_code == 0
        assert '{"result": true}' in result.output
        handle.assert_awaited_once_with("auto 60")

    def test_failure_exit_code(self):
        handle = AsyncMock(return_value=OperationResult(False, "HTTP 500"))
        with (
            patch.object(Client, "from_saved", side_effect=_client_factory),
            patch.object(Client, "handle_command", handle),
        ):
            result = runner.invoke(app, ["light", "on"])

        assert result.exit_code == 1
        assert '"error": "HTTP 500"' in result.output

    def test_reports_status(self):
        with (
            patch.object(Client, "from_saved", side_effect=_client_factory),
            aioresponses() as m,
        ):
            m.post(f"http://{HOST}/RPC2_Login", status=500)
            result = runner.invoke(app, ["light", "on"])

        assert result.exit_code == 1
        assert "[info] Logging in..." in result.output
        assert "[error] Login failed" in result.output
        assert '"error": "Failed to login"' in result.output


class TestShowCommand:
    def test_summary(self):
        with (
            patch.object(Client, "from_saved", side_effect=_client_factory),
            patch.object(Client, "get_lighting", AsyncMock(return_value=_table("Auto", 90))),
        ):
            result = runner.invoke(app, ["show"])

        assert result.exit_code == 0
        assert "Mode: Auto" in result.output
        assert "Brightness: 90%" in result.output

    def test_json(self):
        table = _table("Manual", 40)
        with (
            patch.object(Client, "from_saved", side_effect=_client_factory),
            patch.object(Client, "get_lighting", AsyncMock(return_value=table)),
        ):
            result = runner.invoke(app, ["show", "--json"])

        assert result.exit_code == 0
        assert json.dumps(table) in result.output

    def test_failure(self):
        with (
            patch.object(Client, "from_saved", side_effect=_client_factory),
            patch.object(Client, "get_lighting", AsyncMock(return_value=None)),
        ):
            result = runner.invoke(app, ["show"])

        assert result.exit_code == 1
        assert "Could not read" in result.output

    def test_unexpected_layout(self):
        with (
            patch.object(Client, "from_saved", side_effect=_client_factory),
            patch.object(Client, "get_lighting", AsyncMock(return_value=[[]])),
        ):
            result = runner.invoke(app, ["show"])

        assert result.exit_code == 1
        assert "Unexpected response format" in result.output
