#!/usr/bin/env python3
"""
Tests for the api-builder command line
"""

import json

import pytest

from api_builder.cli import (
    RUN_SERVER,
    async_main,
    cmd_check,
    cmd_config,
    cmd_init,
    cmd_list,
    cmd_stats,
    create_parser,
)
from api_builder.monitoring import APICall, APIMonitoringService


@pytest.fixture
def parser():
    return create_parser()


def test_parser_defaults(parser):
    args = parser.parse_args(["serve", "--port", "4000"])

    assert args.command == "serve"
    assert args.port == 4000
    assert args.host is None
    assert args.log_level is None


def test_parser_rejects_unknown_log_level(parser):
    with pytest.raises(SystemExit):
        parser.parse_args(["--log-level", "LOUD", "list"])


async def test_init_writes_config(parser, builder_config, tmp_path, capsys):
    config_dir = tmp_path / "cfg"
    args = parser.parse_args(["--config", str(config_dir), "init"])

    assert await cmd_init(args, builder_config) == 0

    with open(config_dir / "config.json") as f:
        written = json.load(f)
    assert written["server"]["port"] == 3002
    assert written["paths"]["data"] == str(config_dir / "data")
    assert (config_dir / ".env").exists()
    assert "Initialized API Builder configuration" in capsys.readouterr().out


async def test_init_refuses_to_overwrite(parser, builder_config, tmp_path, capsys):
    config_dir = tmp_path / "cfg"
    config_dir.mkdir()
    (config_dir / "config.json").write_text("{}")

    assert await cmd_init(parser.parse_args(["--config", str(config_dir), "init"]), builder_config) == 1
    assert "--force" in capsys.readouterr().out

    assert await cmd_init(parser.parse_args(["--config", str(config_dir), "init", "--force"]), builder_config) == 0


async def test_list_json(parser, builder_config, capsys):
    assert await cmd_list(parser.parse_args(["list", "--format", "json"]), builder_config) == 0

    providers = json.loads(capsys.readouterr().out)
    assert len(providers) == 13
    assert {"id", "auth_type", "ready", "missing_env"} <= set(providers[0])


async def test_list_table(parser, builder_config, capsys):
    assert await cmd_list(parser.parse_args(["list"]), builder_config) == 0

    out = capsys.readouterr().out
    assert "hubspot" in out
    assert "Total: 13 providers" in out


async def test_check_ready_provider(parser, builder_config, monkeypatch, capsys):
    monkeypatch.setenv("ALPHA_VANTAGE_API_KEY", "demo")

    assert await cmd_check(parser.parse_args(["check", "alpha-vantage"]), builder_config) == 0
    assert "ALPHA_VANTAGE_API_KEY" in capsys.readouterr().out


async def test_check_missing_env(parser, builder_config, monkeypatch, capsys):
    monkeypatch.delenv("HUBSPOT_CLIENT_ID", raising=False)

    assert await cmd_check(parser.parse_args(["check", "hubspot"]), builder_config) == 1
    assert "HUBSPOT_CLIENT_ID" in capsys.readouterr().out


async def test_check_unknown_provider(parser, builder_config, capsys):
    assert await cmd_check(parser.parse_args(["check", "nope"]), builder_config) == 1

    out = capsys.readouterr().out
    assert "not found" in out
    assert "- hubspot" in out


async def test_config_sources(parser, builder_config, capsys):
    args = parser.parse_args(["--log-level", "DEBUG", "config", "--sources"])

    assert await cmd_config(args, builder_config) == 0

    out = capsys.readouterr().out
    assert "server.log_level: DEBUG (cli)" in out
    assert "server.port: 3002 (defaults)" in out


async def test_stats_without_data(parser, builder_config, capsys):
    assert await cmd_stats(parser.parse_args(["stats"]), builder_config) == 1
    assert "No monitoring data" in capsys.readouterr().out


async def test_stats_summary(parser, builder_config, capsys):
    service = APIMonitoringService(data_file=builder_config.data_dir / "api-monitoring.json")
    for status in (200, 200, 200, 500):
        service.track_call(APICall(
            method="GET", url="/api/orders", endpoint="/api/orders",
            status_code=status, duration=120.0, success=status < 400,
        ))
    service.save()

    assert await cmd_stats(parser.parse_args(["stats"]), builder_config) == 0

    out = capsys.readouterr().out
    assert "Total calls:           4" in out
    assert "Success rate:          75.0%" in out


async def test_async_main_loads_env_file(parser, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ALPHA_VANTAGE_API_KEY", "placeholder")
    monkeypatch.delenv("ALPHA_VANTAGE_API_KEY")
    env_file = tmp_path / "test.env"
    env_file.write_text("ALPHA_VANTAGE_API_KEY=from-file\n")

    args = parser.parse_args([
        "--config", str(tmp_path / "cfg"),
        "--env", str(env_file),
        "check", "alpha-vantage",
    ])
    exit_code, config = await async_main(args)

    assert exit_code == 0
    assert config.user_dir == tmp_path / "cfg"


async def test_async_main_defaults_to_serve(parser, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    served = []

    async def fake_serve(args, config):
        served.append(args.command)
        return RUN_SERVER

    monkeypatch.setattr("api_builder.cli.cmd_serve", fake_serve)

    exit_code, _ = await async_main(parser.parse_args(["--config", str(tmp_path / "cfg")]))

    assert exit_code == RUN_SERVER
    assert served == ["serve"]
