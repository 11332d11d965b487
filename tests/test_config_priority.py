import pytest
from typer.testing import CliRunner

import coglet.main as cli_module
from coglet.config.config import ENV_NAMES, loadSettings
from coglet.main import app

runner = CliRunner()


class DummyDirectory:
    poolId = "us-east-1_pool1"


def test_priority_cli_over_env_over_config(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yml"
    cfg.write_text(
        "\n".join([
            'region: "eu-west-1"',
            'profile: "cfg-profile"',
            'endpoint_url: "http://localhost:9229"',
            "read_timeout: 5",
        ]),
        encoding="utf-8",
    )
    usersFile = tmp_path / "users.jsonl"
    usersFile.write_text('{"username": "alice"}\n', encoding="utf-8")

    # ENV overrides config
    monkeypatch.setenv("COGLET_REGION", "us-west-2")
    monkeypatch.setenv("COGLET_PROFILE", "env-profile")

    captured = {}

    def factory(settings, poolIdOrName):
        captured["settings"] = settings
        return DummyDirectory()

    monkeypatch.setattr(cli_module, "openDirectory", factory)

    # CLI overrides env
    result = runner.invoke(
        app,
        ["--config", str(cfg), "--region", "ap-south-1", "apply-users", "pool", str(usersFile), "--dry-run"],
    )
    assert result.exit_code == 0, result.output
    settings = captured["settings"]
    assert settings.region == "ap-south-1"
    assert settings.profile == "env-profile"
    assert settings.endpoint_url == "http://localhost:9229"
    assert settings.read_timeout == 5
    assert "sources=['config', 'env', 'cli']" in result.output


def test_defaults_without_sources(monkeypatch):
    for name in ENV_NAMES.values():
        monkeypatch.delenv(name, raising=False)
    loaded = loadSettings(config_path=None, cli_overrides={"region": None})
    assert loaded.sources_used == []
    assert loaded.settings.max_concurrency is None
    assert loaded.settings.log_level == "INFO"


def test_invalid_env_number(monkeypatch):
    monkeypatch.setenv("COGLET_MAX_CONCURRENCY", "many")
    with pytest.raises(ValueError):
        loadSettings(config_path=None, cli_overrides={})


def test_invalid_log_level_is_config_error():
    result = runner.invoke(app, ["--log-level", "LOUD", "login-as", "pool", "alice"])
    assert result.exit_code == 2
    assert "Unsupported log level" in result.output
