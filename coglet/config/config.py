from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
import os
import yaml


@dataclass(frozen=True)
class Settings:
    # Directory (AWS)
    region: str | None = None
    profile: str | None = None
    endpoint_url: str | None = None
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    max_attempts: int = 3
    max_pool_connections: int = 50

    # Dispatch
    max_concurrency: int | None = None

    # Logging / artifacts
    log_level: str = "INFO"
    log_dir: str | None = None
    report_dir: str | None = None
    state_dir: str | None = None


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


ENV_NAMES = {
    "region": "COGLET_REGION",
    "profile": "COGLET_PROFILE",
    "endpoint_url": "COGLET_ENDPOINT_URL",
    "connect_timeout": "COGLET_CONNECT_TIMEOUT",
    "read_timeout": "COGLET_READ_TIMEOUT",
    "max_attempts": "COGLET_MAX_ATTEMPTS",
    "max_pool_connections": "COGLET_MAX_POOL_CONNECTIONS",
    "max_concurrency": "COGLET_MAX_CONCURRENCY",
    "log_level": "COGLET_LOG_LEVEL",
    "log_dir": "COGLET_LOG_DIR",
    "report_dir": "COGLET_REPORT_DIR",
    "state_dir": "COGLET_STATE_DIR",
}

INT_FIELDS = ("max_attempts", "max_pool_connections", "max_concurrency")
FLOAT_FIELDS = ("connect_timeout", "read_timeout")


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        return {}
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _parse_env_value(key: str, value: str) -> object:
    if key in INT_FIELDS:
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer env value for {ENV_NAMES[key]}: {value}") from None
    if key in FLOAT_FIELDS:
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid number env value for {ENV_NAMES[key]}: {value}") from None
    return value


def loadSettings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Priority: CLI > ENV > config > defaults
    """
    sources: list[str] = []
    known = {f.name for f in fields(Settings)}
    merged: dict = {name: getattr(Settings(), name) for name in known}

    # 1) config file
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")
        for k, v in cfg.items():
            if k in known:
                merged[k] = v

    # 2) env
    env = {key: _env_get(name) for key, name in ENV_NAMES.items()}
    if any(v is not None for v in env.values()):
        sources.append("env")
    for k, v in env.items():
        if v is not None:
            merged[k] = _parse_env_value(k, v)

    # 3) CLI (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")
    for k, v in cli_overrides.items():
        if v is None or k not in known:
            continue
        merged[k] = v

    return LoadedSettings(settings=Settings(**merged), sources_used=sources)
