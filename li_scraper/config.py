from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError

MEMORY_DATABASE = ":memory:"


@dataclass(frozen=True)
class RuntimeSecrets:
    apify_token: str


def _read_yaml_mapping(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {path} must be a mapping/object")
    return data


def _anchor(raw: str, base_dir: Path) -> str:
    if raw == MEMORY_DATABASE:
        return raw
    p = Path(raw).expanduser()
    return str(p if p.is_absolute() else base_dir / p)


def _anchor_paths(config: AppConfig, base_dir: Path) -> AppConfig:
    storage = config.storage.model_copy(
        update={"database_path": _anchor(config.storage.database_path, base_dir)}
    )
    logging = config.logging.model_copy(
        update={"run_log_path": _anchor(config.logging.run_log_path, base_dir)}
    )
    return config.model_copy(update={"storage": storage, "logging": logging})


def load_config(path: str | Path) -> AppConfig:
    """
    Load a YAML config file into a validated AppConfig.

    Relative storage and log paths are taken relative to the config file's
    directory, so commands behave the same from any working directory.
    """
    p = Path(path)
    data = _read_yaml_mapping(p)

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e

    return _anchor_paths(config, p.resolve().parent)


def resolve_runtime_secrets(
    config: AppConfig, *, environ: Mapping[str, str] | None = None
) -> RuntimeSecrets:
    """Read the Apify token from the environment variable named in the config."""
    env = os.environ if environ is None else environ

    token_env = config.apify.token_env
    token = (env.get(token_env) or "").strip()
    if not token:
        raise ConfigError(f"Missing required environment variables: {token_env}")

    return RuntimeSecrets(apify_token=token)


def config_sha256(config: AppConfig) -> str:
    payload = json.dumps(
        config.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    problems = [
        f"- {'.'.join(str(part) for part in item.get('loc', ())) or '<root>'}: "
        f"{item.get('msg', 'invalid value')}"
        for item in err.errors()
    ]
    return "\n".join([f"Invalid configuration in {path}:", *problems])
