"""Load, validate, and resolve tether.yaml configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from tether.config.models import TetherConfig
from tether.errors import TetherError

DEFAULT_CONFIG_NAME = "tether.yaml"

#: Top-level config key → environment variable consulted when the key is unset.
ENV_FALLBACKS = {
    "cli_path": "CLAUDE_AGENT_CLI_PATH",
    "api_key": "ANTHROPIC_API_KEY",
    "model": "CLAUDE_AGENT_MODEL",
    "permission_mode": "CLAUDE_AGENT_PERMISSION_MODE",
    "cwd": "CLAUDE_AGENT_CWD",
    "max_turns": "CLAUDE_AGENT_MAX_TURNS",
    "process_timeout": "CLAUDE_AGENT_TIMEOUT",
}

#: ``providers`` key → environment variable.
PROVIDER_ENV_FALLBACKS = {
    "bedrock": "CLAUDE_CODE_USE_BEDROCK",
    "vertex": "CLAUDE_CODE_USE_VERTEX",
    "foundry": "CLAUDE_CODE_USE_FOUNDRY",
}


class ConfigError(TetherError):
    """User-facing configuration error."""


def load_config(path: Path | None = None) -> TetherConfig:
    """Load and validate tether configuration.

    Args:
        path: Explicit config file path. If None, uses tether.yaml in the
              current directory when present, and environment variables
              alone otherwise.

    Returns:
        A validated TetherConfig instance.

    Raises:
        ConfigError: On missing file, bad YAML, or validation failure.
    """
    config_path = _resolve_path(path)
    if config_path is None:
        raw: dict[str, Any] = {}
        _load_env(Path.cwd())
    else:
        raw = _read_yaml(config_path)
        _load_env(config_path.parent)
    _apply_env_fallbacks(raw)
    return _validate(raw)


def _resolve_path(path: Path | None) -> Path | None:
    if path is not None:
        resolved = Path(path)
        if not resolved.is_file():
            msg = f"Config file not found: {resolved}"
            raise ConfigError(msg)
        return resolved

    default = Path.cwd() / DEFAULT_CONFIG_NAME
    return default if default.is_file() else None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read config file: {exc}"
        raise ConfigError(msg) from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        detail = ""
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            detail = f" (line {mark.line + 1}, column {mark.column + 1})"
        msg = f"Invalid YAML in {path.name}{detail}"
        raise ConfigError(msg) from exc

    # An empty file (or one holding only comments) means "all defaults".
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {path.name}, got {type(data).__name__}"
        raise ConfigError(msg)

    return data


def _load_env(config_dir: Path) -> None:
    env_path = config_dir / ".env"
    if env_path.is_file():
        load_dotenv(env_path)


def _apply_env_fallbacks(raw: dict[str, Any]) -> None:
    for key, var in ENV_FALLBACKS.items():
        if raw.get(key) is None and os.environ.get(var):
            raw[key] = os.environ[var]

    providers = raw.get("providers")
    if providers is None:
        providers = {}
    if not isinstance(providers, dict):
        # Let validation report the bad type.
        return
    for key, var in PROVIDER_ENV_FALLBACKS.items():
        if providers.get(key) is None and os.environ.get(var):
            providers[key] = os.environ[var]
    if providers:
        raw["providers"] = providers


def _validate(raw: dict[str, Any]) -> TetherConfig:
    try:
        return TetherConfig.model_validate(raw)
    except ValidationError as exc:
        errors = exc.errors()
        parts: list[str] = []
        for err in errors:
            loc = " → ".join(str(s) for s in err["loc"])
            msg = err["msg"]
            if "extra inputs" in msg.lower():
                msg = "Unknown setting"
            elif "input should be" in msg.lower():
                msg = f"Invalid value: {msg}"
            parts.append(f"  {loc}: {msg}")
        joined = "\n".join(parts)
        msg = f"Config validation failed:\n{joined}"
        raise ConfigError(msg) from exc
