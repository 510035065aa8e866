"""Options and setup shared by the query and stream commands."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, get_args

import click

from tether.client import AgentClient
from tether.config.models import PermissionMode
from tether.config.parser import ConfigError, load_config
from tether.options import AgentOptions

_PERMISSION_MODES: tuple[str, ...] = get_args(PermissionMode)

#: Command-line option name → AgentOptions field.
_OVERRIDE_FIELDS = (
    "model",
    "permission_mode",
    "max_turns",
    "allowed_tools",
    "system_prompt",
    "resume",
    "cwd",
)


def agent_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the flags shared by every command that runs a prompt."""
    decorators = [
        click.option(
            "-c", "--config", "config_file", type=click.Path(), help="Config file path."
        ),
        click.option("--model", default=None, help="Model to use."),
        click.option(
            "--permission-mode",
            type=click.Choice(_PERMISSION_MODES),
            default=None,
            help="Permission mode for tool use.",
        ),
        click.option(
            "--max-turns", type=click.IntRange(min=1), default=None, help="Turn cap."
        ),
        click.option(
            "--allowed-tool",
            "allowed_tools",
            multiple=True,
            help="Allow a tool (repeatable).",
        ),
        click.option("--system-prompt", default=None, help="Replace the system prompt."),
        click.option("--resume", default=None, help="Session id to resume."),
        click.option(
            "--cwd",
            type=click.Path(file_okay=False),
            default=None,
            help="Working directory for the agent.",
        ),
        click.option("--json", "as_json", is_flag=True, help="Print raw JSON records."),
        click.option("-v", "--verbose", is_flag=True, help="Enable verbose output."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        configure_logging(kwargs["verbose"])
        return func(*args, **kwargs)

    return wrapper


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_client(config_file: str | None) -> AgentClient:
    """Build a client from config, exiting with status 1 on config errors."""
    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    return AgentClient(config)


def build_options(overrides: dict[str, Any]) -> AgentOptions:
    """Turn command-line overrides into options; unset flags stay empty."""
    values = {name: overrides.get(name) for name in _OVERRIDE_FIELDS}
    values["allowed_tools"] = list(values["allowed_tools"] or ())
    return AgentOptions(**{k: v for k, v in values.items() if v})
