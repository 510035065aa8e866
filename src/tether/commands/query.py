"""tether query — run a prompt to completion and print the answer."""

from __future__ import annotations

import asyncio
from typing import Any

import click

from tether.commands._common import agent_options, build_options, load_client
from tether.errors import TetherError
from tether.result import QueryResult


@click.command()
@click.argument("prompt")
@agent_options
def query(
    prompt: str,
    config_file: str | None,
    as_json: bool,
    verbose: bool,
    **overrides: Any,
) -> None:
    """Send PROMPT to the agent and print the final result."""
    client = load_client(config_file)
    options = build_options(overrides)

    try:
        result = asyncio.run(client.query(prompt, options))
    except TetherError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    if as_json:
        click.echo(result.result.to_json() if result.result else "null")
    else:
        click.echo(result.text or result.full_text)
        click.echo(summary_line(result), err=True)

    if result.is_error:
        raise SystemExit(1)


def summary_line(result: QueryResult) -> str:
    cost = result.cost_usd
    cost_str = f"${cost:.4f}" if cost is not None else "n/a"
    parts = [f"cost: {cost_str}", f"turns: {result.turns}"]
    parts.append(f"duration: {result.duration_ms / 1000:.1f}s")
    if result.session_id:
        parts.append(f"session: {result.session_id}")
    return click.style("  ".join(parts), dim=True)
