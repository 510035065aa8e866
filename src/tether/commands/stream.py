"""tether stream — print agent output as it arrives."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import json
import signal
from typing import Any

import click

from tether.client import AgentClient
from tether.commands._common import agent_options, build_options, load_client
from tether.commands.query import summary_line
from tether.errors import TetherError
from tether.messages.models import AssistantMessage, Message, ResultMessage
from tether.options import AgentOptions
from tether.result import QueryResult

#: Longest tool input echoed on a tool-use line.
_TOOL_INPUT_PREVIEW = 120


@click.command()
@click.argument("prompt")
@agent_options
def stream(
    prompt: str,
    config_file: str | None,
    as_json: bool,
    verbose: bool,
    **overrides: Any,
) -> None:
    """Send PROMPT to the agent and stream messages as they arrive.

    Ctrl+C interrupts the agent and prints whatever it flushed.
    """
    client = load_client(config_file)
    options = build_options(overrides)

    try:
        result = asyncio.run(_stream(client, prompt, options, as_json))
    except TetherError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    if not as_json:
        click.echo(summary_line(result), err=True)
    if result.is_error:
        raise SystemExit(1)


async def _stream(
    client: AgentClient, prompt: str, options: AgentOptions, as_json: bool
) -> QueryResult:
    loop = asyncio.get_running_loop()
    # Not available on Windows event loops.
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, client.stop)
    try:
        return await client.stream_collect(
            prompt, functools.partial(render_message, as_json=as_json), options
        )
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


def render_message(message: Message, *, as_json: bool = False) -> None:
    if as_json:
        click.echo(message.to_json())
        return

    match message:
        case AssistantMessage():
            if message.text:
                click.echo(message.text)
            for tool in message.tool_uses:
                args = json.dumps(tool.input, ensure_ascii=False)
                if len(args) > _TOOL_INPUT_PREVIEW:
                    args = args[:_TOOL_INPUT_PREVIEW] + "..."
                click.echo(click.style(f"  → {tool.name} {args}", fg="cyan"))
        case ResultMessage() if message.is_error:
            click.echo(
                click.style(f"  ✗ {message.subtype}: {message.result or ''}", fg="red"),
                err=True,
            )
