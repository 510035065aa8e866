"""High-level client: config-aware queries over a :class:`ProcessTransport`."""

from __future__ import annotations

import contextlib
import copy
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from tether.config.models import TetherConfig
from tether.messages.models import Message
from tether.options import AgentOptions
from tether.result import QueryResult
from tether.transport import ProcessTransport

OptionsLike = AgentOptions | dict[str, Any] | None
MessageCallback = Callable[[Message], Awaitable[None] | None]


class AgentClient:
    """Run prompts against the agent CLI using configured defaults.

    Options passed per call win; the config only fills fields that are
    still empty (model, permission mode, working directory, allowed
    tools, max turns).
    """

    def __init__(
        self,
        config: TetherConfig | None = None,
        transport: ProcessTransport | None = None,
    ) -> None:
        self._config = config or TetherConfig()
        self._transport = transport or ProcessTransport(
            self._config.cli_path,
            api_key=self._config.api_key,
            providers=self._config.providers.enabled(),
            timeout=self._config.process_timeout,
        )
        self._default_options: AgentOptions | None = None

    @property
    def config(self) -> TetherConfig:
        return self._config

    @property
    def transport(self) -> ProcessTransport:
        return self._transport

    def with_options(self, options: AgentOptions | dict[str, Any]) -> AgentClient:
        """Return a copy that uses *options* when a call passes none.

        The copy shares this client's transport.
        """
        clone = copy.copy(self)
        clone._default_options = _coerce(options)
        return clone

    def options(self) -> AgentOptions:
        """A fresh options object pre-filled from config."""
        return self._merge(AgentOptions())

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def query(self, prompt: str, options: OptionsLike = None) -> QueryResult:
        """Run *prompt* to completion."""
        messages = await self._transport.run(prompt, self._resolve(options))
        return QueryResult(messages)

    async def stream(
        self, prompt: str, options: OptionsLike = None
    ) -> AsyncIterator[Message]:
        """Yield messages as they arrive.

        Leaving the loop early shuts the subprocess down.
        """
        source = self._transport.stream(prompt, self._resolve(options))
        async with contextlib.aclosing(source) as messages:
            async for message in messages:
                yield message

    async def stream_collect(
        self,
        prompt: str,
        on_message: MessageCallback | None = None,
        options: OptionsLike = None,
    ) -> QueryResult:
        """Stream *prompt*, calling *on_message* per message, then aggregate.

        *on_message* may be a plain function or a coroutine function.
        """
        messages: list[Message] = []
        async for message in self.stream(prompt, options):
            messages.append(message)
            if on_message is not None:
                outcome = on_message(message)
                if inspect.isawaitable(outcome):
                    await outcome
        return QueryResult(messages)

    def stop(self) -> None:
        """Interrupt the running query, if any."""
        self._transport.stop()

    # ------------------------------------------------------------------ #
    # Option resolution
    # ------------------------------------------------------------------ #

    def _resolve(self, options: OptionsLike) -> AgentOptions:
        if options is not None:
            return self._merge(_coerce(options))
        if self._default_options is not None:
            return self._merge(self._default_options)
        return self.options()

    def _merge(self, options: AgentOptions) -> AgentOptions:
        """Copy *options* and fill its empty fields from config."""
        cfg = self._config
        merged = options.model_copy(deep=True)
        if not merged.model and cfg.model:
            merged.model = cfg.model
        if not merged.permission_mode and cfg.permission_mode:
            merged.permission_mode = cfg.permission_mode
        if not merged.cwd and cfg.cwd:
            merged.cwd = cfg.cwd
        if not merged.allowed_tools and cfg.allowed_tools:
            merged.allowed_tools = list(cfg.allowed_tools)
        if not merged.max_turns and cfg.max_turns:
            merged.max_turns = cfg.max_turns
        return merged


def _coerce(options: AgentOptions | dict[str, Any]) -> AgentOptions:
    if isinstance(options, AgentOptions):
        return options
    return AgentOptions.model_validate(options)
