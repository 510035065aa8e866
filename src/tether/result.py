"""Aggregate view over the messages of one invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tether.messages.content import ToolUseBlock
from tether.messages.models import (
    AssistantMessage,
    Message,
    ResultMessage,
    SystemMessage,
)


@dataclass(frozen=True)
class QueryResult:
    """Everything a finished query produced, plus convenience accessors.

    ``result`` is the last :class:`ResultMessage` seen (``None`` when the
    run ended without one).  ``session_id`` is taken from the first
    system or result record that carries one.
    """

    messages: list[Message] = field(default_factory=list)

    @property
    def result(self) -> ResultMessage | None:
        for message in reversed(self.messages):
            if isinstance(message, ResultMessage):
                return message
        return None

    @property
    def session_id(self) -> str | None:
        for message in self.messages:
            if isinstance(message, SystemMessage | ResultMessage) and message.session_id:
                return message.session_id
        return None

    @property
    def text(self) -> str | None:
        result = self.result
        return result.result if result else None

    @property
    def structured(self) -> Any:
        result = self.result
        return result.structured_output if result else None

    @property
    def is_success(self) -> bool:
        result = self.result
        return result.is_success if result else False

    @property
    def is_error(self) -> bool:
        result = self.result
        return result.is_error if result else True

    @property
    def cost_usd(self) -> float | None:
        result = self.result
        return result.total_cost_usd if result else None

    @property
    def turns(self) -> int:
        result = self.result
        return result.num_turns if result else 0

    @property
    def duration_ms(self) -> int:
        result = self.result
        return result.duration_ms if result else 0

    @property
    def assistant_messages(self) -> list[AssistantMessage]:
        return [m for m in self.messages if isinstance(m, AssistantMessage)]

    @property
    def full_text(self) -> str:
        """Text of every assistant turn, blank turns skipped."""
        return "\n".join(m.text for m in self.assistant_messages if m.text)

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [block for m in self.assistant_messages for block in m.tool_uses]
