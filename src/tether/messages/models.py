"""Protocol messages — one per stream-json line emitted by the agent CLI."""

from __future__ import annotations

import json
import logging
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from tether.messages._coerce import (
    as_bool,
    as_dict,
    as_int,
    as_opt_dict,
    as_opt_float,
    as_opt_str,
    as_str,
)
from tether.messages.content import (
    ContentBlock,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
    decode_content_blocks,
)
from tether.messages.usage import ModelUsage

logger = logging.getLogger(__name__)

#: Sentinel type for records that carry no ``type`` field at all.
UNKNOWN_TYPE = "unknown"

#: Accepted spellings of the per-model usage map, first match wins.
_MODEL_USAGE_KEYS = ("model_usage", "modelUsage")


class MessageKind(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    RESULT = "result"
    GENERIC = "generic"


class _MessageBase(BaseModel):
    """Common envelope: the wire ``type`` and the verbatim decoded object."""

    model_config = ConfigDict(frozen=True)

    type: str
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @property
    def kind(self) -> MessageKind:
        return MessageKind(self.type)

    def to_dict(self) -> dict[str, Any]:
        """Return a copy of the original payload."""
        return dict(self.raw)

    def to_json(self) -> str:
        return json.dumps(self.raw, ensure_ascii=False)


class UserMessage(_MessageBase):
    """A user turn — either the prompt or tool results fed back to the model."""

    type: Literal["user"] = "user"
    content: str | list[ContentBlock] = ""
    uuid: str | None = None
    parent_tool_use_id: str | None = None


class AssistantMessage(_MessageBase):
    """A model turn made of content blocks."""

    type: Literal["assistant"] = "assistant"
    content: list[ContentBlock] = Field(default_factory=list)
    id: str | None = None
    model: str | None = None
    usage: dict[str, Any] | None = None
    parent_tool_use_id: str | None = None

    @property
    def text(self) -> str:
        """All text blocks joined by newlines."""
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def thinking(self) -> list[ThinkingBlock]:
        return [b for b in self.content if isinstance(b, ThinkingBlock)]


class SystemMessage(_MessageBase):
    """A system record such as the ``init`` event that opens a session."""

    type: Literal["system"] = "system"
    subtype: str = ""
    session_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict, repr=False)

    @property
    def is_init(self) -> bool:
        return self.subtype == "init"

    @property
    def model(self) -> str | None:
        return as_opt_str(self.data.get("model"))

    @property
    def cwd(self) -> str | None:
        return as_opt_str(self.data.get("cwd"))

    @property
    def tools(self) -> list[str]:
        tools = self.data.get("tools")
        if not isinstance(tools, list):
            return []
        return [t for t in tools if isinstance(t, str)]

    @property
    def mcp_servers(self) -> list[dict[str, Any]]:
        servers = self.data.get("mcp_servers")
        if not isinstance(servers, list):
            return []
        return [s for s in servers if isinstance(s, dict)]


class ResultMessage(_MessageBase):
    """The final record of an invocation, with cost and usage totals."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    type: Literal["result"] = "result"
    subtype: str = ""
    result: str | None = None
    session_id: str | None = None
    duration_ms: int = 0
    duration_api_ms: int = 0
    is_error: bool = False
    num_turns: int = 0
    total_cost_usd: float | None = None
    usage: dict[str, Any] | None = None
    model_usage: dict[str, Any] | None = None
    structured_output: Any = None

    @property
    def is_success(self) -> bool:
        return self.subtype == "success"

    def parsed_model_usage(self) -> dict[str, ModelUsage]:
        """Per-model usage as typed :class:`ModelUsage` values."""
        if not self.model_usage:
            return {}
        return {
            model: ModelUsage.from_dict(usage)
            for model, usage in self.model_usage.items()
            if isinstance(usage, dict)
        }

    @property
    def cache_read_tokens(self) -> int:
        return sum(u.cache_read_input_tokens for u in self.parsed_model_usage().values())

    @property
    def cache_creation_tokens(self) -> int:
        return sum(
            u.cache_creation_input_tokens for u in self.parsed_model_usage().values()
        )

    @property
    def total_input_tokens(self) -> int:
        return sum(u.total_input_tokens for u in self.parsed_model_usage().values())

    @property
    def cache_hit_rate(self) -> float:
        """Cache-read share of input across all models (``0.0`` when empty)."""
        total = self.total_input_tokens
        if total <= 0:
            return 0.0
        return self.cache_read_tokens / total


class GenericMessage(_MessageBase):
    """Any record whose ``type`` is not recognised."""

    payload: dict[str, Any] = Field(default_factory=dict, repr=False)

    @property
    def kind(self) -> MessageKind:
        return MessageKind.GENERIC


Message = UserMessage | AssistantMessage | SystemMessage | ResultMessage | GenericMessage
"""Union of every protocol message variant."""


# ------------------------------------------------------------------ #
# Decoding
# ------------------------------------------------------------------ #


def decode_message(data: dict[str, Any]) -> Message:
    """Decode one protocol record.  Never raises.

    Dispatches on ``type``; anything unrecognised (or a missing ``type``)
    becomes a :class:`GenericMessage`.
    """
    if not isinstance(data, dict):
        return GenericMessage(type=UNKNOWN_TYPE, payload={}, raw={})

    match data.get("type"):
        case "user":
            return _decode_user(data)
        case "assistant":
            return _decode_assistant(data)
        case "system":
            return _decode_system(data)
        case "result":
            return _decode_result(data)
        case str() as other:
            return GenericMessage(type=other, payload=data, raw=data)
        case _:
            return GenericMessage(type=UNKNOWN_TYPE, payload=data, raw=data)


def _envelope(data: dict[str, Any]) -> dict[str, Any]:
    """Return the nested ``message`` object, or *data* itself when flattened."""
    nested = data.get("message")
    return nested if isinstance(nested, dict) else data


def _field(data: dict[str, Any], inner: dict[str, Any], key: str) -> Any:
    """Read *key* preferring the nested envelope over a flattened sibling."""
    if inner is data:
        return data.get(key)
    if key in inner:
        if key in data and data[key] != inner[key]:
            logger.debug(
                "%s record has conflicting '%s' in envelope and top level; "
                "using the envelope value",
                data.get("type"),
                key,
            )
        return inner[key]
    return data.get(key)


def _decode_user(data: dict[str, Any]) -> UserMessage:
    inner = _envelope(data)
    raw_content = _field(data, inner, "content")
    content: str | list[ContentBlock]
    if isinstance(raw_content, list):
        content = decode_content_blocks(raw_content)
    else:
        content = as_str(raw_content)
    return UserMessage(
        content=content,
        uuid=as_opt_str(data.get("uuid")),
        parent_tool_use_id=as_opt_str(data.get("parent_tool_use_id")),
        raw=data,
    )


def _decode_assistant(data: dict[str, Any]) -> AssistantMessage:
    inner = _envelope(data)
    return AssistantMessage(
        content=decode_content_blocks(_field(data, inner, "content")),
        id=as_opt_str(_field(data, inner, "id")),
        model=as_opt_str(_field(data, inner, "model")),
        usage=as_opt_dict(_field(data, inner, "usage")),
        parent_tool_use_id=as_opt_str(data.get("parent_tool_use_id")),
        raw=data,
    )


def _decode_system(data: dict[str, Any]) -> SystemMessage:
    return SystemMessage(
        subtype=as_str(data.get("subtype")),
        session_id=as_opt_str(data.get("session_id")),
        data=data,
        raw=data,
    )


def _decode_result(data: dict[str, Any]) -> ResultMessage:
    model_usage: dict[str, Any] | None = None
    for key in _MODEL_USAGE_KEYS:
        if isinstance(data.get(key), dict):
            model_usage = as_dict(data[key])
            break
    return ResultMessage(
        subtype=as_str(data.get("subtype")),
        result=as_opt_str(data.get("result")),
        session_id=as_opt_str(data.get("session_id")),
        duration_ms=as_int(data.get("duration_ms")),
        duration_api_ms=as_int(data.get("duration_api_ms")),
        is_error=as_bool(data.get("is_error")),
        num_turns=as_int(data.get("num_turns")),
        total_cost_usd=as_opt_float(data.get("total_cost_usd")),
        usage=as_opt_dict(data.get("usage")),
        model_usage=model_usage,
        structured_output=data.get("structured_output"),
        raw=data,
    )
