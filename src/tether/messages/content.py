"""Content blocks — the typed pieces inside a user or assistant turn."""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from tether.messages._coerce import as_bool, as_str


class _BlockBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextBlock(_BlockBase):
    """Plain text from the model (or the JSON of an unrecognised block)."""

    type: Literal["text"] = "text"
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}

    def __str__(self) -> str:
        return self.text


class ThinkingBlock(_BlockBase):
    """Extended-thinking trace.

    ``signature`` is opaque: the agent uses it to authenticate its own
    reasoning across turns, so it is carried through untouched.
    """

    type: Literal["thinking"] = "thinking"
    thinking: str = ""
    signature: str = ""

    @property
    def text(self) -> str:
        return self.thinking

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "thinking": self.thinking,
            "signature": self.signature,
        }


class ToolUseBlock(_BlockBase):
    """A tool invocation requested by the model."""

    type: Literal["tool_use"] = "tool_use"
    id: str = ""
    name: str = ""
    input: Any = Field(default_factory=dict)  # arguments as sent, usually an object

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.name, "input": self.input}


class ToolResultBlock(_BlockBase):
    """The outcome of a tool invocation, fed back to the model."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str = ""
    content: str | list[Any] | dict[str, Any] | None = None
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "tool_use_id": self.tool_use_id}
        if self.content is not None:
            data["content"] = self.content
        data["is_error"] = self.is_error
        return data


ContentBlock = TextBlock | ThinkingBlock | ToolUseBlock | ToolResultBlock
"""Union of every content block variant."""


def decode_content_block(data: dict[str, Any]) -> ContentBlock:
    """Decode one content block.  Never raises.

    Missing fields fall back to empty defaults; an unknown or missing
    ``type`` yields a :class:`TextBlock` holding the JSON of *data*.
    """
    if not isinstance(data, dict):
        return TextBlock(text=_dump(data))

    match data.get("type"):
        case "text":
            return TextBlock(text=as_str(data.get("text")))
        case "thinking":
            return ThinkingBlock(
                thinking=as_str(data.get("thinking")),
                signature=as_str(data.get("signature")),
            )
        case "tool_use":
            return ToolUseBlock(
                id=as_str(data.get("id")),
                name=as_str(data.get("name")),
                input=data.get("input", {}),
            )
        case "tool_result":
            content = data.get("content")
            if not isinstance(content, str | list | dict):
                content = None
            return ToolResultBlock(
                tool_use_id=as_str(data.get("tool_use_id")),
                content=content,
                is_error=as_bool(data.get("is_error")),
            )
        case _:
            return TextBlock(text=_dump(data))


def decode_content_blocks(value: Any) -> list[ContentBlock]:
    """Decode a ``content`` array; non-list values give an empty list."""
    if not isinstance(value, list):
        return []
    blocks: list[ContentBlock] = []
    for item in value:
        if isinstance(item, str):
            blocks.append(TextBlock(text=item))
        else:
            blocks.append(decode_content_block(item))
    return blocks


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)
