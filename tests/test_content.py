"""Tests for content block decoding."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from tether.messages.content import (
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    decode_content_block,
    decode_content_blocks,
)


class TestDecodeKnownBlocks:
    """Each discriminator maps to its block type."""

    def test_text(self) -> None:
        block = decode_content_block({"type": "text", "text": "hello"})
        assert block == TextBlock(text="hello")
        assert str(block) == "hello"

    def test_thinking_keeps_signature(self) -> None:
        block = decode_content_block(
            {"type": "thinking", "thinking": "hmm", "signature": "sig-abc=="}
        )
        assert isinstance(block, ThinkingBlock)
        assert block.text == "hmm"
        assert block.signature == "sig-abc=="

    def test_thinking_signature_defaults_empty(self) -> None:
        block = decode_content_block({"type": "thinking", "thinking": "hmm"})
        assert isinstance(block, ThinkingBlock)
        assert block.signature == ""

    def test_tool_use(self) -> None:
        block = decode_content_block(
            {
                "type": "tool_use",
                "id": "toolu_1",
                "name": "Read",
                "input": {"file_path": "/tmp/x"},
            }
        )
        assert block == ToolUseBlock(
            id="toolu_1", name="Read", input={"file_path": "/tmp/x"}
        )

    @pytest.mark.parametrize("value", [["a", "b"], "ls -la", 3, None])
    def test_tool_use_input_kept_as_sent(self, value: object) -> None:
        block = decode_content_block({"type": "tool_use", "name": "Bash", "input": value})
        assert isinstance(block, ToolUseBlock)
        assert block.input == value
        assert block.to_dict()["input"] == value

    def test_tool_result_string_content(self) -> None:
        block = decode_content_block(
            {"type": "tool_result", "tool_use_id": "toolu_1", "content": "ok"}
        )
        assert isinstance(block, ToolResultBlock)
        assert block.content == "ok"
        assert block.is_error is False

    def test_tool_result_structured_content(self) -> None:
        content = [{"type": "text", "text": "line"}]
        block = decode_content_block(
            {
                "type": "tool_result",
                "tool_use_id": "toolu_1",
                "content": content,
                "is_error": True,
            }
        )
        assert isinstance(block, ToolResultBlock)
        assert block.content == content
        assert block.is_error is True

    def test_tool_result_without_content(self) -> None:
        block = decode_content_block({"type": "tool_result", "tool_use_id": "t"})
        assert isinstance(block, ToolResultBlock)
        assert block.content is None
        assert "content" not in block.to_dict()


class TestLenientDecoding:
    """Decoding never raises; gaps become defaults."""

    def test_missing_fields_default_empty(self) -> None:
        block = decode_content_block({"type": "tool_use"})
        assert block == ToolUseBlock(id="", name="", input={})

    def test_wrong_field_types_default_empty(self) -> None:
        block = decode_content_block({"type": "text", "text": 42})
        assert block == TextBlock(text="")

    def test_unknown_type_becomes_text_with_json(self) -> None:
        data = {"type": "image", "source": {"data": "..."}}
        block = decode_content_block(data)
        assert isinstance(block, TextBlock)
        assert json.loads(block.text) == data

    def test_missing_type_becomes_text_with_json(self) -> None:
        block = decode_content_block({"foo": "bar"})
        assert isinstance(block, TextBlock)
        assert json.loads(block.text) == {"foo": "bar"}

    def test_empty_object(self) -> None:
        block = decode_content_block({})
        assert block == TextBlock(text="{}")

    @pytest.mark.parametrize("value", [None, 3, "x", [1, 2]])
    def test_non_object(self, value: object) -> None:
        block = decode_content_block(value)  # type: ignore[arg-type]
        assert isinstance(block, TextBlock)


class TestDecodeBlockList:
    def test_preserves_order(self) -> None:
        blocks = decode_content_blocks(
            [
                {"type": "thinking", "thinking": "a"},
                {"type": "text", "text": "b"},
                {"type": "tool_use", "id": "1", "name": "Bash", "input": {}},
            ]
        )
        assert [type(b) for b in blocks] == [ThinkingBlock, TextBlock, ToolUseBlock]

    def test_bare_strings_are_text(self) -> None:
        assert decode_content_blocks(["hi"]) == [TextBlock(text="hi")]

    def test_non_list_is_empty(self) -> None:
        assert decode_content_blocks("hello") == []
        assert decode_content_blocks(None) == []


class TestBlocksAreImmutable:
    def test_cannot_assign(self) -> None:
        block = TextBlock(text="x")
        with pytest.raises(ValidationError):
            block.text = "y"  # type: ignore[misc]


class TestToDict:
    def test_round_trips_through_decoder(self) -> None:
        originals = [
            {"type": "text", "text": "a"},
            {"type": "thinking", "thinking": "b", "signature": "s"},
            {"type": "tool_use", "id": "1", "name": "Bash", "input": {"cmd": "ls"}},
            {"type": "tool_result", "tool_use_id": "1", "content": "x", "is_error": False},
        ]
        for data in originals:
            assert decode_content_block(data).to_dict() == data
