"""Typed protocol messages, content blocks, and usage records."""

from tether.messages.content import (
    ContentBlock,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    decode_content_block,
    decode_content_blocks,
)
from tether.messages.models import (
    AssistantMessage,
    GenericMessage,
    Message,
    MessageKind,
    ResultMessage,
    SystemMessage,
    UserMessage,
    decode_message,
)
from tether.messages.usage import ModelUsage

__all__ = [
    "AssistantMessage",
    "ContentBlock",
    "GenericMessage",
    "Message",
    "MessageKind",
    "ModelUsage",
    "ResultMessage",
    "SystemMessage",
    "TextBlock",
    "ThinkingBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "UserMessage",
    "decode_content_block",
    "decode_content_blocks",
    "decode_message",
]
