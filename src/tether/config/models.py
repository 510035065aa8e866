"""Pydantic v2 models for tether.yaml configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

PermissionMode = Literal["default", "acceptEdits", "dontAsk", "bypassPermissions", "plan"]


def _drop_unset(values: object) -> object:
    """Drop keys left empty in YAML (`key:` or `key: ""`) so defaults apply."""
    if not isinstance(values, dict):
        return values
    return {
        key: value
        for key, value in values.items()
        if value is not None and not (isinstance(value, str) and not value.strip())
    }


class ProvidersConfig(BaseModel):
    """Which cloud provider the CLI should route model calls through."""

    model_config = ConfigDict(extra="forbid")

    bedrock: bool = Field(default=False, description="Use Amazon Bedrock")
    vertex: bool = Field(default=False, description="Use Google Vertex AI")
    foundry: bool = Field(default=False, description="Use Microsoft Foundry")

    @model_validator(mode="before")
    @classmethod
    def _empty_as_unset(cls, values: object) -> object:
        return _drop_unset(values)

    def enabled(self) -> dict[str, bool]:
        return {name: on for name, on in self.model_dump().items() if on}


class TetherConfig(BaseModel):
    """Top-level tether.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    cli_path: str | None = Field(
        default=None,
        description="Path to the claude binary (auto-detected when unset)",
    )
    api_key: str | None = Field(
        default=None,
        description="Anthropic API key passed to the CLI as ANTHROPIC_API_KEY",
    )
    model: str | None = Field(
        default=None,
        description="Default model, e.g. 'claude-sonnet-4-5'",
    )
    permission_mode: PermissionMode = Field(
        default="default",
        description="Default permission mode for tool use",
    )
    cwd: str | None = Field(
        default=None,
        description="Default working directory for the CLI process",
    )
    allowed_tools: list[str] = Field(
        default_factory=list,
        description="Tools allowed by default",
    )
    max_turns: int | None = Field(
        default=None,
        ge=1,
        description="Default cap on agent turns",
    )
    process_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Wall-clock limit per invocation, in seconds",
    )
    providers: ProvidersConfig = Field(
        default_factory=ProvidersConfig,
        description="Cloud provider switches",
    )

    @model_validator(mode="before")
    @classmethod
    def _empty_as_unset(cls, values: object) -> object:
        return _drop_unset(values)
