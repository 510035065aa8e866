"""Invocation options and their serialization to CLI flags and env vars."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HookEvent(StrEnum):
    """Lifecycle points at which the CLI can run hook commands."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"
    PRE_COMPACT = "PreCompact"


class HookMatcher(BaseModel):
    """A set of hook commands, optionally restricted to matching tool names."""

    model_config = ConfigDict(extra="forbid")

    matcher: str | None = Field(
        default=None,
        description="Regex matched against tool names (None matches all)",
    )
    hooks: list[str] = Field(
        default_factory=list,
        description="Shell commands to run when the hook fires",
    )
    timeout: int | None = Field(
        default=None,
        ge=1,
        description="Per-command timeout in seconds (CLI default: 60)",
    )

    @classmethod
    def command(
        cls,
        command: str,
        matcher: str | None = None,
        timeout: int | None = None,
    ) -> HookMatcher:
        """Shorthand for a matcher that runs a single command."""
        return cls(matcher=matcher, hooks=[command], timeout=timeout)

    def to_dict(self) -> dict[str, Any]:
        hooks: list[dict[str, Any]] = []
        for cmd in self.hooks:
            entry: dict[str, Any] = {"type": "command", "command": cmd}
            if self.timeout is not None:
                entry["timeout"] = self.timeout
            hooks.append(entry)
        data: dict[str, Any] = {"hooks": hooks}
        if self.matcher is not None:
            data["matcher"] = self.matcher
        return data


class McpServerConfig(BaseModel):
    """An MCP server the agent may connect to (stdio or SSE)."""

    model_config = ConfigDict(extra="forbid")

    command: str = Field(description="Executable for stdio, URL for sse")
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Environment for stdio, HTTP headers for sse",
    )
    type: str | None = None

    @classmethod
    def stdio(
        cls,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> McpServerConfig:
        return cls(command=command, args=args or [], env=env or {}, type="stdio")

    @classmethod
    def sse(cls, url: str, headers: dict[str, str] | None = None) -> McpServerConfig:
        return cls(command=url, env=headers or {}, type="sse")

    def to_dict(self) -> dict[str, Any]:
        if self.type == "sse":
            data: dict[str, Any] = {"type": "sse", "url": self.command}
            if self.env:
                data["headers"] = self.env
            return data

        data = {"command": self.command}
        if self.args:
            data["args"] = self.args
        if self.env:
            data["env"] = self.env
        return data


class AgentDefinition(BaseModel):
    """A named sub-agent the main agent can delegate to."""

    model_config = ConfigDict(extra="forbid")

    description: str
    prompt: str
    tools: list[str] | None = None
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AgentOptions(BaseModel):
    """Everything that shapes a single CLI invocation.

    Unknown keys are ignored so option dicts can be shared with other
    tools.  Helper methods mutate in place and return ``self`` so they
    can be chained.
    """

    model_config = ConfigDict(extra="ignore")

    allowed_tools: list[str] = Field(default_factory=list)
    disallowed_tools: list[str] = Field(default_factory=list)
    system_prompt: str | dict[str, Any] | None = None
    mcp_servers: dict[str, McpServerConfig | dict[str, Any]] = Field(
        default_factory=dict
    )
    permission_mode: str | None = None
    continue_conversation: bool = False
    resume: str | None = Field(default=None, description="Session id to resume")
    fork_session: bool = False
    max_turns: int | None = None
    model: str | None = None
    output_format: dict[str, Any] | None = None
    cwd: str | None = Field(default=None, description="Subprocess working directory")
    settings: str | None = None
    add_dirs: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    extra_args: dict[str, str | None] = Field(default_factory=dict)
    hooks: dict[str, list[HookMatcher]] | None = None
    user: str | None = None
    include_partial_messages: bool = False
    agents: dict[str, AgentDefinition] | None = None
    setting_sources: list[str] | None = None
    sandbox: dict[str, Any] | None = None
    plugins: list[dict[str, str]] = Field(default_factory=list)
    enable_file_checkpointing: bool = False
    max_budget_usd: float | None = None
    max_thinking_tokens: int | None = None
    fallback_model: str | None = None
    betas: list[str] = Field(default_factory=list)

    # ------------------------------------------------------------------ #
    # Builders
    # ------------------------------------------------------------------ #

    def use_preset_prompt(self, append: str | None = None) -> AgentOptions:
        """Use the CLI's built-in system prompt, optionally extended."""
        prompt: dict[str, Any] = {"type": "preset", "preset": "claude_code"}
        if append:
            prompt["append"] = append
        self.system_prompt = prompt
        return self

    def with_output_schema(self, schema: dict[str, Any]) -> AgentOptions:
        """Ask for a structured answer matching a JSON schema."""
        self.output_format = {"type": "json_schema", "schema": schema}
        return self

    def add_mcp_server(
        self, name: str, config: McpServerConfig | dict[str, Any]
    ) -> AgentOptions:
        self.mcp_servers[name] = config
        return self

    def add_agent(
        self, name: str, definition: AgentDefinition | dict[str, Any]
    ) -> AgentOptions:
        if self.agents is None:
            self.agents = {}
        if not isinstance(definition, AgentDefinition):
            definition = AgentDefinition.model_validate(definition)
        self.agents[name] = definition
        return self

    def add_plugin(self, path: str) -> AgentOptions:
        self.plugins.append({"type": "local", "path": path})
        return self

    def add_hook(self, event: HookEvent | str, matcher: HookMatcher) -> AgentOptions:
        if self.hooks is None:
            self.hooks = {}
        self.hooks.setdefault(str(event), []).append(matcher)
        return self

    def pre_tool_use(
        self,
        command: str,
        matcher: str | None = None,
        timeout: int | None = None,
    ) -> AgentOptions:
        return self.add_hook(
            HookEvent.PRE_TOOL_USE, HookMatcher.command(command, matcher, timeout)
        )

    def post_tool_use(
        self,
        command: str,
        matcher: str | None = None,
        timeout: int | None = None,
    ) -> AgentOptions:
        return self.add_hook(
            HookEvent.POST_TOOL_USE, HookMatcher.command(command, matcher, timeout)
        )

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #

    def to_cli_args(self) -> list[str]:
        """Build the protocol flags that precede the prompt."""
        args = ["--output-format", "stream-json"]

        if self.model:
            args += ["--model", self.model]
        if self.permission_mode:
            args += ["--permission-mode", self.permission_mode]
        if self.max_turns:
            args += ["--max-turns", str(self.max_turns)]
        if self.resume:
            args += ["--resume", self.resume]
        if self.fork_session:
            args.append("--fork-session")
        if self.continue_conversation:
            args.append("--continue")

        if isinstance(self.system_prompt, str) and self.system_prompt:
            args += ["--system-prompt", self.system_prompt]
        elif isinstance(self.system_prompt, dict):
            args += ["--system-prompt", json.dumps(self.system_prompt)]

        if self.allowed_tools:
            args += ["--allowed-tools", ",".join(self.allowed_tools)]
        if self.disallowed_tools:
            args += ["--disallowed-tools", ",".join(self.disallowed_tools)]
        for directory in self.add_dirs:
            args += ["--add-dir", directory]

        if self.output_format:
            schema = self.output_format.get("schema", {})
            args += ["--output-format-json-schema", json.dumps(schema)]
        if self.settings:
            args += ["--settings", self.settings]

        if self.mcp_servers:
            servers = {
                name: cfg.to_dict() if isinstance(cfg, McpServerConfig) else cfg
                for name, cfg in self.mcp_servers.items()
            }
            args += ["--mcp-servers", json.dumps(servers)]

        for source in self.setting_sources or []:
            args += ["--setting-source", source]

        if self.agents:
            agents = {name: a.to_dict() for name, a in self.agents.items()}
            args += ["--agents", json.dumps(agents)]

        if self.hooks:
            hooks = {
                event: [m.to_dict() for m in matchers]
                for event, matchers in self.hooks.items()
            }
            args += ["--hooks", json.dumps(hooks)]

        if self.plugins:
            args += ["--plugins", json.dumps(self.plugins)]
        if self.sandbox:
            args += ["--sandbox", json.dumps(self.sandbox)]
        if self.enable_file_checkpointing:
            args.append("--enable-file-checkpointing")
        if self.include_partial_messages:
            args.append("--include-partial-messages")
        if self.user:
            args += ["--user", self.user]
        if self.max_budget_usd is not None:
            args += ["--max-budget-usd", str(self.max_budget_usd)]
        if self.max_thinking_tokens is not None:
            args += ["--max-thinking-tokens", str(self.max_thinking_tokens)]
        if self.fallback_model:
            args += ["--fallback-model", self.fallback_model]
        for beta in self.betas:
            args += ["--beta", beta]

        for flag, value in self.extra_args.items():
            args.append(f"--{flag}")
            if value is not None:
                args.append(value)

        return args

    def to_env(self, defaults: dict[str, str] | None = None) -> dict[str, str]:
        """Merge *defaults* with this invocation's env; ours wins."""
        return {**(defaults or {}), **self.env}
