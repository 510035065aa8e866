"""Tests for the tether CLI commands."""

from __future__ import annotations

import asyncio
import json
import signal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner, Result

from tether import __version__
from tether.cli import cli
from tether.commands.stream import _stream, render_message
from tether.config.parser import ENV_FALLBACKS, PROVIDER_ENV_FALLBACKS
from tether.messages.models import decode_message
from tether.options import AgentOptions

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

SYSTEM_LINE = '{"type":"system","subtype":"init","session_id":"s1"}'
ASSISTANT_LINE = json.dumps(
    {
        "type": "assistant",
        "message": {
            "content": [
                {"type": "text", "text": "Looking around"},
                {"type": "tool_use", "id": "t1", "name": "Glob", "input": {"pattern": "*.py"}},
            ]
        },
    }
)
RESULT_LINE = (
    '{"type":"result","subtype":"success","result":"Done","session_id":"s1",'
    '"total_cost_usd":0.02,"num_turns":2,"duration_ms":1500}'
)
ERROR_RESULT_LINE = '{"type":"result","subtype":"error_max_turns","is_error":true}'


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in [*ENV_FALLBACKS.values(), *PROVIDER_ENV_FALLBACKS.values()]:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.setenv("CLAUDE_AGENT_CLI_PATH", "/fake/bin/claude")


def _ndjson(*lines: str) -> bytes:
    return "".join(f"{line}\n" for line in lines).encode()


def _make_batch_process(stdout: bytes, stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    return proc


class _ChunkedStdout:
    """Stdout that returns each fed chunk once, then EOF."""

    def __init__(self, *chunks: bytes) -> None:
        self._chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        return self._chunks.pop(0) if self._chunks else b""


def _make_stream_process(*chunks: bytes, returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.returncode = None
    proc.stdout = _ChunkedStdout(*chunks)
    proc.stderr = MagicMock()
    proc.stderr.read = AsyncMock(return_value=b"")
    proc.wait = AsyncMock(return_value=returncode)
    return proc


def _invoke(args: list[str], proc: MagicMock) -> tuple[Result, MagicMock]:
    runner = CliRunner()
    with (
        runner.isolated_filesystem(),
        patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec,
    ):
        result = runner.invoke(cli, args)
    return result, mock_exec


# ------------------------------------------------------------------ #
# Root group
# ------------------------------------------------------------------ #


def test_help() -> None:
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "query" in result.output
    assert "stream" in result.output
    assert "init" in result.output


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"tether, version {__version__}" in result.output


def test_query_flags() -> None:
    result = CliRunner().invoke(cli, ["query", "--help"])
    assert result.exit_code == 0
    flags = [
        "--config",
        "--model",
        "--permission-mode",
        "--max-turns",
        "--allowed-tool",
        "--system-prompt",
        "--resume",
        "--cwd",
        "--json",
        "--verbose",
    ]
    for flag in flags:
        assert flag in result.output


# ------------------------------------------------------------------ #
# query
# ------------------------------------------------------------------ #


class TestQueryCommand:
    def test_prints_result_and_summary(self) -> None:
        proc = _make_batch_process(_ndjson(SYSTEM_LINE, ASSISTANT_LINE, RESULT_LINE))
        result, mock_exec = _invoke(["query", "hello"], proc)
        assert result.exit_code == 0, result.output
        assert "Done" in result.output
        assert "cost: $0.0200" in result.output
        assert "turns: 2" in result.output
        assert "session: s1" in result.output
        args = mock_exec.call_args.args
        assert args[0] == "/fake/bin/claude"
        assert args[-1] == "hello"

    def test_json_output(self) -> None:
        proc = _make_batch_process(_ndjson(SYSTEM_LINE, RESULT_LINE))
        result, _ = _invoke(["query", "hello", "--json"], proc)
        assert result.exit_code == 0
        assert json.loads(result.output)["result"] == "Done"

    def test_flags_forwarded(self) -> None:
        proc = _make_batch_process(_ndjson(RESULT_LINE))
        result, mock_exec = _invoke(
            [
                "query",
                "hi",
                "--model",
                "claude-haiku-4-5",
                "--permission-mode",
                "plan",
                "--max-turns",
                "3",
                "--allowed-tool",
                "Read",
                "--allowed-tool",
                "Grep",
                "--resume",
                "sess-9",
            ],
            proc,
        )
        assert result.exit_code == 0, result.output
        args = list(mock_exec.call_args.args)
        assert args[args.index("--model") + 1] == "claude-haiku-4-5"
        assert args[args.index("--permission-mode") + 1] == "plan"
        assert args[args.index("--max-turns") + 1] == "3"
        assert args[args.index("--allowed-tools") + 1] == "Read,Grep"
        assert args[args.index("--resume") + 1] == "sess-9"

    def test_config_defaults_used(self, tmp_path: Path) -> None:
        cfg = tmp_path / "tether.yaml"
        cfg.write_text("model: from-config\nmax_turns: 5\n", encoding="utf-8")
        proc = _make_batch_process(_ndjson(RESULT_LINE))
        result, mock_exec = _invoke(["query", "hi", "-c", str(cfg)], proc)
        assert result.exit_code == 0, result.output
        args = list(mock_exec.call_args.args)
        assert args[args.index("--model") + 1] == "from-config"
        assert args[args.index("--max-turns") + 1] == "5"

    def test_bad_config_exits_1(self, tmp_path: Path) -> None:
        cfg = tmp_path / "tether.yaml"
        cfg.write_text("bogus: true\n", encoding="utf-8")
        proc = _make_batch_process(b"")
        result, mock_exec = _invoke(["query", "hi", "-c", str(cfg)], proc)
        assert result.exit_code == 1
        assert "Error: Config validation failed" in result.output
        mock_exec.assert_not_called()

    def test_missing_cli_exits_1(self) -> None:
        proc = _make_batch_process(
            b"", stderr=b"bash: claude: command not found", returncode=127
        )
        result, _ = _invoke(["query", "hi"], proc)
        assert result.exit_code == 1
        assert "Error: Claude CLI not found" in result.output

    def test_error_result_exits_1(self) -> None:
        proc = _make_batch_process(_ndjson(ERROR_RESULT_LINE))
        result, _ = _invoke(["query", "hi"], proc)
        assert result.exit_code == 1


# ------------------------------------------------------------------ #
# stream
# ------------------------------------------------------------------ #


class TestStreamCommand:
    def test_prints_text_and_tool_lines(self) -> None:
        proc = _make_stream_process(
            _ndjson(SYSTEM_LINE), _ndjson(ASSISTANT_LINE), _ndjson(RESULT_LINE)
        )
        result, _ = _invoke(["stream", "hi"], proc)
        assert result.exit_code == 0, result.output
        assert "Looking around" in result.output
        assert "→ Glob" in result.output
        assert "cost: $0.0200" in result.output

    def test_json_lines(self) -> None:
        proc = _make_stream_process(_ndjson(SYSTEM_LINE, RESULT_LINE))
        result, _ = _invoke(["stream", "hi", "--json"], proc)
        assert result.exit_code == 0
        lines = [json.loads(line) for line in result.output.splitlines()]
        assert [line["type"] for line in lines] == ["system", "result"]

    def test_process_failure_exits_1(self) -> None:
        proc = _make_stream_process(returncode=2)
        result, _ = _invoke(["stream", "hi"], proc)
        assert result.exit_code == 1
        assert "Error: Claude CLI process failed with exit code 2" in result.output


class TestRenderMessage:
    def test_long_tool_input_truncated(self, capsys: pytest.CaptureFixture[str]) -> None:
        message = decode_message(
            {
                "type": "assistant",
                "message": {
                    "content": [
                        {"type": "tool_use", "id": "t", "name": "Write",
                         "input": {"content": "x" * 500}},
                    ]
                },
            }
        )
        render_message(message)
        out = capsys.readouterr().out
        assert "→ Write" in out
        assert out.rstrip().endswith("...")

    def test_other_messages_silent(self, capsys: pytest.CaptureFixture[str]) -> None:
        render_message(decode_message({"type": "system", "subtype": "init"}))
        assert capsys.readouterr().out == ""


class TestStreamInterrupt:
    async def test_sigint_handler_stops_client(self) -> None:
        client = MagicMock()
        client.stream_collect = AsyncMock(return_value=MagicMock(is_error=False))
        loop = asyncio.get_running_loop()
        with (
            patch.object(loop, "add_signal_handler") as add_handler,
            patch.object(loop, "remove_signal_handler") as remove_handler,
        ):
            await _stream(client, "hi", AgentOptions(), as_json=False)
        add_handler.assert_called_once_with(signal.SIGINT, client.stop)
        remove_handler.assert_called_once_with(signal.SIGINT)
