"""Error types raised by the transport and client."""

from __future__ import annotations


class TetherError(Exception):
    """Base class for every error raised by tether."""


class TransportBusyError(TetherError):
    """Raised when a transport is asked to start while a process is live."""

    def __init__(self, state: str) -> None:
        self.state = state
        msg = f"Transport is busy (state: {state}) — one subprocess at a time"
        super().__init__(msg)


class CliMissingError(TetherError):
    """The agent CLI binary is absent or not executable."""

    def __init__(self, cli_path: str = "claude") -> None:
        self.cli_path = cli_path
        msg = (
            f"Claude CLI not found at '{cli_path}'.\n"
            "Install: npm install -g @anthropic-ai/claude-code"
        )
        super().__init__(msg)


class ProcessError(TetherError):
    """The subprocess failed without producing a usable result record."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)


class ProcessTimeoutError(ProcessError):
    """The subprocess exceeded the configured wall-clock timeout."""

    def __init__(self, timeout: float, stderr: str | None = None) -> None:
        self.timeout = timeout
        super().__init__(
            f"Claude CLI timed out after {timeout}s",
            exit_code=None,
            stderr=stderr,
        )


class ProtocolDecodeError(TetherError):
    """A line that was meant to be protocol JSON failed to parse."""

    def __init__(self, line: str, cause: Exception | None = None) -> None:
        self.line = line
        self.cause = cause
        preview = line if len(line) <= 200 else line[:200] + "..."
        super().__init__(f"Failed to parse JSON line: {preview}")
