"""Process transport — spawns the agent CLI and decodes its stream-json output."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import shlex
import signal
from collections.abc import AsyncIterator, Mapping
from enum import StrEnum
from pathlib import Path

from tether.discovery import CliLocator, find_cli
from tether.errors import (
    CliMissingError,
    ProcessError,
    ProcessTimeoutError,
    ProtocolDecodeError,
    TransportBusyError,
)
from tether.messages.models import Message, ResultMessage, decode_message
from tether.options import AgentOptions

logger = logging.getLogger(__name__)

#: Bytes requested per stdout read in streaming mode.
_CHUNK_BYTES = 65_536

#: Seconds to wait after SIGINT before SIGTERM.
_INTERRUPT_WAIT = 5.0

#: Seconds to wait after SIGTERM before SIGKILL.
_SIGTERM_WAIT = 3.0

#: Shell phrasing for a missing binary (also matches "command not found").
_NOT_FOUND_MARKER = "not found"

#: Trailing flags appended after the composed options, before the prompt.
_TRAILING_FLAGS = ("--verbose", "--print")

#: Provider switches → env var seeded when the switch is on.
_PROVIDER_ENV = {
    "bedrock": "CLAUDE_CODE_USE_BEDROCK",
    "vertex": "CLAUDE_CODE_USE_VERTEX",
    "foundry": "CLAUDE_CODE_USE_FOUNDRY",
}


class TransportState(StrEnum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


_ACTIVE_STATES = frozenset(
    {TransportState.STARTING, TransportState.RUNNING, TransportState.DRAINING}
)


# ------------------------------------------------------------------ #
# Line framing and decoding
# ------------------------------------------------------------------ #


def looks_like_json(line: str) -> bool:
    """True when *line* starts (after whitespace) with ``{`` or ``[``."""
    return line.lstrip().startswith(("{", "["))


def decode_line(line: str) -> Message | None:
    """Decode one line of CLI output.

    Returns ``None`` for blank lines and for incidental text (banners,
    warnings) that never claimed to be JSON.

    Raises:
        ProtocolDecodeError: the line starts like JSON but does not parse.
    """
    text = line.strip()
    if not text:
        return None

    # ValueError covers JSONDecodeError and the int-digit limit.
    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as exc:
        if looks_like_json(text):
            raise ProtocolDecodeError(text, exc) from exc
        logger.debug("Ignoring non-protocol output: %s", text[:200])
        return None

    if not isinstance(data, dict):
        logger.warning("Skipping JSON line that is not an object: %s", text[:200])
        return None

    return decode_message(data)


def parse_output(output: str) -> list[Message]:
    """Decode a complete captured stdout, line by line, in order."""
    messages: list[Message] = []
    for line in output.split("\n"):
        message = decode_line(line)
        if message is not None:
            messages.append(message)
    return messages


class LineBuffer:
    """Accumulates stdout chunks and releases complete lines one at a time.

    Lines are split on ``\\n`` at the byte level, so a multi-byte character
    split across two chunks is reassembled before decoding.  Bytes already
    searched for a newline are not searched again.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self._scanned = 0

    def feed(self, chunk: bytes) -> None:
        self._buf.extend(chunk)

    def pop_line(self) -> str | None:
        """Return the next complete line (without terminator), or ``None``."""
        pos = self._buf.find(b"\n", self._scanned)
        if pos == -1:
            self._scanned = len(self._buf)
            return None
        line = bytes(self._buf[:pos])
        del self._buf[: pos + 1]
        self._scanned = 0
        return line.decode(errors="replace")

    @property
    def scanned(self) -> int:
        """Bytes at the head of the buffer already searched for a newline."""
        return self._scanned

    def flush(self) -> str:
        """Return whatever is left without a trailing newline, and reset."""
        rest = bytes(self._buf)
        self._buf.clear()
        self._scanned = 0
        return rest.decode(errors="replace")

    def __len__(self) -> int:
        return len(self._buf)


# ------------------------------------------------------------------ #
# Transport
# ------------------------------------------------------------------ #


class ProcessTransport:
    """Runs the agent CLI, one subprocess at a time.

    Two modes of operation:

    * :meth:`run` waits for the process to exit and returns every
      decoded message.
    * :meth:`stream` yields each message as soon as its line arrives.
      Nothing further is read from stdout until the consumer asks for
      the next message.

    :meth:`stop` interrupts the live process (SIGINT, not a kill).
    """

    def __init__(
        self,
        cli_path: str | None = None,
        *,
        api_key: str | None = None,
        providers: Mapping[str, bool] | None = None,
        timeout: float | None = None,
        locate: CliLocator = find_cli,
    ) -> None:
        self._cli_path = cli_path or locate()
        self._timeout = timeout

        self._default_env: dict[str, str] = {}
        if api_key:
            self._default_env["ANTHROPIC_API_KEY"] = api_key
        for name, var in _PROVIDER_ENV.items():
            if providers and providers.get(name):
                self._default_env[var] = "1"

        # Written only by run()/stream(); stop() just reads it.
        self._process: asyncio.subprocess.Process | None = None
        self._state = TransportState.IDLE

    @property
    def cli_path(self) -> str:
        return self._cli_path

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def default_env(self) -> dict[str, str]:
        return dict(self._default_env)

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def pid(self) -> int | None:
        """PID of the live subprocess, if any."""
        proc = self._process
        if proc is None or proc.returncode is not None:
            return None
        return proc.pid

    # ------------------------------------------------------------------ #
    # Composition
    # ------------------------------------------------------------------ #

    def build_command(self, prompt: str, options: AgentOptions) -> list[str]:
        return [self._cli_path, *options.to_cli_args(), *_TRAILING_FLAGS, prompt]

    def build_env(self, options: AgentOptions) -> dict[str, str]:
        """Inherited environment, then provider defaults, then the caller's env."""
        return {**os.environ, **options.to_env(self._default_env)}

    # ------------------------------------------------------------------ #
    # Batch mode
    # ------------------------------------------------------------------ #

    async def run(
        self, prompt: str, options: AgentOptions | None = None
    ) -> list[Message]:
        """Run to completion and return every decoded message in order.

        Raises:
            CliMissingError: the binary could not be spawned or the shell
                reported it missing.
            ProcessError: non-zero exit with no result record.
            ProtocolDecodeError: a JSON-looking line failed to parse.
            TransportBusyError: another run is already in progress.
        """
        options = options or AgentOptions()
        proc = await self._spawn(prompt, options)
        try:
            stdout_bytes, stderr_bytes = await self._communicate(proc)
            self._state = TransportState.DRAINING
        finally:
            if proc.returncode is None:
                await self._shutdown(proc)
            self._release()

        stdout = stdout_bytes.decode(errors="replace")
        stderr = stderr_bytes.decode(errors="replace").strip()
        messages = parse_output(stdout)

        exit_code = proc.returncode
        if exit_code:
            if _NOT_FOUND_MARKER in stderr:
                raise CliMissingError(self._cli_path)
            if not any(isinstance(m, ResultMessage) for m in messages):
                raise self._process_error(exit_code, stderr)
            logger.warning(
                "Claude CLI exited with code %d after emitting a result; "
                "treating as success",
                exit_code,
            )

        if not messages and stdout.strip():
            first_line = stdout.strip().split("\n", 1)[0].strip()
            if looks_like_json(first_line):
                raise ProtocolDecodeError(first_line)

        return messages

    async def _communicate(
        self, proc: asyncio.subprocess.Process
    ) -> tuple[bytes, bytes]:
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self._timeout
            )
        except TimeoutError:
            await self._kill(proc)
            logger.error("Claude CLI timed out after %ss", self._timeout)
            raise ProcessTimeoutError(self._timeout or 0.0) from None
        return stdout or b"", stderr or b""

    # ------------------------------------------------------------------ #
    # Streaming mode
    # ------------------------------------------------------------------ #

    async def stream(
        self, prompt: str, options: AgentOptions | None = None
    ) -> AsyncIterator[Message]:
        """Yield messages as the CLI emits them.

        Once at least one message has been yielded, a non-zero exit is
        logged but not raised.  Output that starts like JSON but yields no
        message raises :class:`ProtocolDecodeError`, as in :meth:`run`.
        Closing the iterator early shuts the subprocess down.
        """
        options = options or AgentOptions()
        proc = await self._spawn(prompt, options)
        loop = asyncio.get_running_loop()
        deadline = None if self._timeout is None else loop.time() + self._timeout
        stderr_task = asyncio.create_task(_read_all(proc.stderr))

        buffer = LineBuffer()
        emitted = 0
        first_line: str | None = None
        finished = False
        try:
            while True:
                chunk = await self._until(proc, _read_chunk(proc), deadline)
                if not chunk:
                    break
                buffer.feed(chunk)
                while (line := buffer.pop_line()) is not None:
                    if first_line is None and line.strip():
                        first_line = line.strip()
                    message = decode_line(line)
                    if message is not None:
                        emitted += 1
                        yield message

            self._state = TransportState.DRAINING
            line = buffer.flush()
            if first_line is None and line.strip():
                first_line = line.strip()
            message = decode_line(line)
            if message is not None:
                emitted += 1
                yield message

            exit_code = await self._until(proc, proc.wait(), deadline)
            stderr = (await stderr_task).decode(errors="replace").strip()
            finished = True
        finally:
            if not finished:
                stderr_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await stderr_task
                await self._shutdown(proc)
            self._release()

        if exit_code:
            if not emitted:
                if _NOT_FOUND_MARKER in stderr:
                    raise CliMissingError(self._cli_path)
                raise self._process_error(exit_code, stderr)
            logger.warning(
                "Claude CLI exited with code %d after streaming %d message(s)",
                exit_code,
                emitted,
            )

        # Same rule as run(): JSON-shaped output that decoded to nothing.
        if not emitted and first_line is not None and looks_like_json(first_line):
            raise ProtocolDecodeError(first_line)

    async def _until(self, proc, awaitable, deadline):  # type: ignore[no-untyped-def]
        """Await *awaitable*, killing the process if *deadline* passes."""
        if deadline is None:
            return await awaitable
        remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except TimeoutError:
            await self._kill(proc)
            logger.error("Claude CLI timed out after %ss", self._timeout)
            raise ProcessTimeoutError(self._timeout or 0.0) from None

    # ------------------------------------------------------------------ #
    # Cancellation
    # ------------------------------------------------------------------ #

    def stop(self) -> None:
        """Interrupt the running process so it can flush and exit.

        No-op when nothing is running.  Never raises.
        """
        proc = self._process
        if proc is None or self._state not in (
            TransportState.RUNNING,
            TransportState.DRAINING,
        ):
            return
        if proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            proc.send_signal(signal.SIGINT)
        logger.info("Sent SIGINT to Claude CLI (pid %s)", proc.pid)

    # ------------------------------------------------------------------ #
    # Lifecycle internals
    # ------------------------------------------------------------------ #

    async def _spawn(
        self, prompt: str, options: AgentOptions
    ) -> asyncio.subprocess.Process:
        if self._state in _ACTIVE_STATES:
            raise TransportBusyError(self._state)
        self._state = TransportState.STARTING

        if options.cwd and not Path(options.cwd).is_dir():
            self._state = TransportState.TERMINATED
            msg = f"Working directory does not exist: {options.cwd}"
            raise ProcessError(msg)

        args = self.build_command(prompt, options)
        logger.debug("Spawning: %s", shlex.join(args[:-1]))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=options.cwd,
                env=self.build_env(options),
                start_new_session=True,
            )
        except (FileNotFoundError, PermissionError) as exc:
            self._state = TransportState.TERMINATED
            logger.error("Claude CLI not found at %s: %s", self._cli_path, exc)
            raise CliMissingError(self._cli_path) from exc
        except OSError as exc:
            self._state = TransportState.TERMINATED
            msg = f"Failed to spawn Claude CLI: {exc}"
            logger.error(msg)
            raise ProcessError(msg) from exc

        self._process = proc
        self._state = TransportState.RUNNING
        return proc

    def _release(self) -> None:
        self._process = None
        self._state = TransportState.TERMINATED

    def _process_error(self, exit_code: int, stderr: str) -> ProcessError:
        msg = f"Claude CLI process failed with exit code {exit_code}"
        preview = _stderr_tail(stderr)
        if preview:
            logger.error("%s. Stderr:\n  %s", msg, preview)
        else:
            logger.error(msg)
        return ProcessError(msg, exit_code=exit_code, stderr=stderr or None)

    async def _shutdown(self, proc: asyncio.subprocess.Process) -> None:
        """Graceful stop: SIGINT -> wait -> SIGTERM -> wait -> SIGKILL."""
        if proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            proc.send_signal(signal.SIGINT)
        try:
            await asyncio.wait_for(proc.wait(), timeout=_INTERRUPT_WAIT)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=_SIGTERM_WAIT)
            except TimeoutError:
                await self._kill(proc)

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


async def _read_chunk(proc: asyncio.subprocess.Process) -> bytes:
    if proc.stdout is None:
        return b""
    return await proc.stdout.read(_CHUNK_BYTES)


async def _read_all(reader: asyncio.StreamReader | None) -> bytes:
    if reader is None:
        return b""
    return await reader.read()


def _stderr_tail(stderr: str, limit: int = 5) -> str:
    """Last *limit* non-blank stderr lines, indented for a log record."""
    tail = [line for line in stderr.splitlines() if line.strip()][-limit:]
    return "\n  ".join(tail)
