from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Sequence
from typing import IO, TYPE_CHECKING

from ..errors import (
    InvalidInputError,
    ProcessExecutionError,
    ProcessSpawnError,
    ProcessTimeoutError,
)
from .config import build_command, validate_engine_command
from .types import ProcessOutcome

if TYPE_CHECKING:
    from ..settings import RunnerSettings

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_KILL_GRACE_SECONDS = 5.0


def _feed(stream: IO[bytes], data: bytes) -> None:
    """Write the whole payload to the process stdin, then close it.

    Example:
        ```python
        _feed(proc.stdin, b'{"id": 1}')
        ```
    """
    try:
        stream.write(data)
        stream.flush()
    except BrokenPipeError:
        # Engine exited without reading everything; its exit status decides.
        logger.debug("Engine closed stdin before consuming %d bytes", len(data))
    except (OSError, ValueError) as exc:
        logger.debug("Writing engine stdin failed: %s", exc)
    finally:
        try:
            stream.close()
        except (OSError, ValueError):
            pass


def _drain(stream: IO[bytes], chunks: list[bytes]) -> None:
    """Read a stream to EOF, appending chunks in receipt order.

    Example:
        ```python
        chunks: list[bytes] = []
        _drain(proc.stdout, chunks)
        ```
    """
    for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
        chunks.append(chunk)


def _decode(chunks: list[bytes]) -> str:
    """Join and decode accumulated bytes as UTF-8.

    Example:
        ```python
        text = _decode([b'{"a"', b":1}"])
        ```
    """
    return b"".join(chunks).decode("utf-8", errors="replace")


def _remaining(deadline: float | None) -> float | None:
    """Seconds left until a monotonic deadline, or None for no deadline.

    Example:
        ```python
        wait_for = _remaining(time.monotonic() + 5)
        ```
    """
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def _kill_group(proc: subprocess.Popen[bytes]) -> None:
    """Kill the engine and everything it spawned in its session.

    Example:
        ```python
        _kill_group(proc)
        ```
    """
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, PermissionError):
            pass
    if proc.poll() is None:
        proc.kill()


class ProcessEngine:
    """Run the query engine as a subprocess, one process per call.

    Example:
        ```python
        engine = ProcessEngine(engine_command=["zq"], timeout_seconds=30)
        outcome = engine.run('[{"id": 1}]', "cut id")
        ```
    """

    def __init__(
        self,
        *,
        engine_command: Sequence[str] | None = None,
        timeout_seconds: int = 0,
    ) -> None:
        """Validate the engine command prefix and optional timeout.

        Example:
            ```python
            engine = ProcessEngine(engine_command=["/opt/zed/bin/zq"])
            ```
        """
        if timeout_seconds < 0:
            raise ValueError("timeout_seconds must be zero (disabled) or positive")
        self._engine_command = validate_engine_command(engine_command)
        self._timeout_seconds = int(timeout_seconds)

    @classmethod
    def from_settings(cls, settings: "RunnerSettings") -> "ProcessEngine":
        """Create an engine from resolved runner settings.

        Example:
            ```python
            engine = ProcessEngine.from_settings(RunnerSettings.from_file("/tmp/zq_runner.toml"))
            ```
        """
        return cls(
            engine_command=settings.engine_command,
            timeout_seconds=settings.timeout_seconds,
        )

    @property
    def engine_command(self) -> list[str]:
        """Return a copy of the engine command prefix.

        Example:
            ```python
            prefix = engine.engine_command
            ```
        """
        return list(self._engine_command)

    def run(self, input_payload: str, query_text: str) -> ProcessOutcome:
        """Execute one query, draining stdout and stderr concurrently.

        Example:
            ```python
            outcome = engine.run('{"name": "Alice"}', "yield this")
            ```
        """
        if not query_text or not query_text.strip():
            raise InvalidInputError("ZQuery statement cannot be empty")

        cmd = build_command(self._engine_command, query_text)
        try:
            data = input_payload.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise InvalidInputError(f"Input payload is not valid UTF-8 text: {exc}") from exc
        logger.debug("Running engine %s with %d bytes of input", self._engine_command[0], len(data))

        deadline = time.monotonic() + self._timeout_seconds if self._timeout_seconds else None
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            raise ProcessSpawnError(exc.strerror or str(exc)) from exc

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        workers = [
            threading.Thread(target=_feed, args=(proc.stdin, data), daemon=True),
            threading.Thread(target=_drain, args=(proc.stdout, stdout_chunks), daemon=True),
            threading.Thread(target=_drain, args=(proc.stderr, stderr_chunks), daemon=True),
        ]
        for worker in workers:
            worker.start()

        try:
            returncode = proc.wait(timeout=_remaining(deadline))
            # Descendants of the engine can keep the pipes open after it exits.
            drained = self._join(workers, _remaining(deadline))
        except subprocess.TimeoutExpired:
            drained = False
        except BaseException:
            self._terminate(proc, workers)
            raise

        if not drained:
            self._terminate(proc, workers)
            raise ProcessTimeoutError(self._timeout_seconds, _decode(stderr_chunks))

        self._close_pipes(proc)
        stdout_text = _decode(stdout_chunks)
        stderr_text = _decode(stderr_chunks)
        logger.debug(
            "Engine exited with code %d (stdout=%d chars, stderr=%d chars)",
            returncode,
            len(stdout_text),
            len(stderr_text),
        )

        if returncode != 0:
            raise ProcessExecutionError(returncode, stderr_text)
        if stderr_text.strip():
            logger.warning("Engine stderr output: %s", stderr_text.strip())
        return ProcessOutcome(
            exit_code=returncode,
            stdout_text=stdout_text.strip(),
            stderr_text=stderr_text,
        )

    def _terminate(self, proc: subprocess.Popen[bytes], workers: list[threading.Thread]) -> None:
        """Kill and reap the process group, then release threads and pipe handles.

        Example:
            ```python
            engine._terminate(proc, workers)
            ```
        """
        _kill_group(proc)
        proc.wait()
        if self._join(workers, _KILL_GRACE_SECONDS):
            self._close_pipes(proc)
        else:
            # A blocked reader holds the stream lock, so close() would hang too.
            logger.debug("Engine I/O threads still running after kill; abandoning them")

    def _join(self, workers: list[threading.Thread], timeout: float | None) -> bool:
        """Join writer and reader threads within one shared time budget.

        Returns False when any thread is still alive once the budget is spent.

        Example:
            ```python
            drained = engine._join(workers, 5.0)
            ```
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        for worker in workers:
            worker.join(_remaining(deadline))
        return not any(worker.is_alive() for worker in workers)

    def _close_pipes(self, proc: subprocess.Popen[bytes]) -> None:
        """Close all three pipes, ignoring errors from already-broken ones.

        Example:
            ```python
            engine._close_pipes(proc)
            ```
        """
        for stream in (proc.stdin, proc.stdout, proc.stderr):
            if stream is not None and not stream.closed:
                try:
                    stream.close()
                except (OSError, ValueError):
                    pass
