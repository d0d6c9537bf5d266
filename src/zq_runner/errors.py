from __future__ import annotations

SPAWN_HINT = "ensure the engine binary is installed and on the search path"


class ZqRunnerError(Exception):
    """Base class for every error raised by zq-runner.

    Example:
        ```python
        try:
            process({"a": 1}, "head 1", engine=engine)
        except ZqRunnerError as exc:
            print(exc)
        ```
    """


class InvalidInputError(ZqRunnerError):
    """Raised for a blank query or a payload that is not valid JSON."""


class ProcessSpawnError(ZqRunnerError):
    """Raised when the engine process could not be started at all.

    Example:
        ```python
        err = ProcessSpawnError("No such file or directory: 'zq'")
        ```
    """

    def __init__(self, message: str, hint: str = SPAWN_HINT) -> None:
        """Store the OS message and the remediation hint.

        Example:
            ```python
            err = ProcessSpawnError("Permission denied")
            assert err.hint.startswith("ensure")
            ```
        """
        self.hint = hint
        super().__init__(f"Failed to spawn engine process: {message}. Please {hint}.")


class ProcessExecutionError(ZqRunnerError):
    """Raised when the engine ran but exited with a non-zero status.

    Example:
        ```python
        err = ProcessExecutionError(2, "bad query")
        ```
    """

    def __init__(self, exit_code: int, stderr_text: str, message: str | None = None) -> None:
        """Keep the exit code and the diagnostic text verbatim.

        Example:
            ```python
            err = ProcessExecutionError(2, "bad query")
            assert err.stderr_text == "bad query"
            ```
        """
        self.exit_code = exit_code
        self.stderr_text = stderr_text
        super().__init__(
            message or f"Engine command failed with exit code {exit_code}: {stderr_text}"
        )


class ProcessTimeoutError(ProcessExecutionError):
    """Raised when the engine outlived the configured timeout and was killed.

    Example:
        ```python
        err = ProcessTimeoutError(5, "")
        ```
    """

    def __init__(self, timeout_seconds: int, stderr_text: str) -> None:
        """Record the timeout and whatever diagnostics were drained before the kill.

        Example:
            ```python
            err = ProcessTimeoutError(5, "partial diagnostics")
            ```
        """
        self.timeout_seconds = timeout_seconds
        super().__init__(124, stderr_text, f"Engine timed out after {timeout_seconds}s")


class OutputParseError(ZqRunnerError):
    """Raised when successful engine output cannot be normalized into records.

    Example:
        ```python
        err = OutputParseError("not json", excerpt_chars=200, reason="Expecting value")
        ```
    """

    def __init__(self, text: str, *, excerpt_chars: int = 200, reason: str = "") -> None:
        """Keep the output length and a bounded excerpt, never the full text.

        Example:
            ```python
            err = OutputParseError("x" * 1000, excerpt_chars=10)
            assert len(err.excerpt) == 10
            ```
        """
        self.length = len(text)
        self.excerpt = text[:excerpt_chars]
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Failed to parse engine output as JSON{detail} "
            f"(length={self.length}, excerpt={self.excerpt!r})"
        )


class QueryProcessingError(ZqRunnerError):
    """Single consolidated failure raised at the public entry points.

    Example:
        ```python
        try:
            process("", "head 1", engine=engine)
        except QueryProcessingError as exc:
            assert isinstance(exc.cause, InvalidInputError)
        ```
    """

    def __init__(self, cause: ZqRunnerError) -> None:
        """Wrap one underlying error into a flat, descriptive message.

        Example:
            ```python
            err = QueryProcessingError(InvalidInputError("ZQuery statement cannot be empty"))
            ```
        """
        self.cause = cause
        super().__init__(f"Query processing failed: {cause}")
