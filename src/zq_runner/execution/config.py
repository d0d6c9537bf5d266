from __future__ import annotations

import os
import shutil
from collections.abc import Sequence

DEFAULT_ENGINE_BINARY = "zq"
ENGINE_ENV_VAR = "ZQ_RUNNER_ENGINE"
ENGINE_FLAGS = ("-j", "-i", "json")
STDIN_MARKER = "-"


def default_engine_command() -> list[str]:
    """Return the engine command prefix, honoring the environment override.

    Example:
        ```python
        cmd = default_engine_command()  # ["zq"] unless ZQ_RUNNER_ENGINE is set
        ```
    """
    override = os.environ.get(ENGINE_ENV_VAR, "").strip()
    return [override or DEFAULT_ENGINE_BINARY]


def validate_engine_command(command: Sequence[str] | None) -> list[str]:
    """Validate and normalize an engine command prefix.

    Example:
        ```python
        cmd = validate_engine_command(["/usr/local/bin/zq"])
        ```
    """
    if command is None:
        return default_engine_command()
    if isinstance(command, str):
        command = [command]
    normalized = [str(part) for part in command]
    if not normalized:
        raise ValueError("engine_command must include at least the engine binary")
    if any(not part.strip() for part in normalized):
        raise ValueError("engine_command arguments cannot be empty or whitespace")
    return normalized


def build_command(engine_command: Sequence[str], query_text: str) -> list[str]:
    """Build the full argv: engine prefix, fixed JSON flags, query, stdin marker.

    Example:
        ```python
        argv = build_command(["zq"], "cut id")
        # ["zq", "-j", "-i", "json", "cut id", "-"]
        ```
    """
    return [*engine_command, *ENGINE_FLAGS, query_text, STDIN_MARKER]


def engine_is_available(engine_command: Sequence[str]) -> tuple[bool, str | None]:
    """Check whether the engine binary resolves to an executable.

    Example:
        ```python
        ok, reason = engine_is_available(["zq"])
        ```
    """
    binary = engine_command[0]
    if shutil.which(binary) is None:
        return False, f"Engine binary '{binary}' was not found. Install it and ensure it is on PATH."
    return True, None
