from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .execution.config import validate_engine_command
from .normalizer import DEFAULT_EXCERPT_CHARS


def _default_settings_path() -> Path:
    """Return bundled default settings TOML path.

    Example:
        ```python
        path = _default_settings_path()
        ```
    """
    return Path(__file__).with_name("default_settings.toml")


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read settings TOML and return the settings table.

    Example:
        ```python
        raw = _read_settings_toml(Path("/tmp/zq_runner.toml"))
        ```
    """
    if not path.exists():
        return {
            "timeout_seconds": 0,
            "excerpt_chars": DEFAULT_EXCERPT_CHARS,
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    settings_obj = raw.get("settings", raw)
    if not isinstance(settings_obj, dict):
        raise ValueError("Settings config must be a TOML table")
    return settings_obj


def _optional_command(value: Any) -> list[str] | None:
    """Validate the optional engine_command field.

    Example:
        ```python
        cmd = _optional_command(["zq"])
        ```
    """
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError("'engine_command' must be a string or a list of strings")
    return value


_DEFAULT_SETTINGS_RAW = _read_settings_toml(_default_settings_path())
DEFAULT_TIMEOUT_SECONDS = int(_DEFAULT_SETTINGS_RAW.get("timeout_seconds", 0))
DEFAULT_SETTINGS_EXCERPT_CHARS = int(
    _DEFAULT_SETTINGS_RAW.get("excerpt_chars", DEFAULT_EXCERPT_CHARS)
)


@dataclass(slots=True)
class RunnerSettings:
    """Engine invocation and output-normalization settings.

    Example:
        ```python
        settings = RunnerSettings(engine_command=["/usr/local/bin/zq"], timeout_seconds=30)
        ```
    """

    engine_command: list[str] = field(default_factory=lambda: validate_engine_command(None))
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    excerpt_chars: int = DEFAULT_SETTINGS_EXCERPT_CHARS
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate fields after dataclass initialization.

        Example:
            ```python
            RunnerSettings(timeout_seconds=0)
            ```
        """
        self.engine_command = validate_engine_command(self.engine_command)
        if self.timeout_seconds < 0:
            raise ValueError("timeout_seconds must be zero (disabled) or positive")
        if self.excerpt_chars <= 0:
            raise ValueError("excerpt_chars must be positive")

    @classmethod
    def from_file(cls, config_path: str) -> "RunnerSettings":
        """Create a settings instance from a TOML file.

        Example:
            ```python
            settings = RunnerSettings.from_file("/tmp/zq_runner.toml")
            ```
        """
        raw = _read_settings_toml(Path(config_path))
        return cls(
            engine_command=validate_engine_command(_optional_command(raw.get("engine_command"))),
            timeout_seconds=int(raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            excerpt_chars=int(raw.get("excerpt_chars", DEFAULT_SETTINGS_EXCERPT_CHARS)),
            config_path=config_path,
        )
