from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import OutputParseError

logger = logging.getLogger(__name__)

SHAPE_EMPTY = "empty"
SHAPE_LINES = "lines"
SHAPE_ARRAY = "array"
SHAPE_VALUE = "value"

DEFAULT_EXCERPT_CHARS = 200


@dataclass(slots=True)
class NormalizedOutput:
    """Records recovered from engine output plus how they were recovered.

    Example:
        ```python
        out = NormalizedOutput(records=[{"a": 1}], discarded_lines=1, shape="lines")
        ```
    """

    records: list[Any] = field(default_factory=list)
    discarded_lines: int = 0
    shape: str = SHAPE_EMPTY


def _is_object_line(line: str) -> bool:
    """Shape guard for one line of newline-delimited output.

    Example:
        ```python
        assert _is_object_line('{"a": 1}')
        ```
    """
    return line.startswith("{") and line.endswith("}")


def fold_lines(lines: list[str]) -> tuple[list[Any], int]:
    """Parse newline-delimited objects, skipping lines that fail the guard or the parse.

    Never raises; returns the parsed objects in line order and the discard count.

    Example:
        ```python
        records, discarded = fold_lines(['{"a": 1}', "oops", '{"a": 2}'])
        # records == [{"a": 1}, {"a": 2}], discarded == 1
        ```
    """
    records: list[Any] = []
    discarded = 0
    for index, raw in enumerate(lines):
        line = raw.strip()
        if not _is_object_line(line):
            discarded += 1
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError:
            logger.warning("Failed to parse output line %d as JSON: %.200s", index, line)
            discarded += 1
    return records, discarded


def _extract_shaped(text: str) -> str | None:
    """Cut the text down to a leading array, else a leading object.

    Arrays win over objects. Returns None when neither guard matches.

    Example:
        ```python
        assert _extract_shaped('[1, 2] trailing') == "[1, 2]"
        ```
    """
    for opener, closer in (("[", "]"), ("{", "}")):
        if text.startswith(opener):
            end = text.rfind(closer)
            if end != -1:
                return text[: end + 1]
    return None


def _parse_single(text: str, excerpt_chars: int) -> Any:
    """Parse a single-payload output, falling back to shape-guard extraction.

    Example:
        ```python
        value = _parse_single('{"a": 1}', 200)
        ```
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    candidate = _extract_shaped(text)
    if candidate is None:
        logger.debug("No JSON shape found in engine output, parsing literal text")
        candidate = text
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise OutputParseError(text, excerpt_chars=excerpt_chars, reason=exc.msg) from exc


def normalize_output(text: str, *, excerpt_chars: int = DEFAULT_EXCERPT_CHARS) -> NormalizedOutput:
    """Normalize raw engine output into an ordered list of JSON values.

    Handles the three shapes the engine may emit: newline-delimited objects
    (best effort, malformed lines are skipped), one JSON array, or one JSON
    value. A malformed single payload raises `OutputParseError`.

    Example:
        ```python
        out = normalize_output('{"a": 1}\\n{"a": 2}')
        # out.records == [{"a": 1}, {"a": 2}], out.shape == "lines"
        ```
    """
    trimmed = text.strip()
    if not trimmed:
        return NormalizedOutput()

    lines = [line for line in trimmed.split("\n") if line.strip()]
    if len(lines) > 1:
        records, discarded = fold_lines(lines)
        logger.debug("Parsed %d JSON objects from %d lines", len(records), len(lines))
        return NormalizedOutput(records=records, discarded_lines=discarded, shape=SHAPE_LINES)

    parsed = _parse_single(trimmed, excerpt_chars)
    if isinstance(parsed, list):
        return NormalizedOutput(records=parsed, shape=SHAPE_ARRAY)
    return NormalizedOutput(records=[parsed], shape=SHAPE_VALUE)


def normalize(text: str, *, excerpt_chars: int = DEFAULT_EXCERPT_CHARS) -> list[Any]:
    """Return only the normalized records for raw engine output.

    Example:
        ```python
        assert normalize('[{"a":1},{"a":2}]') == [{"a": 1}, {"a": 2}]
        ```
    """
    return normalize_output(text, excerpt_chars=excerpt_chars).records
