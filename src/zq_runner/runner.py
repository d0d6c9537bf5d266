from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidInputError, QueryProcessingError, ZqRunnerError
from .execution.engine import QueryEngine
from .execution.types import QueryRequest
from .normalizer import normalize_output
from .settings import RunnerSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class QueryResult:
    """Normalized result returned by `run_query`.

    Example:
        ```python
        result = QueryResult(records=[{"id": 1}])
        ```
    """

    records: list[Any] = field(default_factory=list)
    discarded_lines: int = 0
    stderr_text: str = ""
    exit_code: int = 0


def _resolve_settings(settings: RunnerSettings | None, settings_file: str | None) -> RunnerSettings:
    """Resolve the effective settings object for a run.

    Example:
        ```python
        settings = _resolve_settings(None, "/tmp/zq_runner.toml")
        ```
    """
    if settings is not None and settings_file is not None:
        raise ValueError("Provide either 'settings' or 'settings_file', not both")
    if settings is None and settings_file is not None:
        return RunnerSettings.from_file(settings_file)
    if settings is None:
        return RunnerSettings()
    if settings.config_path is not None:
        return RunnerSettings.from_file(settings.config_path)
    return settings


def parse_input_payload(input_payload: Any) -> Any:
    """Validate the caller's payload and return it as a JSON value.

    Strings are parsed as JSON text; other values are taken as already decoded.

    Example:
        ```python
        data = parse_input_payload('[{"id": 1}]')
        ```
    """
    if isinstance(input_payload, (str, bytes)):
        if isinstance(input_payload, bytes):
            try:
                text = input_payload.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InvalidInputError(f"Invalid JSON data provided: {exc}") from exc
        else:
            text = input_payload
        if not text.strip():
            raise InvalidInputError("JSON data cannot be empty")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidInputError(f"Invalid JSON data provided: {exc}") from exc
    if input_payload is None:
        raise InvalidInputError("Invalid JSON data provided")
    return input_payload


def serialize_request(request: QueryRequest) -> str:
    """Validate a request and serialize its payload as compact strict JSON.

    Example:
        ```python
        text = serialize_request(QueryRequest({"id": 1}, "cut id"))
        # '{"id":1}'
        ```
    """
    if not isinstance(request.query_text, str) or not request.query_text.strip():
        raise InvalidInputError("ZQuery statement cannot be empty")
    payload = parse_input_payload(request.input_payload)
    try:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid JSON data provided: {exc}") from exc


def run_query(
    input_payload: Any,
    query_text: str,
    engine: QueryEngine,
    settings: RunnerSettings | None = None,
    settings_file: str | None = None,
) -> QueryResult:
    """Run a query through the engine and normalize its output into records.

    Any failure is raised once as `QueryProcessingError` wrapping the cause.

    Example:
        ```python
        from zq_runner import ProcessEngine, run_query
        result = run_query([{"id": 2}, {"id": 1}], "sort id", engine=ProcessEngine())
        ```
    """
    resolved = _resolve_settings(settings, settings_file)
    try:
        serialized = serialize_request(QueryRequest(input_payload, query_text))
        outcome = engine.run(serialized, query_text)
        normalized = normalize_output(outcome.stdout_text, excerpt_chars=resolved.excerpt_chars)
    except ZqRunnerError as exc:
        logger.debug("Query processing failed: %s", exc)
        raise QueryProcessingError(exc) from exc

    if normalized.discarded_lines:
        logger.warning("Discarded %d unparseable output line(s)", normalized.discarded_lines)
    return QueryResult(
        records=normalized.records,
        discarded_lines=normalized.discarded_lines,
        stderr_text=outcome.stderr_text,
        exit_code=outcome.exit_code,
    )


def process(
    input_payload: Any,
    query_text: str,
    engine: QueryEngine,
    settings: RunnerSettings | None = None,
    settings_file: str | None = None,
) -> list[Any]:
    """Run a query and return only the normalized records.

    Example:
        ```python
        records = process('{"name": "Alice"}', "yield this", engine=engine)
        ```
    """
    return run_query(
        input_payload,
        query_text,
        engine=engine,
        settings=settings,
        settings_file=settings_file,
    ).records


def build_output_items(
    records: list[Any],
    upstream_items: list[Any] | None = None,
) -> list[dict[str, Any]]:
    """Package each record as one pipeline item, preserving order.

    Upstream items only decide whether results are merged into the incoming
    stream or created fresh; both produce one `{"json": record}` per record.

    Example:
        ```python
        items = build_output_items([{"id": 1}, {"id": 2}])
        # [{"json": {"id": 1}}, {"json": {"id": 2}}]
        ```
    """
    if upstream_items:
        logger.debug("Merging %d record(s) after %d upstream item(s)", len(records), len(upstream_items))
    return [{"json": record} for record in records]
