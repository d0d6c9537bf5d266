from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class QueryRequest:
    """One query against one JSON payload, as supplied by the caller.

    Example:
        ```python
        req = QueryRequest(input_payload=[{"id": 1}], query_text="cut id")
        ```
    """

    input_payload: Any
    query_text: str


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    """Normalized result of one engine process run.

    Example:
        ```python
        out = ProcessOutcome(exit_code=0, stdout_text='{"id":1}', stderr_text="")
        ```
    """

    exit_code: int
    stdout_text: str
    stderr_text: str
