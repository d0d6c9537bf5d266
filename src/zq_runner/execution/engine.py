from __future__ import annotations

from typing import Protocol

from .types import ProcessOutcome


class QueryEngine(Protocol):
    def run(self, input_payload: str, query_text: str) -> ProcessOutcome:
        """Run one query over serialized JSON input and return the process outcome.

        Example:
            ```python
            outcome = engine.run('[{"id": 1}]', "cut id")
            ```
        """
        ...
