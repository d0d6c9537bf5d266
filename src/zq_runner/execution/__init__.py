from .engine import QueryEngine
from .process_engine import ProcessEngine
from .types import ProcessOutcome, QueryRequest

__all__ = [
    "ProcessEngine",
    "ProcessOutcome",
    "QueryEngine",
    "QueryRequest",
]
