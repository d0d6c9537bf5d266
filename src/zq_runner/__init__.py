from .errors import (
    InvalidInputError,
    OutputParseError,
    ProcessExecutionError,
    ProcessSpawnError,
    ProcessTimeoutError,
    QueryProcessingError,
    ZqRunnerError,
)
from .execution.process_engine import ProcessEngine
from .normalizer import NormalizedOutput, normalize, normalize_output
from .runner import QueryResult, build_output_items, process, run_query
from .settings import RunnerSettings

__all__ = [
    "InvalidInputError",
    "NormalizedOutput",
    "OutputParseError",
    "ProcessEngine",
    "ProcessExecutionError",
    "ProcessSpawnError",
    "ProcessTimeoutError",
    "QueryProcessingError",
    "QueryResult",
    "RunnerSettings",
    "ZqRunnerError",
    "build_output_items",
    "normalize",
    "normalize_output",
    "process",
    "run_query",
]
