"""
Core types for the pydurable replay engine.

- HistoryEvent / HistoryEventType: recorded history of an instance
- OrchestrationHistory: history plus the consumption flags of one pass
- OrchestrationContext: orchestrator-facing state and API of one pass
- Error types: TaskFailedError (recoverable), NonDeterminismError and
  BindingValidationError (pass-level faults)

The context is imported last: it depends on the executor package, which in
turn only needs the modules above.
"""

from pydurable.core.errors import (
    BindingValidationError,
    DurableError,
    FailureDetails,
    NonDeterminismError,
    TaskFailedError,
)
from pydurable.core.history import HistoryEvent, HistoryEventType, OrchestrationHistory
from pydurable.core.timestamps import ensure_utc, format_timestamp, parse_timestamp
from pydurable.core.context import (
    ORCHESTRATION_CONTEXT,
    OrchestrationContext,
    ReplaySafeLoggerAdapter,
    get_current_context,
)

__all__ = [
    "BindingValidationError",
    "DurableError",
    "FailureDetails",
    "NonDeterminismError",
    "TaskFailedError",
    "HistoryEvent",
    "HistoryEventType",
    "OrchestrationHistory",
    "ensure_utc",
    "format_timestamp",
    "parse_timestamp",
    "ORCHESTRATION_CONTEXT",
    "OrchestrationContext",
    "ReplaySafeLoggerAdapter",
    "get_current_context",
]
