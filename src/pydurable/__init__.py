"""
pydurable: Durable orchestration replay engine for Python

Orchestrator functions are plain synchronous Python. Every durable call
(activity, timer, external event, sub-orchestration, HTTP) is reconciled
against the instance's recorded history: calls already recorded replay their
results, new calls are returned to the host as actions, and the pass stops
at the first call whose result is not in history yet.

Design Pattern: Façade Pattern
This module re-exports the pieces an orchestrator author or host integration
needs, hiding the history, handler and codec internals.

Example:
    ```python
    from pydurable import (
        OrchestrationContext, activity, orchestrator, invoke_orchestration,
        orchestration_context_from_json,
    )

    @activity
    def say_hello(name: str) -> str:
        return f"Hello {name}!"

    @orchestrator
    def hello_cities(context: OrchestrationContext) -> list[str]:
        tasks = [
            context.call_activity("say_hello", city, no_wait=True)
            for city in ("Tokyo", "Seattle", "London")
        ]
        return context.task_all(tasks)

    # One replay pass against the history delivered by the host
    context = orchestration_context_from_json(payload)
    result = invoke_orchestration(context, hello_cities)
    ```
"""

# Core types
from pydurable.core import (
    BindingValidationError,
    DurableError,
    FailureDetails,
    HistoryEvent,
    HistoryEventType,
    NonDeterminismError,
    OrchestrationContext,
    OrchestrationHistory,
    TaskFailedError,
    get_current_context,
)

# Wire models
from pydurable.models import (
    ActionType,
    DurableHttpRequest,
    DurableHttpResponse,
    OrchestrationAction,
    RetryOptions,
    action_from_dict,
)

# Replay machinery
from pydurable.executor import (
    AwaitingMoreHistory,
    Completed,
    ContinuingAsNew,
    DurableTask,
    DurableTaskHandler,
    Faulted,
    OrchestrationResult,
    OrchestrationStatus,
    is_done,
    is_faulted,
)
from pydurable.executor.invoker import (
    OrchestrationBindingInfo,
    OrchestrationInvoker,
    invoke_orchestration,
)

# Configuration and registration
from pydurable.config import DurableOptions
from pydurable.registry import FunctionMetadata, FunctionRegistry
from pydurable.decorators import activity, orchestrator

# Host glue
from pydurable.binding import (
    DurableController,
    OrchestrationFailureError,
    OrchestrationMessage,
    ParameterBinding,
    orchestration_context_from_json,
)

# Version
__version__ = "0.1.0"

__all__ = [
    # Core types
    "BindingValidationError",
    "DurableError",
    "FailureDetails",
    "HistoryEvent",
    "HistoryEventType",
    "NonDeterminismError",
    "OrchestrationContext",
    "OrchestrationHistory",
    "TaskFailedError",
    "get_current_context",
    # Wire models
    "ActionType",
    "DurableHttpRequest",
    "DurableHttpResponse",
    "OrchestrationAction",
    "RetryOptions",
    "action_from_dict",
    # Replay
    "AwaitingMoreHistory",
    "Completed",
    "ContinuingAsNew",
    "DurableTask",
    "DurableTaskHandler",
    "Faulted",
    "OrchestrationResult",
    "OrchestrationStatus",
    "is_done",
    "is_faulted",
    "OrchestrationBindingInfo",
    "OrchestrationInvoker",
    "invoke_orchestration",
    # Configuration
    "DurableOptions",
    "FunctionMetadata",
    "FunctionRegistry",
    "activity",
    "orchestrator",
    # Host glue
    "DurableController",
    "OrchestrationFailureError",
    "OrchestrationMessage",
    "ParameterBinding",
    "orchestration_context_from_json",
    # Metadata
    "__version__",
]
