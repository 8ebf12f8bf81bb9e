"""
Executor module - the replay machinery.

- tasks: durable task variants (activity, sub-orchestration, timer, external event, HTTP)
- handler: DurableTaskHandler, reconciles tasks against history
- retry_processor: replay of host-side retry chains
- clock: logical clock updates
- collector: batches of emitted actions
- outcome: per-task Resolution and per-pass OrchestrationResult

The invoker lives in pydurable.executor.invoker and is not re-exported here:
it depends on pydurable.core.context, which imports this package.
"""

from pydurable.executor.outcome import (
    AwaitingMoreHistory,
    Completed,
    ContinuingAsNew,
    Faulted,
    OrchestrationResult,
    OrchestrationStatus,
    Resolution,
    is_done,
    is_faulted,
)
from pydurable.executor.collector import OrchestrationActionCollector
from pydurable.executor.tasks import (
    ActivityInvocationTask,
    DurableTask,
    DurableTimerTask,
    ExternalEventTask,
    HttpTask,
    SubOrchestrationTask,
)
from pydurable.executor.retry_processor import RetryResult, RetryState, process_retries
from pydurable.executor.clock import initialize_current_utc_datetime, update_current_utc_datetime
from pydurable.executor.handler import DurableTaskHandler

__all__ = [
    # Outcomes
    "Resolution",
    "OrchestrationStatus",
    "Completed",
    "ContinuingAsNew",
    "AwaitingMoreHistory",
    "Faulted",
    "OrchestrationResult",
    "is_done",
    "is_faulted",
    # Actions
    "OrchestrationActionCollector",
    # Tasks
    "DurableTask",
    "ActivityInvocationTask",
    "SubOrchestrationTask",
    "DurableTimerTask",
    "ExternalEventTask",
    "HttpTask",
    # Retries
    "RetryResult",
    "RetryState",
    "process_retries",
    # Clock
    "initialize_current_utc_datetime",
    "update_current_utc_datetime",
    # Handler
    "DurableTaskHandler",
]
