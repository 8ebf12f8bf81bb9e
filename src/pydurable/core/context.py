"""Orchestration context: the orchestrator's view of one replay pass.

The context carries the instance metadata and history delivered by the host,
the logical clock, and the per-pass bookkeeping (collected actions, recorded
faults). It is also the API orchestrator code calls:

    ```python
    def hello_cities(context: OrchestrationContext):
        first = context.call_activity("SayHello", "Tokyo")
        rest = context.task_all([
            context.call_activity("SayHello", city, no_wait=True)
            for city in ("Seattle", "London")
        ])
        return [first, *rest]
    ```

Every durable call goes through the task handler. A call whose result is not
in history yet suspends the pass by unwinding the orchestrator body, so code
after it only runs in a later pass.

Design: Task-Local State (contextvars)
    ORCHESTRATION_CONTEXT exposes the active context to helper code without
    threading it through every call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from contextvars import ContextVar
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID

import xxhash

from pydurable.config import DurableOptions
from pydurable.core.errors import BindingValidationError, DurableError, FailureDetails
from pydurable.core.history import HistoryEvent, OrchestrationHistory
from pydurable.core.timestamps import format_timestamp
from pydurable.executor.collector import OrchestrationActionCollector
from pydurable.executor.handler import DurableTaskHandler
from pydurable.executor.tasks import (
    ActivityInvocationTask,
    DurableTask,
    DurableTimerTask,
    ExternalEventTask,
    HttpTask,
    SubOrchestrationTask,
)
from pydurable.models.actions import ContinueAsNewAction
from pydurable.models.http import DurableHttpRequest
from pydurable.models.retry import RetryOptions

if TYPE_CHECKING:
    from pydurable.registry import FunctionRegistry

__all__ = [
    "ORCHESTRATION_CONTEXT",
    "OrchestrationContext",
    "ReplaySafeLoggerAdapter",
    "get_current_context",
]

ORCHESTRATION_CONTEXT: ContextVar[Optional["OrchestrationContext"]] = ContextVar(
    "orchestration_context", default=None
)
"""The context of the replay pass running in this task/thread, if any."""


def get_current_context() -> OrchestrationContext:
    """
    Return the context of the running replay pass.

    Raises:
        RuntimeError: If called outside an orchestrator body
    """
    context = ORCHESTRATION_CONTEXT.get()
    if context is None:
        raise RuntimeError("No orchestration is running in this context")
    return context


class ReplaySafeLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that drops records while the orchestrator is replaying."""

    def __init__(self, logger: logging.Logger, context: OrchestrationContext):
        super().__init__(logger, {"instance_id": context.instance_id})
        self._context = context

    def isEnabledFor(self, level: int) -> bool:  # noqa: N802
        if self._context.is_replaying and self._context.options.suppress_replay_logs:
            return False
        return super().isEnabledFor(level)


class OrchestrationContext:
    """
    State and API of one orchestration replay pass.

    Attributes:
        instance_id: Orchestration instance id
        parent_instance_id: Id of the calling orchestration, for sub-orchestrations
        input: Decoded orchestration input
        history: History with the consumption flags of this pass
        is_replaying: True while results come from previously recorded history
        current_utc_datetime: Logical clock, derived from history
        custom_status: Status value reported to the host with the pass result
    """

    def __init__(
        self,
        instance_id: str,
        history: Iterable[HistoryEvent] | OrchestrationHistory = (),
        input: Any = None,
        parent_instance_id: str | None = None,
        is_replaying: bool = False,
        registry: FunctionRegistry | None = None,
        options: DurableOptions | None = None,
        handler: DurableTaskHandler | None = None,
    ):
        self.instance_id = instance_id
        self.parent_instance_id = parent_instance_id
        self.input = input
        if isinstance(history, OrchestrationHistory):
            self.history = history
        else:
            self.history = OrchestrationHistory(history)
        self.is_replaying = is_replaying
        self.current_utc_datetime: datetime | None = None
        self.custom_status: Any = None

        self.registry = registry
        self.options = options or DurableOptions()
        self.handler = handler or DurableTaskHandler()
        self.collector = OrchestrationActionCollector()

        self._continue_as_new: ContinueAsNewAction | None = None
        self._faults: list[DurableError] = []
        self._guid_counter = 0

    # =========================================================================
    # Durable calls
    # =========================================================================

    def get_input(self) -> Any:
        return self.input

    def call_activity(
        self,
        name: str,
        input: Any = None,
        *,
        retry_options: RetryOptions | None = None,
        no_wait: bool = False,
    ) -> Any:
        """
        Call an activity function.

        Args:
            name: Registered activity name
            input: JSON-serializable input
            retry_options: Let the host retry failed attempts
            no_wait: Return an ActivityInvocationTask handle instead of the result

        Returns:
            The activity result, or the task handle when ``no_wait``

        Raises:
            TaskFailedError: The activity failed (after all retries)
            BindingValidationError: ``name`` is not a registered activity
        """
        self._validate_activity(name)
        return self._run(ActivityInvocationTask(name, input, retry_options), no_wait)

    def call_sub_orchestrator(
        self,
        name: str,
        input: Any = None,
        *,
        instance_id: str | None = None,
        retry_options: RetryOptions | None = None,
        no_wait: bool = False,
    ) -> Any:
        """Call another orchestrator function and return its output."""
        return self._run(SubOrchestrationTask(name, input, instance_id, retry_options), no_wait)

    def create_timer(self, fire_at: datetime | timedelta, *, no_wait: bool = False) -> Any:
        """
        Sleep durably until ``fire_at`` (absolute, or relative to the logical clock).

        Returns:
            None, or the DurableTimerTask handle when ``no_wait``
        """
        if isinstance(fire_at, timedelta):
            if self.current_utc_datetime is None:
                raise ValueError("Relative timers need an OrchestratorStarted event in history")
            fire_at = self.current_utc_datetime + fire_at
        return self._run(DurableTimerTask(fire_at), no_wait)

    def wait_for_external_event(self, name: str, *, no_wait: bool = False) -> Any:
        """Wait for an event raised by a client; returns the event payload."""
        return self._run(ExternalEventTask(name), no_wait)

    def call_http(
        self,
        method: str,
        uri: str,
        content: str | None = None,
        headers: dict[str, str] | None = None,
        token_source: dict[str, Any] | None = None,
        *,
        no_wait: bool = False,
    ) -> Any:
        """Have the host perform an HTTP request; returns a DurableHttpResponse."""
        request = DurableHttpRequest(
            method=method,
            uri=uri,
            content=content,
            headers=dict(headers or {}),
            token_source=token_source,
        )
        return self._run(HttpTask(request), no_wait)

    def task_all(self, tasks: Sequence[DurableTask]) -> list[Any]:
        """
        Wait for every task and return their results in task order.

        Raises:
            TaskFailedError: For the first failed task, once all tasks are done
        """
        results: list[Any] = []
        failures: list[FailureDetails] = []
        self.handler.wait_all(tasks, self, results.append, failures.append)
        if failures:
            raise next(task.exception() for task in tasks if task.is_faulted)
        return results

    def task_any(self, tasks: Sequence[DurableTask]) -> DurableTask:
        """Wait for the first task to finish and return its handle."""
        winners: list[DurableTask] = []
        self.handler.wait_any(tasks, self, winners.append)
        return winners[0]

    def get_task_result(self, tasks: Sequence[DurableTask]) -> list[Any]:
        """
        Results of the tasks already completed in this pass.

        Raises:
            TaskFailedError: For the first completed task that failed
        """
        results: list[Any] = []
        failures: list[FailureDetails] = []
        self.handler.get_task_result(tasks, self, results.append, failures.append)
        if failures:
            raise next(task.exception() for task in tasks if task.is_faulted)
        return results

    def cancel_timer(self, timer: DurableTimerTask) -> None:
        self.handler.cancel_timer(timer, self)

    def continue_as_new(self, input: Any = None) -> None:
        """
        Restart the orchestration with fresh history once this body returns.

        The body should return right after calling this.
        """
        action = ContinueAsNewAction(input=input)
        self.collector.next_batch()
        self.collector.add(action)
        self._continue_as_new = action

    def set_custom_status(self, status: Any) -> None:
        self.custom_status = status

    # =========================================================================
    # Determinism helpers
    # =========================================================================

    def new_guid(self) -> UUID:
        """
        A UUID that is the same on every replay of this point in the code.

        Derived from the instance id, the logical clock and a per-pass
        counter using xxHash.
        """
        clock = format_timestamp(self.current_utc_datetime) if self.current_utc_datetime else ""
        name = f"{self.instance_id}_{clock}_{self._guid_counter}"
        self._guid_counter += 1
        return UUID(bytes=xxhash.xxh128(name.encode("utf-8")).digest(), version=5)

    def create_replay_safe_logger(self, logger: logging.Logger) -> ReplaySafeLoggerAdapter:
        return ReplaySafeLoggerAdapter(logger, self)

    # =========================================================================
    # Pass bookkeeping
    # =========================================================================

    @property
    def continue_as_new_action(self) -> ContinueAsNewAction | None:
        return self._continue_as_new

    @property
    def faults(self) -> list[DurableError]:
        """Pass-level faults raised in this pass, caught by orchestrator code or not."""
        return list(self._faults)

    def record_fault(self, error: DurableError) -> None:
        self._faults.append(error)

    def _validate_activity(self, name: str) -> None:
        if self.registry is None or not self.options.validate_activities:
            return
        try:
            self.registry.validate_activity(name)
        except BindingValidationError as e:
            self.record_fault(e)
            raise

    def _run(self, task: DurableTask, no_wait: bool) -> Any:
        outputs: list[Any] = []
        failures: list[FailureDetails] = []
        self.handler.stop_and_initiate_durable_task_or_replay(
            task, self, no_wait, outputs.append, failures.append
        )
        if failures:
            raise task.exception()
        return outputs[0]

    def __repr__(self) -> str:
        return (
            f"OrchestrationContext(instance_id={self.instance_id!r}, "
            f"history={len(self.history)}, is_replaying={self.is_replaying})"
        )
