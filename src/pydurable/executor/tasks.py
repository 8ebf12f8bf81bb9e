"""
Durable tasks: one object per durable call issued by orchestrator code.

A task knows three things about itself:

- how to find the history event proving it was already scheduled
  (``find_scheduled_evidence``)
- how to find the event that completed it (``find_completion_evidence``)
- what to ask the host for if it was never scheduled (``to_action``)

Variants:

    ActivityInvocationTask      TaskScheduled(name)              -> TaskCompleted / TaskFailed
    SubOrchestrationTask        SubOrchestrationInstanceCreated  -> ...Completed / ...Failed
    DurableTimerTask            TimerCreated(fire_at)            -> TimerFired
    ExternalEventTask           (no scheduling evidence)         -> EventRaised(name)
    HttpTask                    TaskScheduled(BuiltIn::HttpActivity) -> TaskCompleted / TaskFailed

Tasks have no identity across passes. Within a pass the task handler binds a
task to history indices and caches its resolution on the task, which is what
lets orchestrator code hold on to deferred handles (``no_wait=True``) and
wait on them later.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

from pydurable.core.errors import FailureDetails, NonDeterminismError, TaskFailedError
from pydurable.core.history import HistoryEvent, HistoryEventType
from pydurable.core.timestamps import ensure_utc, format_timestamp
from pydurable.models.actions import (
    CallActivityAction,
    CallActivityWithRetryAction,
    CallHttpAction,
    CallSubOrchestratorAction,
    CallSubOrchestratorWithRetryAction,
    CreateTimerAction,
    OrchestrationAction,
    WaitForExternalEventAction,
)
from pydurable.models.http import DurableHttpRequest, DurableHttpResponse
from pydurable.models.retry import RetryOptions

if TYPE_CHECKING:
    from pydurable.core.context import OrchestrationContext
    from pydurable.executor.outcome import Resolution

__all__ = [
    "DurableTask",
    "ActivityInvocationTask",
    "SubOrchestrationTask",
    "DurableTimerTask",
    "ExternalEventTask",
    "HttpTask",
    "HTTP_ACTIVITY_NAME",
    "decode_payload",
]

HTTP_ACTIVITY_NAME = "BuiltIn::HttpActivity"


def decode_payload(payload: str | None) -> Any:
    """Decode a JSON payload recorded in history; non-JSON text is returned as is."""
    if payload is None or payload == "":
        return None
    try:
        return json.loads(payload)
    except ValueError:
        return payload


class DurableTask(ABC):
    """Base class of all durable tasks."""

    scheduled_type: ClassVar[HistoryEventType | None] = None
    completed_type: ClassVar[HistoryEventType]
    failed_type: ClassVar[HistoryEventType | None] = None

    def __init__(self, retry_options: RetryOptions | None = None):
        self.retry_options = retry_options

        # Per-pass binding state, owned by the task handler
        self._bound = False
        self._action: OrchestrationAction | None = None
        self._scheduled_index: int | None = None
        self._completion_index: int | None = None
        self._resolution: Resolution | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Name used in log and error messages."""

    @property
    def has_scheduled_evidence(self) -> bool:
        """False for tasks the host never records as scheduled (external events)."""
        return self.scheduled_type is not None

    @property
    def completion_types(self) -> tuple[HistoryEventType, ...]:
        if self.failed_type is None:
            return (self.completed_type,)
        return (self.completed_type, self.failed_type)

    @abstractmethod
    def find_scheduled_evidence(self, context: OrchestrationContext) -> int | None:
        """Index of the first available event proving this call was scheduled."""

    def find_completion_evidence(
        self, context: OrchestrationContext, scheduled_index: int | None
    ) -> int | None:
        """
        Index of the first available event referencing ``scheduled_index``.

        Raises:
            NonDeterminismError: If the referencing event is of a type this
                task can never complete with
        """
        history = context.history
        index = history.find_unprocessed_completion(scheduled_index, lambda e: True)
        if index is None:
            return None
        event = history[index]
        if event.event_type not in self.completion_types:
            raise NonDeterminismError(
                f"{self!r} was scheduled by {history[scheduled_index]} but history "
                f"completes it with {event}; expected one of "
                f"{', '.join(str(t) for t in self.completion_types)}"
            )
        return index

    @abstractmethod
    def to_action(self) -> OrchestrationAction:
        """The action to emit when no scheduling evidence exists."""

    def decode_result(self, event: HistoryEvent) -> Any:
        return decode_payload(event.result)

    def failure_of(self, event: HistoryEvent) -> FailureDetails | None:
        """Failure details if ``event`` is a failure of this task, else None."""
        if self.failed_type is not None and event.event_type is self.failed_type:
            return FailureDetails.from_reason(event.reason, event.details)
        return None

    # =========================================================================
    # Handle API (valid within the pass that created the task)
    # =========================================================================

    @property
    def is_completed(self) -> bool:
        """True once the task's outcome was consumed in this pass."""
        return self._resolution is not None

    @property
    def is_faulted(self) -> bool:
        return self._resolution is not None and not self._resolution.succeeded

    @property
    def is_new(self) -> bool:
        """True if this pass emitted the task's action (nothing in history yet)."""
        return self._action is not None

    def result(self) -> Any:
        """
        The task's value.

        Raises:
            TaskFailedError: If the task failed
            RuntimeError: If the task has not completed in this pass
        """
        if self._resolution is None:
            raise RuntimeError(f"{self!r} has not completed")
        if not self._resolution.succeeded:
            raise TaskFailedError(self.name, self._resolution.failure)
        return self._resolution.value

    def exception(self) -> TaskFailedError | None:
        if self._resolution is None or self._resolution.succeeded:
            return None
        return TaskFailedError(self.name, self._resolution.failure)


class ActivityInvocationTask(DurableTask):
    """A call to an activity function, optionally retried by the host."""

    scheduled_type = HistoryEventType.TASK_SCHEDULED
    completed_type = HistoryEventType.TASK_COMPLETED
    failed_type = HistoryEventType.TASK_FAILED

    def __init__(
        self, function_name: str, input: Any = None, retry_options: RetryOptions | None = None
    ):
        if not function_name:
            raise ValueError("function_name cannot be empty")
        super().__init__(retry_options)
        self.function_name = function_name
        self.input = input

    @property
    def name(self) -> str:
        return self.function_name

    def find_scheduled_evidence(self, context):
        return context.history.find_unprocessed_scheduled(
            lambda e: e.event_type is self.scheduled_type and e.name == self.function_name
        )

    def to_action(self):
        if self.retry_options is None:
            return CallActivityAction(function_name=self.function_name, input=self.input)
        return CallActivityWithRetryAction(
            function_name=self.function_name,
            input=self.input,
            retry_options=self.retry_options,
        )

    def __repr__(self) -> str:
        return f"ActivityInvocationTask({self.function_name!r})"


class SubOrchestrationTask(DurableTask):
    """A call to another orchestrator function."""

    scheduled_type = HistoryEventType.SUB_ORCHESTRATION_INSTANCE_CREATED
    completed_type = HistoryEventType.SUB_ORCHESTRATION_INSTANCE_COMPLETED
    failed_type = HistoryEventType.SUB_ORCHESTRATION_INSTANCE_FAILED

    def __init__(
        self,
        function_name: str,
        input: Any = None,
        instance_id: str | None = None,
        retry_options: RetryOptions | None = None,
    ):
        if not function_name:
            raise ValueError("function_name cannot be empty")
        super().__init__(retry_options)
        self.function_name = function_name
        self.input = input
        self.instance_id = instance_id

    @property
    def name(self) -> str:
        return self.function_name

    def _matches(self, event: HistoryEvent) -> bool:
        if event.event_type is not self.scheduled_type or event.name != self.function_name:
            return False
        # Only compare instance ids when both sides know one
        return self.instance_id is None or event.instance_id in (None, self.instance_id)

    def find_scheduled_evidence(self, context):
        return context.history.find_unprocessed_scheduled(self._matches)

    def to_action(self):
        if self.retry_options is None:
            return CallSubOrchestratorAction(
                function_name=self.function_name, input=self.input, instance_id=self.instance_id
            )
        return CallSubOrchestratorWithRetryAction(
            function_name=self.function_name,
            input=self.input,
            instance_id=self.instance_id,
            retry_options=self.retry_options,
        )

    def __repr__(self) -> str:
        return f"SubOrchestrationTask({self.function_name!r})"


class DurableTimerTask(DurableTask):
    """
    A durable timer firing at ``fire_at``.

    Timers carry no identity besides their fire time, so two timers for the
    same instant bind to TimerCreated events in document order.
    """

    scheduled_type = HistoryEventType.TIMER_CREATED
    completed_type = HistoryEventType.TIMER_FIRED

    def __init__(self, fire_at: datetime):
        super().__init__()
        self.fire_at = ensure_utc(fire_at)
        self.is_canceled = False

    @property
    def name(self) -> str:
        return f"Timer({format_timestamp(self.fire_at)})"

    def find_scheduled_evidence(self, context):
        return context.history.find_unprocessed_scheduled(
            lambda e: e.event_type is self.scheduled_type
            and e.fire_at is not None
            and ensure_utc(e.fire_at) == self.fire_at
        )

    def decode_result(self, event):
        return None

    def to_action(self):
        return CreateTimerAction(fire_at=self.fire_at, is_canceled=self.is_canceled)

    def __repr__(self) -> str:
        state = ", canceled" if self.is_canceled else ""
        return f"DurableTimerTask({format_timestamp(self.fire_at)}{state})"


class ExternalEventTask(DurableTask):
    """
    Waits for an event raised by an external client.

    The host never records a scheduling event for these: the first available
    EventRaised with the same name is the completion.
    """

    completed_type = HistoryEventType.EVENT_RAISED

    def __init__(self, event_name: str):
        if not event_name:
            raise ValueError("event_name cannot be empty")
        super().__init__()
        self.event_name = event_name

    @property
    def name(self) -> str:
        return self.event_name

    def find_scheduled_evidence(self, context):
        return None

    def find_completion_evidence(self, context, scheduled_index=None):
        return context.history.find_first(
            lambda e: e.event_type is self.completed_type and e.name == self.event_name
        )

    def decode_result(self, event):
        return decode_payload(event.input)

    def to_action(self):
        return WaitForExternalEventAction(external_event_name=self.event_name)

    def __repr__(self) -> str:
        return f"ExternalEventTask({self.event_name!r})"


class HttpTask(DurableTask):
    """A durable HTTP call executed by the host's built-in HTTP activity."""

    scheduled_type = HistoryEventType.TASK_SCHEDULED
    completed_type = HistoryEventType.TASK_COMPLETED
    failed_type = HistoryEventType.TASK_FAILED

    def __init__(self, request: DurableHttpRequest):
        super().__init__()
        self.request = request

    @property
    def name(self) -> str:
        return HTTP_ACTIVITY_NAME

    def find_scheduled_evidence(self, context):
        return context.history.find_unprocessed_scheduled(
            lambda e: e.event_type is self.scheduled_type and e.name == HTTP_ACTIVITY_NAME
        )

    def decode_result(self, event):
        payload = decode_payload(event.result)
        if isinstance(payload, dict):
            return DurableHttpResponse.from_dict(payload)
        return payload

    def to_action(self):
        return CallHttpAction(http_request=self.request)

    def __repr__(self) -> str:
        return f"HttpTask({self.request.method} {self.request.uri})"
