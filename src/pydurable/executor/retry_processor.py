"""
Replay of host-side retry chains.

When a call carries RetryOptions the host retries it itself and records each
attempt in history:

    TaskScheduled -> TaskFailed -> TimerCreated -> TimerFired -> TaskScheduled -> ...

The orchestrator sees one logical call. ``process_retries`` walks the chain
starting at the call's first scheduling event and decides whether it ended in
success, ended in a final failure, or is still in progress.

Nothing is marked processed here. The walk reports every index it consumed
so the handler can mark them only when the call resolves. Events already
processed or reserved by another call in this pass are skipped.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from pydurable.core.history import HistoryEventType, OrchestrationHistory

__all__ = ["RetryState", "RetryResult", "process_retries"]


class RetryState(Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    IN_PROGRESS = "IN_PROGRESS"


@dataclass(frozen=True)
class RetryResult:
    state: RetryState
    event_index: int | None = None
    """Completion (SUCCEEDED) or last failure (FAILED) event index."""

    consumed: tuple[int, ...] = ()
    attempts: int = 0


def process_retries(
    history: OrchestrationHistory,
    first_scheduled_index: int,
    max_attempts: int,
    *,
    scheduled_type: HistoryEventType = HistoryEventType.TASK_SCHEDULED,
    completed_type: HistoryEventType = HistoryEventType.TASK_COMPLETED,
    failed_type: HistoryEventType = HistoryEventType.TASK_FAILED,
    skip: Iterable[int] = (),
) -> RetryResult:
    """
    Walk the retry chain of one call.

    Each attempt is a scheduling event followed by either a completion (the
    chain succeeds) or a failure. A failure is followed by a retry timer
    (TimerCreated, then the TimerFired referencing it) before the next
    scheduling event of the same name. The call fails for good once
    ``max_attempts`` failures have had their retry timer fire.

    Args:
        history: History of the current pass
        first_scheduled_index: Scheduling event of the first attempt
        max_attempts: RetryOptions.max_number_of_attempts
        skip: Indices already claimed by other calls in this pass

    Returns:
        RetryResult describing the chain and the indices it covers
    """
    excluded = set(skip)
    name = history[first_scheduled_index].name
    consumed: list[int] = []
    attempt = 1

    scheduled: int | None = first_scheduled_index
    failed: int | None = None
    retry_timer: int | None = None

    for index in range(first_scheduled_index + 1, len(history)):
        if index in excluded or not history.is_available(index):
            continue
        event = history[index]

        if scheduled is None:
            if event.event_type is scheduled_type and event.name == name:
                scheduled = index
            continue

        scheduled_id = history[scheduled].event_id

        if event.event_type is completed_type and event.task_scheduled_id == scheduled_id:
            consumed.extend((scheduled, index))
            return RetryResult(RetryState.SUCCEEDED, index, tuple(consumed), attempt)

        if failed is None:
            if event.event_type is failed_type and event.task_scheduled_id == scheduled_id:
                failed = index
            continue

        if retry_timer is None:
            if event.event_type is HistoryEventType.TIMER_CREATED:
                retry_timer = index
            continue

        if (
            event.event_type is HistoryEventType.TIMER_FIRED
            and event.timer_id == history[retry_timer].event_id
        ):
            consumed.extend((scheduled, failed, retry_timer, index))
            if attempt >= max_attempts:
                return RetryResult(RetryState.FAILED, failed, tuple(consumed), attempt)
            attempt += 1
            scheduled = failed = retry_timer = None

    return RetryResult(RetryState.IN_PROGRESS, None, tuple(consumed), attempt)
