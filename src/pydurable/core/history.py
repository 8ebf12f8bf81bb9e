"""
History model for orchestration replay.

The host records every meaningful occurrence of an orchestration instance as a
HistoryEvent and hands the full log back on each invocation. This module holds
the immutable event records and OrchestrationHistory, the per-pass view used
by the task handler to bind calls in orchestrator code to recorded events.

Design: Arena + parallel flags
    The canonical log is a tuple and is never mutated. Consumption state for
    the current pass lives in a parallel list of booleans indexed by position,
    so a fresh OrchestrationHistory always starts with nothing processed.
    Events are addressed by index rather than EventId because completion
    events are recorded with EventId -1.

Example:
    ```python
    history = OrchestrationHistory([
        HistoryEvent(event_id=0, event_type=HistoryEventType.TASK_SCHEDULED, name="Foo"),
        HistoryEvent(event_id=-1, event_type=HistoryEventType.TASK_COMPLETED,
                     task_scheduled_id=0, result="42"),
    ])

    scheduled = history.find_unprocessed_scheduled(
        lambda e: e.event_type is HistoryEventType.TASK_SCHEDULED and e.name == "Foo"
    )
    completed = history.find_unprocessed_completion(scheduled, lambda e: True)
    history.mark_processed(scheduled, completed)
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

__all__ = [
    "HistoryEventType",
    "HistoryEvent",
    "OrchestrationHistory",
]

EventPredicate = Callable[["HistoryEvent"], bool]


class HistoryEventType(Enum):
    """
    Kind of a recorded history event.

    Values are the host's numeric codes, in the host's declaration order.
    """

    EXECUTION_STARTED = 0
    EXECUTION_COMPLETED = 1
    EXECUTION_FAILED = 2
    EXECUTION_TERMINATED = 3
    TASK_SCHEDULED = 4
    TASK_COMPLETED = 5
    TASK_FAILED = 6
    SUB_ORCHESTRATION_INSTANCE_CREATED = 7
    SUB_ORCHESTRATION_INSTANCE_COMPLETED = 8
    SUB_ORCHESTRATION_INSTANCE_FAILED = 9
    TIMER_CREATED = 10
    TIMER_FIRED = 11
    ORCHESTRATOR_STARTED = 12
    ORCHESTRATOR_COMPLETED = 13
    EVENT_SENT = 14
    EVENT_RAISED = 15
    CONTINUE_AS_NEW = 16
    GENERIC_EVENT = 17
    HISTORY_STATE = 18

    @classmethod
    def parse(cls, value: int | str | HistoryEventType) -> HistoryEventType:
        """
        Parse an event type from its numeric code or its host name.

        Accepts ``5``, ``"5"``, ``"TaskCompleted"`` and ``"TASK_COMPLETED"``.

        Raises:
            ValueError: If the value names no known event type
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.lstrip("-").isdigit():
            return cls(int(text))
        key = text.replace("_", "").lower()
        for member in cls:
            if member.name.replace("_", "").lower() == key:
                return member
        raise ValueError(f"Unknown history event type: {value!r}")

    @property
    def is_scheduling(self) -> bool:
        """True for events that record a durable call being scheduled."""
        return self in _SCHEDULING_TYPES

    def __str__(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


_SCHEDULING_TYPES = frozenset(
    {
        HistoryEventType.TASK_SCHEDULED,
        HistoryEventType.SUB_ORCHESTRATION_INSTANCE_CREATED,
        HistoryEventType.TIMER_CREATED,
    }
)


@dataclass(frozen=True)
class HistoryEvent:
    """
    One immutable record from an orchestration instance's history.

    Scheduling events (TaskScheduled, TimerCreated, SubOrchestrationInstanceCreated)
    carry the identity of the call; their completion counterparts point back
    at them through ``task_scheduled_id`` or ``timer_id``.
    """

    event_id: int
    """Host-assigned id, unique for scheduling events; -1 on most completions."""

    event_type: HistoryEventType
    """What happened."""

    timestamp: datetime | None = None
    """When the host recorded the event (UTC)."""

    is_played: bool = False
    """True if a previous pass already observed this event."""

    name: str | None = None
    """Activity, sub-orchestration or external event name."""

    input: str | None = None
    """Serialized input (scheduled events) or payload (EventRaised)."""

    result: str | None = None
    """Serialized result of a successful completion."""

    reason: str | None = None
    """Failure reason of TaskFailed / SubOrchestrationInstanceFailed."""

    details: str | None = None
    """Failure details (often a stack trace or JSON error document)."""

    fire_at: datetime | None = None
    """Fire time of TimerCreated / TimerFired."""

    timer_id: int | None = None
    """EventId of the TimerCreated event a TimerFired belongs to."""

    task_scheduled_id: int | None = None
    """EventId of the scheduling event a completion belongs to."""

    instance_id: str | None = None
    """Sub-orchestration instance id, when recorded."""

    @property
    def related_event_id(self) -> int | None:
        """Back-reference to the scheduling event, if this is a completion."""
        if self.event_type is HistoryEventType.TIMER_FIRED:
            return self.timer_id
        return self.task_scheduled_id

    def __str__(self) -> str:
        parts = [f"{self.event_type}(id={self.event_id}"]
        if self.name:
            parts.append(f"name={self.name!r}")
        if self.related_event_id is not None:
            parts.append(f"ref={self.related_event_id}")
        if self.fire_at is not None:
            parts.append(f"fire_at={self.fire_at.isoformat()}")
        return ", ".join(parts) + ")"


class OrchestrationHistory(Sequence[HistoryEvent]):
    """
    Read-only history plus the consumption state of one replay pass.

    Two kinds of per-pass state sit beside the events:

    - processed: the event's result has been handed to orchestrator code
    - reserved: the event is bound to a deferred task handle created in this
      pass (``no_wait``) whose result has not been consumed yet

    Lookups skip both, so every call in orchestrator code binds to a distinct
    occurrence in history order.
    """

    def __init__(self, events: Iterable[HistoryEvent] = ()):
        self._events: tuple[HistoryEvent, ...] = tuple(events)
        self._processed = [False] * len(self._events)
        self._reserved: set[int] = set()

    def __len__(self) -> int:
        return len(self._events)

    def __getitem__(self, index):  # type: ignore[override]
        return self._events[index]

    def __iter__(self) -> Iterator[HistoryEvent]:
        return iter(self._events)

    @property
    def events(self) -> tuple[HistoryEvent, ...]:
        return self._events

    def is_processed(self, index: int) -> bool:
        return self._processed[index]

    def mark_processed(self, *indices: int) -> None:
        """Mark events as consumed for the rest of this pass."""
        for index in indices:
            self._processed[index] = True
            self._reserved.discard(index)

    def reserve(self, index: int) -> None:
        """Bind an event to a deferred task handle without consuming it."""
        self._reserved.add(index)

    def is_reserved(self, index: int) -> bool:
        return index in self._reserved

    def is_available(self, index: int) -> bool:
        """True if no task in this pass has claimed or consumed the event."""
        return not self._processed[index] and index not in self._reserved

    def processed_indices(self) -> list[int]:
        return [i for i, flag in enumerate(self._processed) if flag]

    def find_first(
        self,
        predicate: EventPredicate,
        *,
        start: int = 0,
        skip: Iterable[int] = (),
    ) -> int | None:
        """
        Return the index of the first available event matching ``predicate``.

        Args:
            predicate: Test applied to each candidate event
            start: First index to consider
            skip: Additional indices to treat as unavailable

        Returns:
            Index into the history, or None if nothing matches
        """
        excluded = set(skip)
        for index in range(start, len(self._events)):
            if index in excluded or not self.is_available(index):
                continue
            if predicate(self._events[index]):
                return index
        return None

    def find_unprocessed_scheduled(
        self, predicate: EventPredicate, skip: Iterable[int] = ()
    ) -> int | None:
        """First available scheduling event matching ``predicate``."""
        return self.find_first(predicate, skip=skip)

    def find_unprocessed_completion(
        self,
        scheduled_index: int,
        predicate: EventPredicate,
        skip: Iterable[int] = (),
    ) -> int | None:
        """
        First available event that references the scheduling event at
        ``scheduled_index`` and matches ``predicate``.
        """
        scheduled_id = self._events[scheduled_index].event_id

        def references_scheduled(event: HistoryEvent) -> bool:
            return event.related_event_id == scheduled_id and predicate(event)

        return self.find_first(references_scheduled, skip=skip)

    def next_orchestrator_started(self) -> int | None:
        """Index of the next unprocessed OrchestratorStarted event."""
        return self.find_first(
            lambda e: e.event_type is HistoryEventType.ORCHESTRATOR_STARTED
        )

    def unclaimed_scheduling_events(self) -> list[int]:
        """
        Activity and sub-orchestration scheduling events for a name that no
        call in this pass claimed.

        Timers are left out: they carry no name to compare. Events whose name
        was claimed are left out too, since host-side retries schedule the
        same name again.
        """
        named = [
            (index, event)
            for index, event in enumerate(self._events)
            if event.event_type.is_scheduling
            and event.event_type is not HistoryEventType.TIMER_CREATED
        ]
        claimed = {event.name for index, event in named if not self.is_available(index)}
        return [
            index for index, event in named if self.is_available(index) and event.name not in claimed
        ]

    def __repr__(self) -> str:
        processed = sum(self._processed)
        return f"OrchestrationHistory(events={len(self._events)}, processed={processed})"
