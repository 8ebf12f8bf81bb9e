"""
Pytest configuration and fixtures for pydurable tests.

Provides a builder for realistic orchestration histories and hypothesis
strategies for property-based tests.
"""

import json
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import strategies as st

from pydurable.core.history import HistoryEvent, HistoryEventType

T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=UTC)


class HistoryBuilder:
    """
    Builds histories the way the host records them.

    Scheduling methods return the EventId the completion must reference.
    Every OrchestratorStarted advances the recorded time by one second.
    """

    def __init__(self, start: datetime = T0, played: bool = False):
        self.events: list[HistoryEvent] = []
        self.now = start
        self.played = played
        self._next_id = 0

    def _add(self, event_type, event_id=-1, **fields):
        fields.setdefault("is_played", self.played)
        self.events.append(
            HistoryEvent(event_id=event_id, event_type=event_type, timestamp=self.now, **fields)
        )

    def _new_id(self) -> int:
        event_id = self._next_id
        self._next_id += 1
        return event_id

    def started(self):
        self._add(HistoryEventType.ORCHESTRATOR_STARTED)
        self.now += timedelta(seconds=1)
        return self

    def execution_started(self, input=None):
        self._add(HistoryEventType.EXECUTION_STARTED, input=_dump(input))
        return self

    def scheduled(self, name, input=None) -> int:
        event_id = self._new_id()
        self._add(HistoryEventType.TASK_SCHEDULED, event_id, name=name, input=_dump(input))
        return event_id

    def completed(self, scheduled_id, result=None, played=None):
        extra = {} if played is None else {"is_played": played}
        self._add(
            HistoryEventType.TASK_COMPLETED,
            task_scheduled_id=scheduled_id,
            result=_dump(result),
            **extra,
        )
        return self

    def failed(self, scheduled_id, reason="boom", details=None):
        self._add(
            HistoryEventType.TASK_FAILED,
            task_scheduled_id=scheduled_id,
            reason=reason,
            details=details,
        )
        return self

    def sub_created(self, name, instance_id=None) -> int:
        event_id = self._new_id()
        self._add(
            HistoryEventType.SUB_ORCHESTRATION_INSTANCE_CREATED,
            event_id,
            name=name,
            instance_id=instance_id,
        )
        return event_id

    def sub_completed(self, scheduled_id, result=None):
        self._add(
            HistoryEventType.SUB_ORCHESTRATION_INSTANCE_COMPLETED,
            task_scheduled_id=scheduled_id,
            result=_dump(result),
        )
        return self

    def sub_failed(self, scheduled_id, reason="boom", details=None):
        self._add(
            HistoryEventType.SUB_ORCHESTRATION_INSTANCE_FAILED,
            task_scheduled_id=scheduled_id,
            reason=reason,
            details=details,
        )
        return self

    def timer_created(self, fire_at) -> int:
        event_id = self._new_id()
        self._add(HistoryEventType.TIMER_CREATED, event_id, fire_at=fire_at)
        return event_id

    def timer_fired(self, timer_id, fire_at):
        self._add(HistoryEventType.TIMER_FIRED, timer_id=timer_id, fire_at=fire_at)
        return self

    def event_raised(self, name, payload=None):
        self._add(HistoryEventType.EVENT_RAISED, name=name, input=_dump(payload))
        return self

    def build(self) -> list[HistoryEvent]:
        return list(self.events)


def _dump(value):
    return None if value is None else json.dumps(value)


@pytest.fixture
def builder() -> HistoryBuilder:
    """Fresh history builder starting at T0."""
    return HistoryBuilder()


@pytest.fixture
def t0() -> datetime:
    return T0


# Hypothesis strategies for property-based testing

activity_names = st.text(
    min_size=1, max_size=20, alphabet=st.characters(whitelist_categories=("Lu", "Ll"))
)

json_values = st.recursive(
    st.none()
    | st.booleans()
    | st.integers(min_value=-(2**31), max_value=2**31)
    | st.text(max_size=20),
    lambda children: st.lists(children, max_size=4)
    | st.dictionaries(st.text(max_size=8), children, max_size=4),
    max_leaves=10,
)


@st.composite
def utc_datetimes(draw):
    """Aware UTC datetimes with microsecond precision."""
    value = draw(
        st.datetimes(min_value=datetime(2000, 1, 1), max_value=datetime(2100, 1, 1))
    )
    return value.replace(tzinfo=UTC)
