"""Tests for history events, OrchestrationHistory lookups and timestamps."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from pydurable.core.errors import FailureDetails, TaskFailedError
from pydurable.core.history import HistoryEvent, HistoryEventType, OrchestrationHistory
from pydurable.core.timestamps import ensure_utc, format_timestamp, parse_timestamp


def test_event_type_parse_accepts_codes_and_names():
    """Event types parse from numbers, digit strings and host names."""
    assert HistoryEventType.parse(5) is HistoryEventType.TASK_COMPLETED
    assert HistoryEventType.parse("5") is HistoryEventType.TASK_COMPLETED
    assert HistoryEventType.parse("TaskCompleted") is HistoryEventType.TASK_COMPLETED
    assert HistoryEventType.parse("task_completed") is HistoryEventType.TASK_COMPLETED
    assert str(HistoryEventType.SUB_ORCHESTRATION_INSTANCE_CREATED) == (
        "SubOrchestrationInstanceCreated"
    )


def test_event_type_parse_rejects_unknown():
    with pytest.raises(ValueError, match="Unknown history event type"):
        HistoryEventType.parse("NotAnEvent")


def test_scheduling_event_types():
    assert HistoryEventType.TASK_SCHEDULED.is_scheduling
    assert HistoryEventType.TIMER_CREATED.is_scheduling
    assert HistoryEventType.SUB_ORCHESTRATION_INSTANCE_CREATED.is_scheduling
    assert not HistoryEventType.TASK_COMPLETED.is_scheduling
    assert not HistoryEventType.EVENT_RAISED.is_scheduling


def test_related_event_id_uses_timer_id_for_timer_fired():
    fired = HistoryEvent(event_id=-1, event_type=HistoryEventType.TIMER_FIRED, timer_id=3)
    completed = HistoryEvent(
        event_id=-1, event_type=HistoryEventType.TASK_COMPLETED, task_scheduled_id=4
    )

    assert fired.related_event_id == 3
    assert completed.related_event_id == 4


def test_fresh_history_has_nothing_processed(builder):
    """Consumption state always starts empty."""
    scheduled = builder.scheduled("A")
    builder.completed(scheduled, 1)
    history = OrchestrationHistory(builder.build())

    assert len(history) == 2
    assert history.processed_indices() == []
    assert all(history.is_available(i) for i in range(len(history)))


def test_find_first_returns_first_match_in_history_order(builder):
    builder.scheduled("A")
    builder.scheduled("B")
    builder.scheduled("A")
    history = OrchestrationHistory(builder.build())

    index = history.find_unprocessed_scheduled(lambda e: e.name == "A")

    assert index == 0


def test_find_first_skips_processed_and_reserved(builder):
    """At most one call binds to each occurrence."""
    for _ in range(3):
        builder.scheduled("A")
    history = OrchestrationHistory(builder.build())
    is_a = lambda e: e.name == "A"  # noqa: E731

    history.mark_processed(0)
    history.reserve(1)

    assert history.find_first(is_a) == 2
    assert history.find_first(is_a, skip=[2]) is None
    assert history.is_reserved(1)
    assert not history.is_available(1)


def test_mark_processed_releases_reservation(builder):
    builder.scheduled("A")
    history = OrchestrationHistory(builder.build())

    history.reserve(0)
    history.mark_processed(0)

    assert history.is_processed(0)
    assert not history.is_reserved(0)
    assert history.processed_indices() == [0]


def test_find_unprocessed_completion_matches_reference(builder):
    first = builder.scheduled("A")
    second = builder.scheduled("A")
    builder.completed(second, "second")
    builder.completed(first, "first")
    history = OrchestrationHistory(builder.build())

    assert history.find_unprocessed_completion(0, lambda e: True) == 3
    assert history.find_unprocessed_completion(1, lambda e: True) == 2


def test_next_orchestrator_started(builder):
    builder.started()
    builder.scheduled("A")
    builder.started()
    history = OrchestrationHistory(builder.build())

    assert history.next_orchestrator_started() == 0
    history.mark_processed(0)
    assert history.next_orchestrator_started() == 2


def test_unclaimed_scheduling_events_ignore_timers_and_claimed_names(builder, t0):
    """Retry attempts of a claimed name and timers are never reported."""
    builder.scheduled("A")
    builder.timer_created(t0)
    builder.scheduled("A")
    builder.scheduled("B")
    history = OrchestrationHistory(builder.build())

    history.mark_processed(0)

    assert history.unclaimed_scheduling_events() == [3]


def test_failure_details_from_json_document():
    details = FailureDetails.from_reason(
        "boom", '{"Message": "ignored", "Type": "ValueError", "StackTrace": "at line 1"}'
    )

    assert details.message == "boom"
    assert details.error_type == "ValueError"
    assert details.stack_trace == "at line 1"
    assert str(details) == "ValueError: boom"


def test_failure_details_from_plain_stack_trace():
    details = FailureDetails.from_reason("boom", "Traceback (most recent call last): ...")

    assert details.error_type is None
    assert details.stack_trace.startswith("Traceback")
    assert str(details) == "boom"


def test_task_failed_error_message():
    error = TaskFailedError("ChargeCard", FailureDetails("card declined"))

    assert str(error) == "Task 'ChargeCard' failed: card declined"
    assert error.task_name == "ChargeCard"


def test_parse_timestamp_trims_seven_digit_fractions():
    value = parse_timestamp("2024-05-01T10:00:00.1234567Z")

    assert value == datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=UTC)


def test_parse_timestamp_handles_offsets_and_empty_values():
    value = parse_timestamp("2024-05-01T12:00:00+02:00")

    assert value == datetime(2024, 5, 1, 10, 0, 0, tzinfo=UTC)
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(ValueError, match="Invalid timestamp"):
        parse_timestamp("yesterday")


def test_format_timestamp_uses_z_suffix():
    assert format_timestamp(datetime(2024, 5, 1, 10, 0, 0, tzinfo=UTC)) == "2024-05-01T10:00:00Z"


def test_ensure_utc_treats_naive_values_as_utc():
    naive = datetime(2024, 5, 1, 10, 0, 0)
    plus_two = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))

    assert ensure_utc(naive) == datetime(2024, 5, 1, 10, 0, 0, tzinfo=UTC)
    assert ensure_utc(plus_two).tzinfo is UTC
