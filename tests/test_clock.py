"""Tests for the logical clock."""

from datetime import timedelta

import pytest

from pydurable.core.context import OrchestrationContext
from pydurable.executor.clock import initialize_current_utc_datetime, update_current_utc_datetime
from pydurable.executor.invoker import invoke_orchestration


def test_clock_starts_at_first_orchestrator_started(builder, t0):
    builder.started()
    builder.started()
    context = OrchestrationContext("instance-1", builder.build())

    initialize_current_utc_datetime(context)

    assert context.current_utc_datetime == t0
    assert context.history.processed_indices() == [0]


def test_clock_advances_one_episode_per_update(builder, t0):
    builder.started()
    builder.started()
    context = OrchestrationContext("instance-1", builder.build())
    initialize_current_utc_datetime(context)

    update_current_utc_datetime(context)
    assert context.current_utc_datetime == t0 + timedelta(seconds=1)

    update_current_utc_datetime(context)
    assert context.current_utc_datetime == t0 + timedelta(seconds=1)


def test_clock_unset_without_orchestrator_started(builder):
    builder.scheduled("A")
    context = OrchestrationContext("instance-1", builder.build())

    initialize_current_utc_datetime(context)

    assert context.current_utc_datetime is None


def test_clock_follows_replayed_results(builder, t0):
    """Each resolved call moves the clock to the episode that delivered it."""
    builder.started()
    first = builder.scheduled("A")
    builder.started()
    builder.completed(first, 1)
    second = builder.scheduled("B")
    builder.started()
    builder.completed(second, 2)
    seen = []

    def body(context):
        seen.append(context.current_utc_datetime)
        context.call_activity("A")
        seen.append(context.current_utc_datetime)
        context.call_activity("B")
        seen.append(context.current_utc_datetime)

    invoke_orchestration(OrchestrationContext("instance-1", builder.build()), body)

    assert seen == [t0, t0 + timedelta(seconds=1), t0 + timedelta(seconds=2)]


def test_relative_timer_uses_logical_clock(builder, t0):
    builder.started()
    seen = []

    def body(context):
        task = context.create_timer(timedelta(minutes=5), no_wait=True)
        seen.append(task.fire_at)

    invoke_orchestration(OrchestrationContext("instance-1", builder.build()), body)

    assert seen == [t0 + timedelta(minutes=5)]


def test_relative_timer_without_clock_is_rejected():
    context = OrchestrationContext("instance-1")

    with pytest.raises(ValueError, match="OrchestratorStarted"):
        context.create_timer(timedelta(minutes=5))
