"""End-to-end replay passes through OrchestrationInvoker and the context API."""

import logging
from datetime import timedelta

import pytest

from pydurable import (
    AwaitingMoreHistory,
    BindingValidationError,
    Completed,
    ContinuingAsNew,
    DurableOptions,
    Faulted,
    NonDeterminismError,
    OrchestrationBindingInfo,
    OrchestrationContext,
    OrchestrationInvoker,
    TaskFailedError,
    activity,
    get_current_context,
    invoke_orchestration,
    is_done,
    orchestrator,
)
from pydurable.models import (
    CallActivityAction,
    ContinueAsNewAction,
    CreateTimerAction,
    WaitForExternalEventAction,
)
from pydurable.registry import FunctionRegistry


def hello_sequence(context: OrchestrationContext):
    return [
        context.call_activity("SayHello", "Tokyo"),
        context.call_activity("SayHello", "Seattle"),
    ]


def _replay(builder, body, **kwargs):
    context = OrchestrationContext("instance-1", builder.build(), **kwargs)
    return context, invoke_orchestration(context, body)


# =============================================================================
# Pass outcomes
# =============================================================================


def test_first_pass_schedules_first_activity(builder):
    builder.started()
    _, result = _replay(builder, hello_sequence)

    assert isinstance(result, AwaitingMoreHistory)
    assert result.actions == [[CallActivityAction("SayHello", "Tokyo")]]
    assert not is_done(result)


def test_second_pass_schedules_next_activity(builder):
    builder.started()
    first = builder.scheduled("SayHello", "Tokyo")
    builder.started()
    builder.completed(first, "Hello Tokyo!")
    _, result = _replay(builder, hello_sequence)

    assert isinstance(result, AwaitingMoreHistory)
    assert result.actions == [[CallActivityAction("SayHello", "Seattle")]]


def test_full_history_completes(builder):
    builder.started()
    first = builder.scheduled("SayHello", "Tokyo")
    builder.started()
    builder.completed(first, "Hello Tokyo!")
    second = builder.scheduled("SayHello", "Seattle")
    builder.started()
    builder.completed(second, "Hello Seattle!")
    _, result = _replay(builder, hello_sequence)

    assert result == Completed(output=["Hello Tokyo!", "Hello Seattle!"])
    assert is_done(result)


def test_no_code_runs_after_a_pending_call(builder):
    builder.started()
    reached = []

    def body(context):
        context.call_activity("A")
        reached.append(True)

    _, result = _replay(builder, body)

    assert isinstance(result, AwaitingMoreHistory)
    assert reached == []


def test_except_exception_does_not_swallow_suspension(builder):
    builder.started()

    def body(context):
        try:
            context.call_activity("A")
        except Exception:
            return "swallowed"
        return "done"

    _, result = _replay(builder, body)

    assert isinstance(result, AwaitingMoreHistory)


def test_swallowed_suspension_still_awaits_more_history(builder):
    """A body that catches everything and returns has not completed."""
    builder.started()

    def body(context):
        try:
            return context.call_activity("A")
        except:  # noqa: E722
            return "default"

    _, result = _replay(builder, body)

    assert isinstance(result, AwaitingMoreHistory)
    assert result.actions == [[CallActivityAction("A", None)]]


def test_uncaught_task_failure_faults_the_pass(builder):
    builder.started()
    scheduled = builder.scheduled("ChargeCard")
    builder.failed(scheduled, reason="card declined")
    _, result = _replay(builder, lambda context: context.call_activity("ChargeCard"))

    assert isinstance(result, Faulted)
    assert isinstance(result.error, TaskFailedError)
    assert "card declined" in str(result.error)


def test_caught_task_failure_allows_compensation(builder):
    """Orchestrator code may catch a failed call and schedule compensation."""
    builder.started()
    scheduled = builder.scheduled("ChargeCard")
    builder.failed(scheduled, reason="card declined")

    def body(context):
        try:
            return context.call_activity("ChargeCard")
        except TaskFailedError:
            return context.call_activity("Refund")

    _, result = _replay(builder, body)

    assert isinstance(result, AwaitingMoreHistory)
    assert result.actions == [[CallActivityAction("Refund")]]


def test_orchestrator_exception_faults_with_collected_actions(builder):
    builder.started()

    def body(context):
        context.call_activity("A", no_wait=True)
        raise KeyError("missing")

    _, result = _replay(builder, body)

    assert isinstance(result, Faulted)
    assert isinstance(result.error, KeyError)
    assert result.actions == [[CallActivityAction("A")]]


def test_continue_as_new(builder):
    builder.started()

    def body(context):
        context.continue_as_new({"iteration": 2})

    _, result = _replay(builder, body)

    assert result == ContinuingAsNew(
        input={"iteration": 2}, actions=[[ContinueAsNewAction({"iteration": 2})]]
    )
    assert is_done(result)


def test_custom_status_is_reported(builder):
    builder.started()

    def body(context):
        context.set_custom_status({"stage": "charging"})
        context.call_activity("ChargeCard")

    _, result = _replay(builder, body)

    assert result.custom_status == {"stage": "charging"}


# =============================================================================
# Fan-out / fan-in
# =============================================================================


def fan_out(context):
    tasks = [context.call_activity("Work", n, no_wait=True) for n in range(3)]
    return sum(context.task_all(tasks))


def test_fan_out_first_pass_emits_one_batch(builder):
    builder.started()
    _, result = _replay(builder, fan_out)

    assert result.actions == [[CallActivityAction("Work", n) for n in range(3)]]


def test_fan_in_waits_for_every_task(builder):
    builder.started()
    ids = [builder.scheduled("Work", n) for n in range(3)]
    builder.started()
    builder.completed(ids[2], 20)
    builder.completed(ids[0], 0)
    context, result = _replay(builder, fan_out)

    assert isinstance(result, AwaitingMoreHistory)
    assert result.actions == []
    assert context.history.processed_indices() == [0]


def test_fan_in_completes(builder):
    builder.started()
    ids = [builder.scheduled("Work", n) for n in range(3)]
    builder.started()
    for scheduled, value in zip(ids, (1, 10, 100), strict=True):
        builder.completed(scheduled, value)
    _, result = _replay(builder, fan_out)

    assert result == Completed(output=111)


def test_task_any_with_timeout_cancels_timer(builder, t0):
    """The losing timer is cancelled so the host can finish the instance."""
    builder.started()
    scheduled = builder.scheduled("Approve")
    builder.started()
    builder.completed(scheduled, "approved")

    def body(context):
        work = context.call_activity("Approve", no_wait=True)
        timeout = context.create_timer(timedelta(hours=1), no_wait=True)
        winner = context.task_any([work, timeout])
        if winner is work:
            context.cancel_timer(timeout)
            return work.result()
        return "timed out"

    _, result = _replay(builder, body)

    assert result == Completed(
        output="approved",
        actions=[[CreateTimerAction(t0 + timedelta(hours=1), is_canceled=True)]],
    )


def test_external_event_pass_sequence(builder):
    builder.started()

    def body(context):
        return context.wait_for_external_event("Approval")

    _, first = _replay(builder, body)
    builder.started()
    builder.event_raised("Approval", {"by": "ops"})
    _, second = _replay(builder, body)

    assert first.actions == [[WaitForExternalEventAction("Approval")]]
    assert second == Completed(output={"by": "ops"})


def test_sub_orchestrator_call(builder):
    builder.started()
    created = builder.sub_created("Child", instance_id="child-1")
    builder.started()
    builder.sub_completed(created, 7)

    def body(context):
        return context.call_sub_orchestrator("Child", 1, instance_id="child-1")

    _, result = _replay(builder, body)

    assert result == Completed(output=7)


def test_call_http_returns_response(builder):
    builder.started()
    scheduled = builder.scheduled("BuiltIn::HttpActivity")
    builder.started()
    builder.completed(scheduled, {"statusCode": 404})

    def body(context):
        return context.call_http("GET", "https://example.com/missing").status_code

    _, result = _replay(builder, body)

    assert result == Completed(output=404)


# =============================================================================
# Pass-level faults
# =============================================================================


def test_unclaimed_history_is_non_deterministic(builder):
    """History scheduling a call the code never makes means the code changed."""
    builder.started()
    builder.scheduled("RemovedActivity")
    _, result = _replay(builder, lambda context: "done")

    assert isinstance(result, Faulted)
    assert isinstance(result.error, NonDeterminismError)
    assert "RemovedActivity" in str(result.error)


def test_unclaimed_history_check_can_be_disabled(builder):
    builder.started()
    builder.scheduled("RemovedActivity")
    _, result = _replay(
        builder, lambda context: "done", options=DurableOptions(detect_unclaimed_history=False)
    )

    assert result == Completed(output="done")


def test_caught_non_determinism_still_faults(builder):
    builder.started()
    scheduled = builder.scheduled("A")
    builder.sub_completed(scheduled, "x")

    def body(context):
        try:
            context.call_activity("A")
        except NonDeterminismError:
            return "ignored"

    _, result = _replay(builder, body)

    assert isinstance(result, Faulted)
    assert isinstance(result.error, NonDeterminismError)


@activity
def say_hello(name):
    return f"Hello {name}!"


@orchestrator
def greeter(context):
    return context.call_activity("say_hello", "Tokyo")


def test_unknown_activity_fails_validation(builder):
    builder.started()
    registry = FunctionRegistry.from_functions([say_hello, greeter])

    def body(context):
        try:
            context.call_activity("greeter")
        except BindingValidationError:
            return "caught"

    _, result = _replay(builder, body, registry=registry)

    assert isinstance(result, Faulted)
    assert str(result.error) == (
        "The function 'greeter' doesn't use the 'activityTrigger' input binding."
    )


def test_registered_activity_passes_validation(builder):
    builder.started()
    registry = FunctionRegistry.from_functions([say_hello, greeter])
    _, result = _replay(builder, greeter, registry=registry)

    assert result.actions == [[CallActivityAction("say_hello", "Tokyo")]]


# =============================================================================
# Invoker
# =============================================================================


def test_stop_before_invoke_awaits_more_history(builder):
    builder.started()
    scheduled = builder.scheduled("A")
    builder.completed(scheduled, "a")
    context = OrchestrationContext("instance-1", builder.build())
    invoker = OrchestrationInvoker()

    invoker.stop()
    result = invoker.invoke(
        OrchestrationBindingInfo("context", context), lambda c: c.call_activity("A")
    )

    assert isinstance(result, AwaitingMoreHistory)
    assert not invoker.handler.is_stopped


def test_stop_applies_to_one_pass_only(builder):
    """Later passes on the same invoker replay normally after a stopped pass."""
    builder.started()
    scheduled = builder.scheduled("A")
    builder.completed(scheduled, "a")
    events = builder.build()
    invoker = OrchestrationInvoker()

    def body(context):
        return context.call_activity("A")

    invoker.stop()
    stopped = invoker.invoke(
        OrchestrationBindingInfo("context", OrchestrationContext("instance-1", events)), body
    )
    replayed = invoker.invoke(
        OrchestrationBindingInfo("context", OrchestrationContext("instance-1", events)), body
    )

    assert isinstance(stopped, AwaitingMoreHistory)
    assert replayed == Completed(output="a")


def test_current_context_is_set_during_the_pass(builder):
    builder.started()
    seen = []

    def body(context):
        seen.append(get_current_context())
        return None

    context, _ = _replay(builder, body)

    assert seen == [context]
    with pytest.raises(RuntimeError):
        get_current_context()


def test_result_is_logged(builder, caplog):
    builder.started()

    with caplog.at_level(logging.INFO, logger="pydurable.executor.invoker"):
        _replay(builder, lambda context: "done")

    assert "pass Completed" in caplog.text


# =============================================================================
# Determinism helpers
# =============================================================================


def test_new_guid_is_deterministic(builder):
    builder.started()

    def body(context):
        return [context.new_guid() for _ in range(3)]

    _, first = _replay(builder, body)
    _, second = _replay(builder, body)

    assert first.output == second.output
    assert len(set(first.output)) == 3
    assert all(guid.version == 5 for guid in first.output)


def test_new_guid_differs_between_instances(builder):
    builder.started()
    events = builder.build()
    body = lambda context: context.new_guid()  # noqa: E731

    first = invoke_orchestration(OrchestrationContext("a", events), body)
    second = invoke_orchestration(OrchestrationContext("b", events), body)

    assert first.output != second.output


def test_replay_safe_logger_is_silent_while_replaying(caplog):
    from conftest import HistoryBuilder

    replayed = HistoryBuilder(played=True)
    replayed.started()
    scheduled = replayed.scheduled("A")
    replayed.completed(scheduled, "a")
    replayed.scheduled("B")
    replayed.started()
    replayed.completed(1, "b", played=False)

    log = logging.getLogger("test.orchestrator")

    def body(context):
        safe = context.create_replay_safe_logger(log)
        context.call_activity("A")
        safe.info("after A")
        context.call_activity("B")
        safe.info("after B")

    with caplog.at_level(logging.INFO, logger="test.orchestrator"):
        invoke_orchestration(OrchestrationContext("instance-1", replayed.build()), body)

    messages = [
        record.getMessage() for record in caplog.records if record.name == "test.orchestrator"
    ]
    assert messages == ["after B"]
