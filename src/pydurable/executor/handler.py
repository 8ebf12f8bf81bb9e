"""
Task handler: reconciles durable calls against history.

Every durable call made by orchestrator code ends up here. For each call the
handler decides, using only history and the call's identity, whether it is:

- New: nothing in history yet. Its action is emitted and the call is Pending.
- Pending: scheduled in an earlier pass but not completed yet.
- Resolved: completed (success or failure). Its events are marked
  processed and the value or failure is handed to the caller's callbacks.

A Pending call ends the pass: the handler raises ``_SuspendExecution``,
which unwinds the orchestrator body up to the invoker. No orchestrator code
runs after a suspend point in the same pass.

Example:
    ```python
    handler = DurableTaskHandler()
    handler.stop_and_initiate_durable_task_or_replay(
        ActivityInvocationTask("SayHello", "Tokyo"),
        context,
        no_wait=False,
        on_output=results.append,
        on_failure=failures.append,
    )
    ```
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any, NoReturn

from pydurable.core.errors import FailureDetails, NonDeterminismError
from pydurable.executor.clock import update_current_utc_datetime
from pydurable.executor.outcome import Resolution, _SuspendExecution
from pydurable.executor.retry_processor import RetryState, process_retries
from pydurable.executor.tasks import DurableTask, DurableTimerTask
from pydurable.models.retry import RetryOptions

if TYPE_CHECKING:
    from pydurable.core.context import OrchestrationContext

__all__ = ["DurableTaskHandler"]

logger = logging.getLogger(__name__)

OutputCallback = Callable[[Any], None]
FailureCallback = Callable[[FailureDetails], None]


class DurableTaskHandler:
    """
    Reconciles durable tasks against the history of one replay pass.

    The handler itself holds only the stop flag; all per-pass state lives on
    the context (history flags, collected actions) and on the task handles.
    """

    def __init__(self):
        self._stop_requested = threading.Event()

    def stop(self) -> None:
        """
        Ask the current pass to stop at its next suspend point.

        Safe to call from another thread. A callback already running is never
        interrupted.
        """
        self._stop_requested.set()

    def reset(self) -> None:
        """Clear a stop request once the pass it was meant for has ended."""
        self._stop_requested.clear()

    @property
    def is_stopped(self) -> bool:
        return self._stop_requested.is_set()

    # =========================================================================
    # Single call
    # =========================================================================

    def stop_and_initiate_durable_task_or_replay(
        self,
        task: DurableTask,
        context: OrchestrationContext,
        no_wait: bool,
        on_output: OutputCallback,
        on_failure: FailureCallback,
        retry_options: RetryOptions | None = None,
    ) -> None:
        """
        Replay ``task`` or schedule it.

        Args:
            task: The durable call
            context: Context of the current pass
            no_wait: Return the task handle through ``on_output`` instead of
                waiting for the result
            on_output: Receives the result (or the handle when ``no_wait``)
            on_failure: Receives the failure details of a failed call
            retry_options: Retry policy, if not already set on the task

        Raises:
            _SuspendExecution: The call is Pending or the pass was stopped
            NonDeterminismError: History contradicts the call
        """
        self._check_stopped(context)
        if retry_options is not None and task.retry_options is None:
            task.retry_options = retry_options

        self._bind(task, context)
        if no_wait:
            on_output(task)
            return

        context.collector.next_batch()
        resolution = self._resolve(task, context)
        if resolution is None:
            self._suspend(context, f"{task!r} is pending")

        self._commit(context, [(task, resolution)])
        self._deliver(resolution, on_output, on_failure)

    # =========================================================================
    # Multiple calls
    # =========================================================================

    def wait_all(
        self,
        tasks: Sequence[DurableTask],
        context: OrchestrationContext,
        on_output: OutputCallback,
        on_failure: FailureCallback,
    ) -> None:
        """
        Proceed only once every task is resolved.

        Resolution is tentative until all tasks are known: if any task is
        Pending the pass suspends with no events consumed and no callbacks
        fired for any task. Otherwise callbacks fire in task order.
        """
        self._check_stopped(context)
        for task in tasks:
            self._bind(task, context)
        context.collector.next_batch()

        resolved: list[tuple[DurableTask, Resolution]] = []
        claimed: set[int] = set()
        for task in tasks:
            resolution = self._resolve(task, context, skip=claimed)
            if resolution is None:
                self._suspend(context, f"{task!r} is pending in wait_all")
            claimed.update(resolution.consumed)
            resolved.append((task, resolution))

        self._commit(context, resolved)
        for _, resolution in resolved:
            self._deliver(resolution, on_output, on_failure)

    def wait_any(
        self,
        tasks: Sequence[DurableTask],
        context: OrchestrationContext,
        on_output: OutputCallback,
    ) -> None:
        """
        Proceed as soon as one task is resolved; ``on_output`` receives it.

        The first resolvable task in list order wins, even when a later task
        completed earlier in history. Only the winner's events are consumed;
        the other tasks stay bound and can still be waited on later in the
        pass.
        """
        self._check_stopped(context)
        if not tasks:
            raise ValueError("wait_any requires at least one task")
        for task in tasks:
            self._bind(task, context)
        context.collector.next_batch()

        for task in tasks:
            resolution = self._resolve(task, context)
            if resolution is not None:
                self._commit(context, [(task, resolution)])
                on_output(task)
                return

        self._suspend(context, "no task is resolved in wait_any")

    def get_task_result(
        self,
        tasks: Iterable[DurableTask],
        context: OrchestrationContext,
        on_output: OutputCallback,
        on_failure: FailureCallback | None = None,
    ) -> None:
        """Report the outcome of every task already resolved in this pass."""
        for task in tasks:
            resolution = task._resolution
            if resolution is None:
                continue
            if resolution.succeeded:
                on_output(resolution.value)
            elif on_failure is not None:
                on_failure(resolution.failure)

    def cancel_timer(self, timer: DurableTimerTask, context: OrchestrationContext) -> None:
        """
        Cancel a timer so the host does not keep the orchestration alive for it.

        A timer emitted in this pass has its action rewritten; a timer
        scheduled in an earlier pass gets a cancelled CreateTimer action.
        """
        if timer.is_completed or timer.is_canceled:
            return
        timer.is_canceled = True
        canceled = timer.to_action()
        if timer._action is None or not context.collector.replace(timer._action, canceled):
            context.collector.add(canceled)
        timer._action = canceled
        logger.debug(f"Canceled {timer!r}")

    # =========================================================================
    # Internals
    # =========================================================================

    def _bind(self, task: DurableTask, context: OrchestrationContext) -> None:
        """Attach the task to its history evidence, or emit its action."""
        if task._bound:
            return

        history = context.history
        if task.has_scheduled_evidence:
            index = task.find_scheduled_evidence(context)
            task._scheduled_index = index
        else:
            index = task.find_completion_evidence(context, None)
            task._completion_index = index

        if index is None:
            action = task.to_action()
            context.collector.add(action)
            task._action = action
            logger.debug(f"{context.instance_id}: new {action.summary()}")
        else:
            history.reserve(index)
        task._bound = True

    def _resolve(
        self,
        task: DurableTask,
        context: OrchestrationContext,
        skip: Iterable[int] = (),
    ) -> Resolution | None:
        """Work out the task's outcome without consuming anything. None means Pending."""
        if task._resolution is not None:
            return task._resolution
        if task.is_new:
            return None

        history = context.history
        if task.has_scheduled_evidence:
            try:
                completion = task.find_completion_evidence(context, task._scheduled_index)
            except NonDeterminismError as e:
                context.record_fault(e)
                raise
            if completion is None:
                return None
            consumed = (task._scheduled_index, completion)
        else:
            completion = task._completion_index
            consumed = (completion,)

        event = history[completion]
        failure = task.failure_of(event)
        if failure is None:
            return Resolution(
                value=task.decode_result(event), consumed=consumed, completion_index=completion
            )
        if task.retry_options is None:
            return Resolution(failure=failure, consumed=consumed, completion_index=completion)
        return self._resolve_retries(task, context, skip)

    def _resolve_retries(
        self, task: DurableTask, context: OrchestrationContext, skip: Iterable[int]
    ) -> Resolution | None:
        history = context.history
        result = process_retries(
            history,
            task._scheduled_index,
            task.retry_options.max_number_of_attempts,
            scheduled_type=task.scheduled_type,
            completed_type=task.completed_type,
            failed_type=task.failed_type,
            skip=skip,
        )
        if result.state is RetryState.IN_PROGRESS:
            logger.debug(f"{context.instance_id}: {task!r} retry attempt {result.attempts} pending")
            return None

        event = history[result.event_index]
        if result.state is RetryState.SUCCEEDED:
            return Resolution(
                value=task.decode_result(event),
                consumed=result.consumed,
                completion_index=result.event_index,
            )
        return Resolution(
            failure=task.failure_of(event),
            consumed=result.consumed,
            completion_index=result.event_index,
        )

    def _commit(
        self,
        context: OrchestrationContext,
        resolved: Sequence[tuple[DurableTask, Resolution]],
    ) -> None:
        """Consume the events of freshly resolved tasks and move the clock."""
        fresh = [(task, res) for task, res in resolved if task._resolution is None]
        if not fresh:
            return

        update_current_utc_datetime(context)
        history = context.history
        for task, resolution in fresh:
            history.mark_processed(*resolution.consumed)
            task._resolution = resolution
        context.is_replaying = all(
            history[resolution.completion_index].is_played for _, resolution in fresh
        )

    @staticmethod
    def _deliver(
        resolution: Resolution, on_output: OutputCallback, on_failure: FailureCallback
    ) -> None:
        if resolution.succeeded:
            on_output(resolution.value)
        else:
            on_failure(resolution.failure)

    def _check_stopped(self, context: OrchestrationContext) -> None:
        if self._stop_requested.is_set():
            self._suspend(context, "stop requested")
        if context.collector.stopped:
            # Orchestrator code swallowed an earlier suspend signal
            self._suspend(context, "pass already suspended")

    @staticmethod
    def _suspend(context: OrchestrationContext, reason: str) -> NoReturn:
        context.collector.stop()
        logger.debug(f"{context.instance_id}: suspending ({reason})")
        raise _SuspendExecution(reason)
