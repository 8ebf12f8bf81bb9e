"""
Orchestration invoker: runs one replay pass.

The invoker sets up the pass (logical clock, active context), runs the
orchestrator body once from the top, and turns whatever happened into an
OrchestrationResult:

    body returned                      -> Completed / ContinuingAsNew
    body hit a Pending call or stop()  -> AwaitingMoreHistory
    body raised, or a pass-level fault -> Faulted

Example:
    ```python
    def hello(context: OrchestrationContext):
        return context.call_activity("SayHello", "Tokyo")

    context = OrchestrationContext("instance-1", history)
    result = OrchestrationInvoker().invoke(OrchestrationBindingInfo("context", context), hello)
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydurable.core.context import ORCHESTRATION_CONTEXT, OrchestrationContext
from pydurable.core.errors import NonDeterminismError
from pydurable.executor.clock import initialize_current_utc_datetime
from pydurable.executor.handler import DurableTaskHandler
from pydurable.executor.outcome import (
    AwaitingMoreHistory,
    Completed,
    ContinuingAsNew,
    Faulted,
    OrchestrationResult,
    _SuspendExecution,
)

__all__ = [
    "OrchestrationBindingInfo",
    "OrchestratorRuntime",
    "OrchestrationInvoker",
    "invoke_orchestration",
]

logger = logging.getLogger(__name__)

OrchestratorRuntime = Callable[[OrchestrationContext], Any]
"""Runs the orchestrator body against a context and returns its output."""


@dataclass(frozen=True)
class OrchestrationBindingInfo:
    """The orchestration trigger binding of one invocation."""

    parameter_name: str
    context: OrchestrationContext


def _action_summary(result: OrchestrationResult) -> str:
    actions = [action for batch in result.actions for action in batch]
    if not actions:
        return "no actions"
    counts: dict[str, int] = {}
    for action in actions:
        key = str(action.action_type)
        counts[key] = counts.get(key, 0) + 1
    return ", ".join(f"{count}x {name}" for name, count in counts.items())


class OrchestrationInvoker:
    """
    Runs orchestrator bodies, one pass per ``invoke`` call.

    The invoker owns the task handler for its passes, so ``stop()`` reaches
    whatever pass is running (it may be called from another thread). A stop
    request applies to one pass only: the flag is cleared when the pass ends.
    """

    def __init__(self, handler: DurableTaskHandler | None = None):
        self._handler = handler or DurableTaskHandler()

    @property
    def handler(self) -> DurableTaskHandler:
        return self._handler

    def stop(self) -> None:
        """Stop the running pass at its next suspend point."""
        self._handler.stop()

    def invoke(
        self, binding_info: OrchestrationBindingInfo, runtime: OrchestratorRuntime
    ) -> OrchestrationResult:
        """
        Run the orchestrator body once against ``binding_info.context``.

        Args:
            binding_info: Trigger binding holding the freshly hydrated context
            runtime: Callable that runs the orchestrator body

        Returns:
            The pass result; never raises for orchestrator errors
        """
        context = binding_info.context
        context.handler = self._handler

        token = ORCHESTRATION_CONTEXT.set(context)
        try:
            initialize_current_utc_datetime(context)
            logger.debug(
                f"{context.instance_id}: starting pass over {len(context.history)} history events"
            )
            try:
                output = runtime(context)
            except _SuspendExecution:
                result: OrchestrationResult = AwaitingMoreHistory(
                    actions=context.collector.batches, custom_status=context.custom_status
                )
            except Exception as e:
                result = Faulted(
                    error=e, actions=context.collector.batches, custom_status=context.custom_status
                )
            else:
                if context.collector.stopped:
                    # Orchestrator code swallowed the suspend signal and returned
                    result = AwaitingMoreHistory(
                        actions=context.collector.batches, custom_status=context.custom_status
                    )
                else:
                    result = self._finish(context, output)

            if context.faults and not isinstance(result, Faulted):
                # Pass-level faults escape even when orchestrator code caught them
                result = Faulted(
                    error=context.faults[0],
                    actions=context.collector.batches,
                    custom_status=context.custom_status,
                )

            self._log_result(context, result)
            return result
        finally:
            ORCHESTRATION_CONTEXT.reset(token)
            self._handler.reset()

    def _finish(self, context: OrchestrationContext, output: Any) -> OrchestrationResult:
        actions = context.collector.batches

        if context.options.detect_unclaimed_history:
            unclaimed = context.history.unclaimed_scheduling_events()
            if unclaimed:
                described = ", ".join(str(context.history[index]) for index in unclaimed)
                error = NonDeterminismError(
                    f"Orchestration '{context.instance_id}' completed but history schedules "
                    f"calls its code never made: {described}"
                )
                return Faulted(error=error, actions=actions, custom_status=context.custom_status)

        continue_as_new = context.continue_as_new_action
        if continue_as_new is not None:
            return ContinuingAsNew(
                input=continue_as_new.input, actions=actions, custom_status=context.custom_status
            )
        return Completed(output=output, actions=actions, custom_status=context.custom_status)

    @staticmethod
    def _log_result(context: OrchestrationContext, result: OrchestrationResult) -> None:
        summary = _action_summary(result)
        if isinstance(result, Faulted):
            logger.warning(
                f"{context.instance_id}: pass faulted with "
                f"{type(result.error).__name__}: {result.error} ({summary})"
            )
        else:
            logger.info(f"{context.instance_id}: pass {result.status} ({summary})")

    def __repr__(self) -> str:
        return f"OrchestrationInvoker(stopped={self._handler.is_stopped})"


def invoke_orchestration(
    context: OrchestrationContext, runtime: OrchestratorRuntime, parameter_name: str = "context"
) -> OrchestrationResult:
    """
    Convenience function for running one pass with a fresh invoker.

    Example:
        ```python
        result = invoke_orchestration(OrchestrationContext("id", history), hello)
        ```
    """
    return OrchestrationInvoker().invoke(OrchestrationBindingInfo(parameter_name, context), runtime)
