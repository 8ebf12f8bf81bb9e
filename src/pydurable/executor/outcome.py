"""
Replay pass outcomes and the suspension signal.

Two levels of outcome live here:

- Resolution: what the task handler learned about ONE durable call this pass
  (a value or a failure, plus the history indices to consume). A call with
  no Resolution is Pending.
- OrchestrationResult: what the invoker reports for the WHOLE pass, one of
  Completed, ContinuingAsNew, AwaitingMoreHistory or Faulted.

Example:
    ```python
    result = invoker.invoke(binding_info, orchestrator)

    match result:
        case Completed(output=output):
            print(f"Orchestration finished: {output}")
        case AwaitingMoreHistory(actions=actions):
            print(f"Scheduled {sum(map(len, actions))} new actions")
        case Faulted(error=error):
            print(f"Orchestration failed: {error}")
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydurable.core.errors import FailureDetails
from pydurable.models.actions import OrchestrationAction

__all__ = [
    "Resolution",
    "OrchestrationStatus",
    "Completed",
    "ContinuingAsNew",
    "AwaitingMoreHistory",
    "Faulted",
    "OrchestrationResult",
    "is_done",
    "is_faulted",
    "_SuspendExecution",
]

ActionBatches = list[list[OrchestrationAction]]


# =============================================================================
# Flow Control Signals (Not Errors)
# =============================================================================


class _FlowControl(BaseException):
    """
    Base class for control flow signals.

    Like StopIteration and GeneratorExit these are not errors. Inheriting from
    BaseException keeps them out of ``except Exception:`` blocks in
    orchestrator code.
    """


class _SuspendExecution(_FlowControl):  # noqa: N818
    """
    Signal that the orchestrator body must stop running for this pass.

    Raised by the task handler when a call is Pending or the pass was stopped.
    Orchestrator bodies are plain synchronous functions, so unwinding them is
    the only way to end the pass early without running further statements.
    Only the invoker catches it.
    """


# =============================================================================
# Per-task resolution
# =============================================================================


@dataclass(frozen=True)
class Resolution:
    """
    A durable call whose outcome is available in this pass.

    Attributes:
        value: Decoded result payload (success only)
        failure: Failure details (failure only)
        consumed: History indices to mark processed when committed
        completion_index: Index of the event that resolved the call
    """

    value: Any = None
    failure: FailureDetails | None = None
    consumed: tuple[int, ...] = ()
    completion_index: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    def __str__(self) -> str:
        if self.succeeded:
            return f"Resolution(value={self.value!r})"
        return f"Resolution(failure={self.failure})"


# =============================================================================
# Pass results
# =============================================================================


class OrchestrationStatus(Enum):
    """Outcome kind of one replay pass."""

    COMPLETED = "Completed"
    CONTINUING_AS_NEW = "ContinuingAsNew"
    AWAITING_MORE_HISTORY = "AwaitingMoreHistory"
    FAULTED = "Faulted"

    @property
    def is_done(self) -> bool:
        """True if the host should stop scheduling passes for this history."""
        return self in (OrchestrationStatus.COMPLETED, OrchestrationStatus.CONTINUING_AS_NEW)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Completed:
    """The orchestrator body returned."""

    output: Any = None
    actions: ActionBatches = field(default_factory=list)
    custom_status: Any = None

    status = OrchestrationStatus.COMPLETED

    def __str__(self) -> str:
        return f"Completed(output={self.output!r})"


@dataclass(frozen=True)
class ContinuingAsNew:
    """The orchestrator asked to restart with fresh history and ``input``."""

    input: Any = None
    actions: ActionBatches = field(default_factory=list)
    custom_status: Any = None

    status = OrchestrationStatus.CONTINUING_AS_NEW

    def __str__(self) -> str:
        return f"ContinuingAsNew(input={self.input!r})"


@dataclass(frozen=True)
class AwaitingMoreHistory:
    """The pass suspended; ``actions`` holds everything newly scheduled."""

    actions: ActionBatches = field(default_factory=list)
    custom_status: Any = None

    status = OrchestrationStatus.AWAITING_MORE_HISTORY

    def __str__(self) -> str:
        return f"AwaitingMoreHistory(actions={sum(len(batch) for batch in self.actions)})"


@dataclass(frozen=True)
class Faulted:
    """An unhandled, non-recoverable error ended the pass."""

    error: BaseException
    actions: ActionBatches = field(default_factory=list)
    custom_status: Any = None

    status = OrchestrationStatus.FAULTED

    def __str__(self) -> str:
        return f"Faulted(error={type(self.error).__name__}: {self.error})"


# OrchestrationResult is a Union type over the four pass outcomes.
#
# Pattern matching:
#     match result:
#         case Completed(output=output): ...
#         case ContinuingAsNew(input=new_input): ...
#         case AwaitingMoreHistory(): ...
#         case Faulted(error=error): ...
OrchestrationResult = Completed | ContinuingAsNew | AwaitingMoreHistory | Faulted


def is_done(result: OrchestrationResult) -> bool:
    """True for Completed and ContinuingAsNew."""
    return result.status.is_done


def is_faulted(result: OrchestrationResult) -> bool:
    return isinstance(result, Faulted)
