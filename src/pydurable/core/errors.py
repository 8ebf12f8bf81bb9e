"""Exception types raised by the replay engine.

Two families matter to orchestrator authors:

- TaskFailedError is recoverable. It is raised at the call site of a durable
  call whose activity or sub-orchestration recorded a failure, and orchestrator
  code may catch it and compensate.
- NonDeterminismError and BindingValidationError are pass-level faults. The
  invoker reports the pass as Faulted even if orchestrator code catches them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

__all__ = [
    "DurableError",
    "FailureDetails",
    "TaskFailedError",
    "NonDeterminismError",
    "BindingValidationError",
]


class DurableError(Exception):
    """Base class for errors raised by pydurable."""


@dataclass(frozen=True)
class FailureDetails:
    """
    Structured failure reason of a failed activity or sub-orchestration.

    The host records a free-form ``Reason`` and ``Details`` pair. Details are
    either a JSON error document or a plain stack trace.
    """

    message: str
    """Human-readable failure message."""

    error_type: str | None = None
    """Exception type name reported by the failed function, when known."""

    stack_trace: str | None = None
    """Stack trace reported by the failed function, when known."""

    @classmethod
    def from_reason(cls, reason: str | None, details: str | None = None) -> FailureDetails:
        """
        Build failure details from the Reason/Details fields of a history event.

        Example:
            ```python
            FailureDetails.from_reason("boom", '{"type": "ValueError"}')
            # FailureDetails(message='boom', error_type='ValueError', stack_trace=None)
            ```
        """
        message = reason or ""
        if not details:
            return cls(message=message)
        try:
            document = json.loads(details)
        except ValueError:
            return cls(message=message, stack_trace=details)
        if not isinstance(document, dict):
            return cls(message=message, stack_trace=details)
        lowered = {str(k).lower(): v for k, v in document.items()}
        return cls(
            message=message or str(lowered.get("message") or ""),
            error_type=lowered.get("type") or lowered.get("errortype"),
            stack_trace=lowered.get("stacktrace") or lowered.get("stack"),
        )

    def __str__(self) -> str:
        if self.error_type:
            return f"{self.error_type}: {self.message}"
        return self.message


class TaskFailedError(DurableError):
    """Raised in orchestrator code when a durable call recorded a failure.

    Example:
        ```python
        try:
            context.call_activity("ChargeCard", order)
        except TaskFailedError as e:
            context.call_activity("Refund", order)
            log.warning(f"{e.task_name} failed: {e.details.message}")
        ```
    """

    def __init__(self, task_name: str, details: FailureDetails):
        super().__init__(f"Task '{task_name}' failed: {details}")
        self.task_name = task_name
        self.details = details

    def __repr__(self) -> str:
        return f"TaskFailedError(task_name={self.task_name!r}, details={self.details!r})"


class NonDeterminismError(DurableError):
    """History holds evidence the current orchestrator code path cannot explain.

    This means the orchestrator code changed incompatibly while instances
    were in flight. It is never recovered locally.
    """


class BindingValidationError(DurableError):
    """A durable call names a function that cannot be validated against the registry."""
