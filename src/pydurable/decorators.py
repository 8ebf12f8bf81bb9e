"""
Decorators that mark functions as orchestrators or activities.

The decorators only attach metadata; they do not wrap or change the
function. ``FunctionRegistry.from_functions`` reads that metadata back.

Example:
    ```python
    @activity
    def say_hello(name: str) -> str:
        return f"Hello {name}!"

    @orchestrator(name="HelloSequence")
    def hello_sequence(context: OrchestrationContext) -> list[str]:
        return [context.call_activity("say_hello", city) for city in ("Tokyo", "London")]
    ```
"""

from collections.abc import Callable
from typing import Any, TypeVar

from pydurable.binding.bindings import BindingDirection, BindingInfo, DurableBindings
from pydurable.registry import METADATA_ATTRIBUTE, FunctionMetadata

__all__ = ["orchestrator", "activity"]

F = TypeVar("F", bound=Callable[..., Any])


def _register(
    func: F,
    name: str | None,
    binding_name: str,
    binding_type: str,
) -> F:
    metadata = FunctionMetadata(
        name=name or func.__name__,
        bindings={binding_name: BindingInfo(binding_type, BindingDirection.IN)},
        function=func,
    )
    setattr(func, METADATA_ATTRIBUTE, metadata)
    return func


def orchestrator(
    func: F | None = None, *, name: str | None = None, binding_name: str = "context"
) -> F:
    """
    Mark a function as an orchestrator (``orchestrationTrigger`` binding).

    Args:
        func: The orchestrator body, taking an OrchestrationContext
        name: Registered name (defaults to the function name)
        binding_name: Name of the trigger binding carrying the context
    """

    def decorator(f: F) -> F:
        return _register(f, name, binding_name, DurableBindings.ORCHESTRATION_TRIGGER)

    if func is not None:
        return decorator(func)
    return decorator  # type: ignore


def activity(func: F | None = None, *, name: str | None = None, binding_name: str = "input") -> F:
    """Mark a function as an activity (``activityTrigger`` binding)."""

    def decorator(f: F) -> F:
        return _register(f, name, binding_name, DurableBindings.ACTIVITY_TRIGGER)

    if func is not None:
        return decorator(func)
    return decorator  # type: ignore
