"""
Read-only registry of function metadata.

The registry is an explicit value handed to the context and invoker. It is
built once (usually from decorated functions) and never mutated afterwards,
so two orchestrations validating activities never share hidden state.

Example:
    ```python
    @activity
    def say_hello(name: str) -> str:
        return f"Hello {name}!"

    @orchestrator
    def hello_sequence(context):
        return context.call_activity("say_hello", "Tokyo")

    registry = FunctionRegistry.from_functions([say_hello, hello_sequence])
    registry.validate_activity("say_hello")   # ok
    registry.validate_activity("missing")     # BindingValidationError
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydurable.binding.bindings import (
    BindingDirection,
    BindingInfo,
    DurableBindings,
    DurableFunctionInfo,
    durable_function_info_from_bindings,
)
from pydurable.core.errors import BindingValidationError

__all__ = ["FunctionMetadata", "FunctionRegistry", "METADATA_ATTRIBUTE"]

METADATA_ATTRIBUTE = "_pydurable_metadata"


@dataclass(frozen=True)
class FunctionMetadata:
    """Name, bindings and (optionally) the callable of one function."""

    name: str
    bindings: Mapping[str, BindingInfo] = field(default_factory=dict)
    function: Callable[..., Any] | None = field(default=None, compare=False)

    def __post_init__(self):
        if not self.name:
            raise ValueError("name cannot be empty")

    @property
    def input_bindings(self) -> dict[str, BindingInfo]:
        return {
            name: info
            for name, info in self.bindings.items()
            if BindingDirection.parse(info.direction) is BindingDirection.IN
        }

    @property
    def durable_info(self) -> DurableFunctionInfo:
        return durable_function_info_from_bindings(self.bindings)


class FunctionRegistry(Mapping[str, FunctionMetadata]):
    """Immutable mapping of function name to FunctionMetadata."""

    def __init__(self, functions: Iterable[FunctionMetadata] = ()):
        entries: dict[str, FunctionMetadata] = {}
        for metadata in functions:
            if metadata.name in entries:
                raise ValueError(f"Function '{metadata.name}' is registered twice")
            entries[metadata.name] = metadata
        self._entries = MappingProxyType(entries)

    @classmethod
    def from_functions(cls, functions: Iterable[Callable[..., Any]]) -> FunctionRegistry:
        """
        Build a registry from functions decorated with @orchestrator or @activity.

        Raises:
            ValueError: If a function carries no durable metadata
        """
        metadata = []
        for function in functions:
            entry = getattr(function, METADATA_ATTRIBUTE, None)
            if entry is None:
                raise ValueError(
                    f"{getattr(function, '__name__', function)!r} is not decorated "
                    "with @orchestrator or @activity"
                )
            metadata.append(entry)
        return cls(metadata)

    def __getitem__(self, name: str) -> FunctionMetadata:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def validate_activity(self, name: str) -> FunctionMetadata:
        """
        Check that ``name`` is a loaded function with an activityTrigger input binding.

        Raises:
            BindingValidationError: If the function is unknown or is not an activity
        """
        metadata = self._entries.get(name)
        if metadata is None:
            raise BindingValidationError(f"The function '{name}' doesn't exist.")

        has_trigger = any(
            DurableBindings.is_activity_trigger(info.type)
            for info in metadata.input_bindings.values()
        )
        if not has_trigger:
            raise BindingValidationError(
                f"The function '{name}' doesn't use the 'activityTrigger' input binding."
            )
        return metadata

    def __repr__(self) -> str:
        return f"FunctionRegistry({sorted(self._entries)!r})"
