"""
Durable binding classification.

The host describes every function by its bindings (name -> type and
direction). Durable support only cares about three binding types:

- ``durableClient`` (``orchestrationClient`` in Durable Functions v1)
- ``orchestrationTrigger``
- ``activityTrigger``

Binding types are compared case-insensitively.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "BindingDirection",
    "BindingInfo",
    "DurableBindings",
    "DurableFunctionType",
    "DurableFunctionInfo",
    "durable_function_info_from_bindings",
]


class BindingDirection(Enum):
    IN = "in"
    OUT = "out"
    INOUT = "inout"

    @classmethod
    def parse(cls, value: str | BindingDirection) -> BindingDirection:
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class BindingInfo:
    """Type and direction of one function binding."""

    type: str
    direction: BindingDirection = BindingDirection.IN


class DurableBindings:
    """Case-insensitive checks for the durable binding types."""

    DURABLE_CLIENT = "durableClient"
    ORCHESTRATION_CLIENT = "orchestrationClient"
    ORCHESTRATION_TRIGGER = "orchestrationTrigger"
    ACTIVITY_TRIGGER = "activityTrigger"

    @staticmethod
    def _same(binding_type: str | None, expected: str) -> bool:
        return binding_type is not None and binding_type.lower() == expected.lower()

    @classmethod
    def is_durable_client(cls, binding_type: str | None) -> bool:
        return cls._same(binding_type, cls.DURABLE_CLIENT) or cls._same(
            binding_type, cls.ORCHESTRATION_CLIENT
        )

    @classmethod
    def is_orchestration_trigger(cls, binding_type: str | None) -> bool:
        return cls._same(binding_type, cls.ORCHESTRATION_TRIGGER)

    @classmethod
    def is_activity_trigger(cls, binding_type: str | None) -> bool:
        return cls._same(binding_type, cls.ACTIVITY_TRIGGER)

    @classmethod
    def can_parameter_declaration_be_omitted(cls, binding_type: str | None) -> bool:
        """A durable client binding need not be declared as a function parameter."""
        return cls.is_durable_client(binding_type)


class DurableFunctionType(Enum):
    NONE = "None"
    ORCHESTRATION_FUNCTION = "OrchestrationFunction"
    ACTIVITY_FUNCTION = "ActivityFunction"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DurableFunctionInfo:
    """What the durable layer needs to know about one function."""

    type: DurableFunctionType = DurableFunctionType.NONE
    durable_client_binding_name: str | None = None
    orchestration_binding_name: str | None = None

    @property
    def is_durable_client(self) -> bool:
        return self.durable_client_binding_name is not None

    @property
    def is_orchestration_function(self) -> bool:
        return self.type is DurableFunctionType.ORCHESTRATION_FUNCTION

    @property
    def is_activity_function(self) -> bool:
        return self.type is DurableFunctionType.ACTIVITY_FUNCTION

    @property
    def provides_forced_return_value(self) -> bool:
        """Durable functions always report their result through ``$return``."""
        return self.type is not DurableFunctionType.NONE


def durable_function_info_from_bindings(
    bindings: Mapping[str, BindingInfo],
) -> DurableFunctionInfo:
    """
    Classify a function from its bindings.

    The first input trigger binding decides the function type; the first
    named input durable client binding becomes the client binding.
    """
    inputs = [
        (name, info)
        for name, info in bindings.items()
        if BindingDirection.parse(info.direction) is BindingDirection.IN
    ]

    client_name = next(
        (name for name, info in inputs if name and DurableBindings.is_durable_client(info.type)),
        None,
    )

    for name, info in inputs:
        if DurableBindings.is_orchestration_trigger(info.type):
            return DurableFunctionInfo(
                DurableFunctionType.ORCHESTRATION_FUNCTION, client_name, orchestration_binding_name=name
            )
        if DurableBindings.is_activity_trigger(info.type):
            return DurableFunctionInfo(DurableFunctionType.ACTIVITY_FUNCTION, client_name)

    return DurableFunctionInfo(DurableFunctionType.NONE, client_name)
