"""Context/binding glue: the only layer that knows the host's wire schema."""

from pydurable.binding.bindings import (
    BindingDirection,
    BindingInfo,
    DurableBindings,
    DurableFunctionInfo,
    DurableFunctionType,
    durable_function_info_from_bindings,
)
from pydurable.binding.codec import (
    OUT_OF_PROC_DATA_LABEL,
    OrchestrationFailureError,
    OrchestrationMessage,
    extract_out_of_proc_data,
    history_event_from_dict,
    orchestration_context_from_json,
)
from pydurable.binding.controller import RETURN_BINDING, DurableController, ParameterBinding

__all__ = [
    "BindingDirection",
    "BindingInfo",
    "DurableBindings",
    "DurableFunctionInfo",
    "DurableFunctionType",
    "durable_function_info_from_bindings",
    "OUT_OF_PROC_DATA_LABEL",
    "OrchestrationFailureError",
    "OrchestrationMessage",
    "extract_out_of_proc_data",
    "history_event_from_dict",
    "orchestration_context_from_json",
    "RETURN_BINDING",
    "DurableController",
    "ParameterBinding",
]
