"""
Durable controller: entry point the function host calls for durable functions.

Per invocation the host:

1. builds a controller from the function's DurableFunctionInfo
2. calls ``initialize_bindings`` with the invocation's input bindings
3. for orchestrators, calls ``invoke_orchestration_function`` with the body
4. calls ``after_function_invocation``

``stop`` may be called from another thread while step 3 runs.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydurable.binding.bindings import DurableFunctionInfo
from pydurable.binding.codec import (
    OrchestrationFailureError,
    OrchestrationMessage,
    orchestration_context_from_json,
)
from pydurable.config import DurableOptions
from pydurable.executor.invoker import (
    OrchestrationBindingInfo,
    OrchestrationInvoker,
    OrchestratorRuntime,
)
from pydurable.executor.outcome import Faulted

if TYPE_CHECKING:
    from pydurable.registry import FunctionRegistry

__all__ = ["RETURN_BINDING", "ParameterBinding", "DurableController"]

logger = logging.getLogger(__name__)

RETURN_BINDING = "$return"


@dataclass(frozen=True)
class ParameterBinding:
    """One input binding of an invocation: its name and raw data."""

    name: str
    data: Any


def _decode(data: Any) -> Any:
    if isinstance(data, (str, bytes)):
        try:
            return json.loads(data)
        except ValueError:
            return data
    return data


class DurableController:
    """
    Glue between one function invocation and the replay engine.

    Example:
        ```python
        info = durable_function_info_from_bindings(
            {"context": BindingInfo("orchestrationTrigger")}
        )
        controller = DurableController(info, registry=registry)
        controller.initialize_bindings([ParameterBinding("context", payload)])
        try:
            response = controller.invoke_orchestration_function(hello_sequence)
        finally:
            controller.after_function_invocation()
        ```
    """

    def __init__(
        self,
        function_info: DurableFunctionInfo,
        registry: FunctionRegistry | None = None,
        options: DurableOptions | None = None,
        invoker: OrchestrationInvoker | None = None,
    ):
        self._function_info = function_info
        self._registry = registry
        self._options = options or DurableOptions()
        self._invoker = invoker or OrchestrationInvoker()
        self._binding_info: OrchestrationBindingInfo | None = None
        self._durable_client: Any = None

    @property
    def orchestration_parameter_name(self) -> str | None:
        return self._binding_info.parameter_name if self._binding_info else None

    @property
    def durable_client(self) -> Any:
        """Decoded durable client binding, for client functions."""
        return self._durable_client

    def initialize_bindings(self, input_data: Sequence[ParameterBinding]) -> None:
        """
        Pick up the durable bindings of this invocation.

        Raises:
            ValueError: If the durable binding is missing or malformed
        """
        if self._function_info.is_durable_client:
            name = self._function_info.durable_client_binding_name
            binding = next((item for item in input_data if item.name == name), None)
            if binding is None:
                raise ValueError(f"Durable client binding '{name}' is missing from the input")
            self._durable_client = _decode(binding.data)

        elif self._function_info.is_orchestration_function:
            if not input_data:
                raise ValueError("Orchestration function invoked without an orchestration context")
            trigger = input_data[0]
            context = orchestration_context_from_json(
                trigger.data, registry=self._registry, options=self._options
            )
            self._binding_info = OrchestrationBindingInfo(trigger.name, context)
            logger.debug(
                f"Bound orchestration context for {context.instance_id} to '{trigger.name}'"
            )

    def after_function_invocation(self) -> None:
        self._binding_info = None
        self._durable_client = None

    def try_get_input_binding_parameter_value(self, binding_name: str) -> tuple[bool, Any]:
        """Return ``(True, context)`` if ``binding_name`` is the orchestration trigger."""
        if self._binding_info is not None and binding_name == self._binding_info.parameter_name:
            return True, self._binding_info.context
        return False, None

    def should_suppress_pipeline_traces(self) -> bool:
        return self._function_info.is_activity_function

    def add_pipeline_output_if_necessary(self, outputs: Sequence[Any], result: dict[str, Any]) -> None:
        """Activities report their output through ``$return``."""
        if not self.should_suppress_pipeline_traces():
            return
        if not outputs:
            value = None
        elif len(outputs) == 1:
            value = outputs[0]
        else:
            value = list(outputs)
        result[RETURN_BINDING] = value

    def invoke_orchestration_function(self, runtime: OrchestratorRuntime) -> dict[str, Any]:
        """
        Run one replay pass and encode its result.

        Returns:
            ``{"$return": <OrchestrationMessage dict>}``

        Raises:
            OrchestrationFailureError: If the pass faulted
            RuntimeError: If ``initialize_bindings`` did not bind a context
        """
        if self._binding_info is None:
            raise RuntimeError("initialize_bindings() did not bind an orchestration context")

        result = self._invoker.invoke(self._binding_info, runtime)
        if isinstance(result, Faulted):
            raise OrchestrationFailureError.from_result(result) from result.error
        return {RETURN_BINDING: OrchestrationMessage.from_result(result).to_dict()}

    def stop(self) -> None:
        self._invoker.stop()
