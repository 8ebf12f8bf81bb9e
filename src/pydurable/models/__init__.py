"""Wire-level data models: orchestration actions, retry options, HTTP payloads.

Design: Dependency-Free Models
These types only depend on pydurable.core.timestamps, so every other layer
can import them without cycles.
"""

from pydurable.models.retry import RetryOptions
from pydurable.models.http import DurableHttpRequest, DurableHttpResponse
from pydurable.models.actions import (
    ActionType,
    CallActivityAction,
    CallActivityWithRetryAction,
    CallEntityAction,
    CallHttpAction,
    CallSubOrchestratorAction,
    CallSubOrchestratorWithRetryAction,
    ContinueAsNewAction,
    CreateTimerAction,
    OrchestrationAction,
    WaitForExternalEventAction,
    action_from_dict,
)

__all__ = [
    "RetryOptions",
    "DurableHttpRequest",
    "DurableHttpResponse",
    "ActionType",
    "OrchestrationAction",
    "CallActivityAction",
    "CallActivityWithRetryAction",
    "CallSubOrchestratorAction",
    "CallSubOrchestratorWithRetryAction",
    "ContinueAsNewAction",
    "CreateTimerAction",
    "WaitForExternalEventAction",
    "CallEntityAction",
    "CallHttpAction",
    "action_from_dict",
]
