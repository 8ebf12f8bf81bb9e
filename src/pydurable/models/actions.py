"""
Orchestration actions: the "please schedule this" requests sent to the host.

One action class per ActionType. Actions are pure output artifacts: the
engine emits one for every durable call that has no scheduling evidence in
history yet, and the host turns them into new history events.

Wire format:
    Every action serializes to a dict with camelCase keys and a numeric
    ``actionType``. ``action_from_dict`` reverses ``to_dict`` without loss,
    matching keys case-insensitively.

Example:
    ```python
    action = CallActivityAction(function_name="SayHello", input="Tokyo")
    action.to_dict()
    # {"actionType": 0, "functionName": "SayHello", "input": "Tokyo"}

    assert action_from_dict(action.to_dict()) == action
    ```
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydurable.core.timestamps import ensure_utc, format_timestamp, parse_timestamp
from pydurable.models.http import DurableHttpRequest
from pydurable.models.retry import RetryOptions

__all__ = [
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


class ActionType(Enum):
    """Action kinds, with the host's numeric codes."""

    CALL_ACTIVITY = 0
    CALL_ACTIVITY_WITH_RETRY = 1
    CALL_SUB_ORCHESTRATOR = 2
    CALL_SUB_ORCHESTRATOR_WITH_RETRY = 3
    CONTINUE_AS_NEW = 4
    CREATE_TIMER = 5
    WAIT_FOR_EXTERNAL_EVENT = 6
    CALL_ENTITY = 7
    CALL_HTTP = 8

    @classmethod
    def parse(cls, value: int | str | ActionType) -> ActionType:
        """Parse from a numeric code or a name such as ``"CallActivity"``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        key = text.replace("_", "").lower()
        for member in cls:
            if member.name.replace("_", "").lower() == key:
                return member
        raise ValueError(f"Unknown action type: {value!r}")

    def __str__(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


@dataclass(frozen=True)
class OrchestrationAction:
    """Base class of all actions."""

    action_type: ClassVar[ActionType]

    def to_dict(self) -> dict[str, Any]:
        return {"actionType": self.action_type.value, **self._payload()}

    def _payload(self) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def _from_payload(cls, fields: dict[str, Any]) -> OrchestrationAction:
        raise NotImplementedError

    def summary(self) -> str:
        """Short description used in log messages."""
        return str(self.action_type)


@dataclass(frozen=True)
class CallActivityAction(OrchestrationAction):
    action_type: ClassVar[ActionType] = ActionType.CALL_ACTIVITY

    function_name: str
    input: Any = None

    def _payload(self) -> dict[str, Any]:
        return {"functionName": self.function_name, "input": self.input}

    @classmethod
    def _from_payload(cls, fields):
        return cls(function_name=fields["functionname"], input=fields.get("input"))

    def summary(self) -> str:
        return f"{self.action_type}({self.function_name!r})"


@dataclass(frozen=True)
class CallActivityWithRetryAction(OrchestrationAction):
    action_type: ClassVar[ActionType] = ActionType.CALL_ACTIVITY_WITH_RETRY

    function_name: str
    retry_options: RetryOptions
    input: Any = None

    def _payload(self) -> dict[str, Any]:
        return {
            "functionName": self.function_name,
            "input": self.input,
            "retryOptions": self.retry_options.to_dict(),
        }

    @classmethod
    def _from_payload(cls, fields):
        return cls(
            function_name=fields["functionname"],
            input=fields.get("input"),
            retry_options=RetryOptions.from_dict(fields["retryoptions"]),
        )

    def summary(self) -> str:
        return f"{self.action_type}({self.function_name!r})"


@dataclass(frozen=True)
class CallSubOrchestratorAction(OrchestrationAction):
    action_type: ClassVar[ActionType] = ActionType.CALL_SUB_ORCHESTRATOR

    function_name: str
    input: Any = None
    instance_id: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            "functionName": self.function_name,
            "input": self.input,
            "instanceId": self.instance_id,
        }

    @classmethod
    def _from_payload(cls, fields):
        return cls(
            function_name=fields["functionname"],
            input=fields.get("input"),
            instance_id=fields.get("instanceid"),
        )

    def summary(self) -> str:
        return f"{self.action_type}({self.function_name!r})"


@dataclass(frozen=True)
class CallSubOrchestratorWithRetryAction(OrchestrationAction):
    action_type: ClassVar[ActionType] = ActionType.CALL_SUB_ORCHESTRATOR_WITH_RETRY

    function_name: str
    retry_options: RetryOptions
    input: Any = None
    instance_id: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            "functionName": self.function_name,
            "input": self.input,
            "instanceId": self.instance_id,
            "retryOptions": self.retry_options.to_dict(),
        }

    @classmethod
    def _from_payload(cls, fields):
        return cls(
            function_name=fields["functionname"],
            input=fields.get("input"),
            instance_id=fields.get("instanceid"),
            retry_options=RetryOptions.from_dict(fields["retryoptions"]),
        )

    def summary(self) -> str:
        return f"{self.action_type}({self.function_name!r})"


@dataclass(frozen=True)
class ContinueAsNewAction(OrchestrationAction):
    action_type: ClassVar[ActionType] = ActionType.CONTINUE_AS_NEW

    input: Any = None

    def _payload(self) -> dict[str, Any]:
        return {"input": self.input}

    @classmethod
    def _from_payload(cls, fields):
        return cls(input=fields.get("input"))


@dataclass(frozen=True)
class CreateTimerAction(OrchestrationAction):
    action_type: ClassVar[ActionType] = ActionType.CREATE_TIMER

    fire_at: datetime
    is_canceled: bool = False

    def __post_init__(self):
        # Frozen: normalise through object.__setattr__
        object.__setattr__(self, "fire_at", ensure_utc(self.fire_at))

    def _payload(self) -> dict[str, Any]:
        return {"fireAt": format_timestamp(self.fire_at), "isCanceled": self.is_canceled}

    @classmethod
    def _from_payload(cls, fields):
        return cls(
            fire_at=parse_timestamp(fields["fireat"]),
            is_canceled=bool(fields.get("iscanceled", False)),
        )

    def summary(self) -> str:
        state = ", canceled" if self.is_canceled else ""
        return f"{self.action_type}({format_timestamp(self.fire_at)}{state})"


@dataclass(frozen=True)
class WaitForExternalEventAction(OrchestrationAction):
    action_type: ClassVar[ActionType] = ActionType.WAIT_FOR_EXTERNAL_EVENT

    external_event_name: str
    reason: str = "ExternalEvent"

    def _payload(self) -> dict[str, Any]:
        return {"externalEventName": self.external_event_name, "reason": self.reason}

    @classmethod
    def _from_payload(cls, fields):
        return cls(
            external_event_name=fields["externaleventname"],
            reason=fields.get("reason") or "ExternalEvent",
        )

    def summary(self) -> str:
        return f"{self.action_type}({self.external_event_name!r})"


@dataclass(frozen=True)
class CallEntityAction(OrchestrationAction):
    """Entity operation request. Part of the wire model only; no task issues it."""

    action_type: ClassVar[ActionType] = ActionType.CALL_ENTITY

    instance_id: str
    operation: str
    input: Any = None

    def _payload(self) -> dict[str, Any]:
        return {"instanceId": self.instance_id, "operation": self.operation, "input": self.input}

    @classmethod
    def _from_payload(cls, fields):
        return cls(
            instance_id=fields["instanceid"],
            operation=fields["operation"],
            input=fields.get("input"),
        )


@dataclass(frozen=True)
class CallHttpAction(OrchestrationAction):
    action_type: ClassVar[ActionType] = ActionType.CALL_HTTP

    http_request: DurableHttpRequest

    def _payload(self) -> dict[str, Any]:
        return {"httpRequest": self.http_request.to_dict()}

    @classmethod
    def _from_payload(cls, fields):
        return cls(http_request=DurableHttpRequest.from_dict(fields["httprequest"]))

    def summary(self) -> str:
        return f"{self.action_type}({self.http_request.method} {self.http_request.uri})"


_ACTION_CLASSES: dict[ActionType, type[OrchestrationAction]] = {
    cls.action_type: cls
    for cls in (
        CallActivityAction,
        CallActivityWithRetryAction,
        CallSubOrchestratorAction,
        CallSubOrchestratorWithRetryAction,
        ContinueAsNewAction,
        CreateTimerAction,
        WaitForExternalEventAction,
        CallEntityAction,
        CallHttpAction,
    )
}


def action_from_dict(data: Mapping[str, Any]) -> OrchestrationAction:
    """
    Rebuild an action from its wire dict.

    Raises:
        ValueError: If the action type is unknown or a required field is missing
    """
    fields = {str(k).lower(): v for k, v in data.items()}
    if "actiontype" not in fields:
        raise ValueError("Orchestration action is missing 'actionType'")
    action_type = ActionType.parse(fields.pop("actiontype"))
    try:
        return _ACTION_CLASSES[action_type]._from_payload(fields)
    except KeyError as e:
        raise ValueError(f"{action_type} action is missing field {e.args[0]!r}") from None
