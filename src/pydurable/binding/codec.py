"""
Wire codec between the host and the replay engine.

This is the only module that knows the host's schema.

Incoming orchestration trigger payload (keys matched case-insensitively)::

    {
        "instanceId": "abc",
        "parentInstanceId": null,
        "isReplaying": false,
        "input": {...},
        "history": [
            {"EventType": 12, "EventId": -1, "Timestamp": "2024-05-01T10:00:00.1234567Z",
             "IsPlayed": false},
            {"EventType": 4, "EventId": 0, "Name": "SayHello", "Input": "\\"Tokyo\\""},
            ...
        ]
    }

Outgoing OrchestrationMessage::

    {"isDone": false, "actions": [[{"actionType": 0, ...}]], "output": null,
     "customStatus": null}

A faulted pass is reported by raising OrchestrationFailureError, whose message
embeds the serialized OrchestrationMessage after the ``$OutOfProcData$:``
marker.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydurable.config import DurableOptions
from pydurable.core.context import OrchestrationContext
from pydurable.core.errors import DurableError
from pydurable.core.history import HistoryEvent, HistoryEventType
from pydurable.core.timestamps import parse_timestamp
from pydurable.executor.outcome import Faulted, OrchestrationResult
from pydurable.models.actions import OrchestrationAction, action_from_dict

if TYPE_CHECKING:
    from pydurable.registry import FunctionRegistry

__all__ = [
    "OUT_OF_PROC_DATA_LABEL",
    "OrchestrationMessage",
    "OrchestrationFailureError",
    "history_event_from_dict",
    "orchestration_context_from_json",
    "extract_out_of_proc_data",
]

OUT_OF_PROC_DATA_LABEL = "$OutOfProcData$:"


def _lower_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


def _as_payload(value: Any) -> str | None:
    """History payloads are JSON text; re-encode values the host sent pre-parsed."""
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


def _optional_int(fields: dict[str, Any], key: str) -> int | None:
    value = fields.get(key)
    return None if value is None else int(value)


def _boolean(fields: dict[str, Any], key: str) -> bool:
    value = fields.get(key)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"'{key}' must be a boolean, got {value!r}")


def history_event_from_dict(data: Mapping[str, Any]) -> HistoryEvent:
    """
    Parse one history event.

    Raises:
        ValueError: If the event is not an object, ``EventType`` is missing or
            unknown, or a timestamp or flag is invalid
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"History event must be a JSON object, got {type(data).__name__}")
    fields = _lower_keys(data)
    if fields.get("eventtype") is None:
        raise ValueError(f"History event is missing 'EventType': {dict(data)!r}")

    event_id = _optional_int(fields, "eventid")
    return HistoryEvent(
        event_id=-1 if event_id is None else event_id,
        event_type=HistoryEventType.parse(fields["eventtype"]),
        timestamp=parse_timestamp(fields.get("timestamp")),
        is_played=_boolean(fields, "isplayed"),
        name=fields.get("name"),
        input=_as_payload(fields.get("input")),
        result=_as_payload(fields.get("result")),
        reason=fields.get("reason"),
        details=_as_payload(fields.get("details")),
        fire_at=parse_timestamp(fields.get("fireat")),
        timer_id=_optional_int(fields, "timerid"),
        task_scheduled_id=_optional_int(fields, "taskscheduledid"),
        instance_id=fields.get("instanceid"),
    )


def orchestration_context_from_json(
    data: str | bytes | Mapping[str, Any],
    registry: FunctionRegistry | None = None,
    options: DurableOptions | None = None,
) -> OrchestrationContext:
    """
    Hydrate a fresh OrchestrationContext from the trigger payload.

    Raises:
        ValueError: If the payload is not a JSON object or a history event is invalid
    """
    if isinstance(data, (str, bytes)):
        data = json.loads(data)
    if not isinstance(data, Mapping):
        raise ValueError(f"Orchestration context must be a JSON object, got {type(data).__name__}")

    fields = _lower_keys(data)
    events = fields.get("history") or ()
    if isinstance(events, (str, bytes, Mapping)):
        raise ValueError(f"'history' must be a JSON array, got {type(events).__name__}")
    history = [history_event_from_dict(event) for event in events]
    return OrchestrationContext(
        instance_id=fields.get("instanceid") or "",
        history=history,
        input=fields.get("input"),
        parent_instance_id=fields.get("parentinstanceid"),
        is_replaying=_boolean(fields, "isreplaying"),
        registry=registry,
        options=options,
    )


@dataclass(frozen=True)
class OrchestrationMessage:
    """The result of one pass in the host's terms."""

    is_done: bool
    actions: list[list[OrchestrationAction]] = field(default_factory=list)
    output: Any = None
    custom_status: Any = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: OrchestrationResult) -> OrchestrationMessage:
        output = getattr(result, "output", None)
        error = None
        if isinstance(result, Faulted):
            error = f"{type(result.error).__name__}: {result.error}"
        return cls(
            is_done=result.status.is_done,
            actions=[list(batch) for batch in result.actions],
            output=output,
            custom_status=result.custom_status,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "isDone": self.is_done,
            "actions": [[action.to_dict() for action in batch] for batch in self.actions],
            "output": self.output,
            "customStatus": self.custom_status,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OrchestrationMessage:
        fields = _lower_keys(data)
        return cls(
            is_done=bool(fields.get("isdone", False)),
            actions=[
                [action_from_dict(action) for action in batch]
                for batch in fields.get("actions") or ()
            ],
            output=fields.get("output"),
            custom_status=fields.get("customstatus"),
            error=fields.get("error"),
        )


class OrchestrationFailureError(DurableError):
    """
    A faulted pass, in the form the host expects.

    The message is the orchestrator's error followed by the serialized
    OrchestrationMessage, so the host can still record the actions scheduled
    before the fault.
    """

    def __init__(self, message: OrchestrationMessage, cause: BaseException):
        super().__init__(f"{cause}\n\n{OUT_OF_PROC_DATA_LABEL}{message.to_json()}")
        self.orchestration_message = message
        self.cause = cause

    @classmethod
    def from_result(cls, result: Faulted) -> OrchestrationFailureError:
        return cls(OrchestrationMessage.from_result(result), result.error)


def extract_out_of_proc_data(message: str) -> dict[str, Any] | None:
    """Return the OrchestrationMessage embedded in a failure message, if any."""
    _, marker, payload = message.partition(OUT_OF_PROC_DATA_LABEL)
    if not marker:
        return None
    return json.loads(payload)
