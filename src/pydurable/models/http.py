"""Durable HTTP request/response payloads for CallHttp actions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = ["DurableHttpRequest", "DurableHttpResponse"]


def _lower_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


@dataclass(frozen=True)
class DurableHttpRequest:
    """An HTTP request the host executes on the orchestrator's behalf."""

    method: str
    uri: str
    content: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    token_source: dict[str, Any] | None = None
    """Managed identity token source, passed through to the host unchanged."""

    def __post_init__(self):
        if not self.method:
            raise ValueError("method cannot be empty")
        if not self.uri:
            raise ValueError("uri cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"method": self.method.upper(), "uri": self.uri}
        if self.content is not None:
            data["content"] = self.content
        if self.headers:
            data["headers"] = dict(self.headers)
        if self.token_source is not None:
            data["tokenSource"] = self.token_source
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DurableHttpRequest:
        lowered = _lower_keys(data)
        return cls(
            method=lowered["method"],
            uri=lowered["uri"],
            content=lowered.get("content"),
            headers=dict(lowered.get("headers") or {}),
            token_source=lowered.get("tokensource"),
        )


@dataclass(frozen=True)
class DurableHttpResponse:
    """The response the host recorded for a durable HTTP call."""

    status_code: int
    content: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DurableHttpResponse:
        lowered = _lower_keys(data)
        return cls(
            status_code=int(lowered.get("statuscode", 0)),
            content=lowered.get("content"),
            headers=dict(lowered.get("headers") or {}),
        )
