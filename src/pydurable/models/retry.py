"""
Retry options for activity and sub-orchestration calls.

Design Pattern: Strategy Pattern
RetryOptions describes how the host should retry a failed call. The engine
never sleeps or retries locally: it only encodes the policy into the
scheduled action and, on replay, walks the retry chain the host recorded.

Wire shape (camelCase, milliseconds):

    {
        "firstRetryIntervalInMilliseconds": 1000,
        "maxNumberOfAttempts": 3,
        "backoffCoefficient": 2.0,              # optional
        "maxRetryIntervalInMilliseconds": 30000, # optional
        "retryTimeoutInMilliseconds": 600000     # optional
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

__all__ = ["RetryOptions"]

_FIRST_INTERVAL = "firstRetryIntervalInMilliseconds"
_MAX_ATTEMPTS = "maxNumberOfAttempts"
_BACKOFF = "backoffCoefficient"
_MAX_INTERVAL = "maxRetryIntervalInMilliseconds"
_TIMEOUT = "retryTimeoutInMilliseconds"


def _to_ms(value: timedelta) -> int:
    return value // timedelta(milliseconds=1)


def _check_interval(field: str, value: timedelta | None) -> None:
    # The wire carries whole milliseconds
    if value is None:
        return
    if value < timedelta(0):
        raise ValueError(f"{field} must not be negative")
    if value % timedelta(milliseconds=1):
        raise ValueError(f"{field} must be a whole number of milliseconds, got {value}")


@dataclass(frozen=True)
class RetryOptions:
    """
    Retry policy handed to the host with a CallActivityWithRetry or
    CallSubOrchestratorWithRetry action.

    Examples:
        # Simple: three attempts, one second apart
        options = RetryOptions.with_max_attempts(3)

        # Exponential backoff capped at 30 seconds
        options = RetryOptions(
            first_retry_interval=timedelta(seconds=1),
            max_number_of_attempts=5,
            backoff_coefficient=2.0,
            max_retry_interval=timedelta(seconds=30),
        )
    """

    first_retry_interval: timedelta
    """Delay before the first retry."""

    max_number_of_attempts: int
    """Maximum number of attempts, including the first try."""

    backoff_coefficient: float | None = None
    """Multiplier applied to the interval after each retry (host default 1.0)."""

    max_retry_interval: timedelta | None = None
    """Upper bound for a single retry interval."""

    retry_timeout: timedelta | None = None
    """Upper bound for the whole retry chain."""

    def __post_init__(self):
        if self.max_number_of_attempts < 1:
            raise ValueError(
                f"max_number_of_attempts must be at least 1, got {self.max_number_of_attempts}"
            )
        _check_interval("first_retry_interval", self.first_retry_interval)
        if self.backoff_coefficient is not None and self.backoff_coefficient < 1:
            raise ValueError(
                f"backoff_coefficient must be at least 1, got {self.backoff_coefficient}"
            )
        _check_interval("max_retry_interval", self.max_retry_interval)
        _check_interval("retry_timeout", self.retry_timeout)

    @classmethod
    def with_max_attempts(
        cls, max_attempts: int, first_retry_interval: timedelta = timedelta(seconds=1)
    ) -> RetryOptions:
        """Create options with a fixed interval and the given number of attempts."""
        return cls(first_retry_interval=first_retry_interval, max_number_of_attempts=max_attempts)

    def delay_for_attempt(self, attempt: int) -> timedelta | None:
        """
        Delay the host will wait after failed attempt ``attempt`` (1-indexed).

        Informative only; the engine never waits on it.

        Returns:
            The delay, or None when no attempts remain

        Example:
            options = RetryOptions(timedelta(seconds=1), 3, backoff_coefficient=2.0)
            options.delay_for_attempt(1)  # 1s
            options.delay_for_attempt(2)  # 2s
            options.delay_for_attempt(3)  # None
        """
        if attempt >= self.max_number_of_attempts:
            return None

        multiplier = (self.backoff_coefficient or 1.0) ** (attempt - 1)
        delay = self.first_retry_interval * multiplier
        if self.max_retry_interval is not None:
            delay = min(delay, self.max_retry_interval)
        return delay

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the host's wire shape; optional keys only when set."""
        data: dict[str, Any] = {
            _FIRST_INTERVAL: _to_ms(self.first_retry_interval),
            _MAX_ATTEMPTS: self.max_number_of_attempts,
        }
        if self.backoff_coefficient is not None:
            data[_BACKOFF] = self.backoff_coefficient
        if self.max_retry_interval is not None:
            data[_MAX_INTERVAL] = _to_ms(self.max_retry_interval)
        if self.retry_timeout is not None:
            data[_TIMEOUT] = _to_ms(self.retry_timeout)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RetryOptions:
        """
        Parse the host's wire shape (keys matched case-insensitively).

        Raises:
            ValueError: If a required key is missing
        """
        lowered = {str(k).lower(): v for k, v in data.items()}

        def required(key: str) -> Any:
            try:
                return lowered[key.lower()]
            except KeyError:
                raise ValueError(f"RetryOptions is missing required field '{key}'") from None

        def optional_ms(key: str) -> timedelta | None:
            value = lowered.get(key.lower())
            return None if value is None else timedelta(milliseconds=value)

        backoff = lowered.get(_BACKOFF.lower())
        return cls(
            first_retry_interval=timedelta(milliseconds=required(_FIRST_INTERVAL)),
            max_number_of_attempts=int(required(_MAX_ATTEMPTS)),
            backoff_coefficient=None if backoff is None else float(backoff),
            max_retry_interval=optional_ms(_MAX_INTERVAL),
            retry_timeout=optional_ms(_TIMEOUT),
        )

    def __repr__(self) -> str:
        """Readable representation for debugging."""
        return (
            f"RetryOptions(first_retry_interval={self.first_retry_interval}, "
            f"max_number_of_attempts={self.max_number_of_attempts}, "
            f"backoff_coefficient={self.backoff_coefficient}, "
            f"max_retry_interval={self.max_retry_interval}, "
            f"retry_timeout={self.retry_timeout})"
        )
