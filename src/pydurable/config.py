"""
Engine options.

Options are a frozen value passed into the context and controller. The core
never reads the environment itself; ``DurableOptions.from_env`` exists for
host integration code that wants to.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

__all__ = ["DurableOptions"]

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _get_boolean(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None or value.strip() == "":
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class DurableOptions:
    """
    Behaviour switches for the replay engine.

    Example:
        ```python
        options = DurableOptions(validate_activities=False)
        context = orchestration_context_from_json(payload, options=options)
        ```
    """

    validate_activities: bool = True
    """Check activity calls against the function registry, when one is given."""

    detect_unclaimed_history: bool = True
    """Fault a completed pass if history holds scheduling events no call claimed."""

    suppress_replay_logs: bool = True
    """Drop replay-safe logger records while the orchestrator is replaying."""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DurableOptions:
        """
        Read ``PYDURABLE_VALIDATE_ACTIVITIES``, ``PYDURABLE_DETECT_UNCLAIMED_HISTORY``
        and ``PYDURABLE_SUPPRESS_REPLAY_LOGS``.

        Raises:
            ValueError: If a variable is set to something that is not a boolean
        """
        environ = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            validate_activities=_get_boolean(
                environ, "PYDURABLE_VALIDATE_ACTIVITIES", defaults.validate_activities
            ),
            detect_unclaimed_history=_get_boolean(
                environ, "PYDURABLE_DETECT_UNCLAIMED_HISTORY", defaults.detect_unclaimed_history
            ),
            suppress_replay_logs=_get_boolean(
                environ, "PYDURABLE_SUPPRESS_REPLAY_LOGS", defaults.suppress_replay_logs
            ),
        )
