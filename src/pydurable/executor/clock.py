"""
Logical clock of an orchestration.

``current_utc_datetime`` must come from history, never from the wall clock,
so every replay of the same history prefix observes the same time. The host
appends an OrchestratorStarted event at the start of every episode; the
clock starts at the first one and moves to the next one each time the task
handler hands a result to orchestrator code.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydurable.core.history import HistoryEventType

if TYPE_CHECKING:
    from pydurable.core.context import OrchestrationContext

__all__ = ["initialize_current_utc_datetime", "update_current_utc_datetime"]

logger = logging.getLogger(__name__)


def initialize_current_utc_datetime(context: OrchestrationContext) -> None:
    """Start the clock at the first OrchestratorStarted event and consume it."""
    history = context.history
    for index, event in enumerate(history):
        if event.event_type is HistoryEventType.ORCHESTRATOR_STARTED:
            context.current_utc_datetime = event.timestamp
            history.mark_processed(index)
            return
    logger.debug(f"No OrchestratorStarted event for {context.instance_id}; clock unset")


def update_current_utc_datetime(context: OrchestrationContext) -> None:
    """Advance the clock to the next unprocessed OrchestratorStarted event, if any."""
    index = context.history.next_orchestrator_started()
    if index is None:
        return
    event = context.history[index]
    if event.timestamp is not None:
        context.current_utc_datetime = event.timestamp
    context.history.mark_processed(index)
