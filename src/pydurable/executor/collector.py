"""Collects the actions emitted during one replay pass, grouped into batches."""

from __future__ import annotations

from pydurable.models.actions import OrchestrationAction

__all__ = ["OrchestrationActionCollector"]


class OrchestrationActionCollector:
    """
    Accumulates actions in batches.

    Actions issued between two wait points share a batch: the host starts the
    work in one batch concurrently. A wait point calls ``next_batch()`` so the
    following action opens a new batch. Empty batches are never produced.

    Example:
        ```python
        collector = OrchestrationActionCollector()
        collector.add(CallActivityAction("A"))   # no_wait
        collector.add(CallActivityAction("B"))   # no_wait
        collector.next_batch()                   # task_all([a, b])
        collector.add(CallActivityAction("C"))
        collector.batches  # [[A, B], [C]]
        ```
    """

    def __init__(self):
        self._batches: list[list[OrchestrationAction]] = []
        self._next_batch = True
        self._stopped = False

    def add(self, action: OrchestrationAction) -> None:
        if self._next_batch:
            self._batches.append([])
            self._next_batch = False
        self._batches[-1].append(action)

    def next_batch(self) -> None:
        self._next_batch = True

    def replace(self, old: OrchestrationAction, new: OrchestrationAction) -> bool:
        """
        Swap an already collected action (matched by identity) for ``new``.

        Returns:
            True if ``old`` was found
        """
        for batch in self._batches:
            for position, action in enumerate(batch):
                if action is old:
                    batch[position] = new
                    return True
        return False

    def stop(self) -> None:
        """Record that the pass ended early; no more actions are accepted after this."""
        self._stopped = True

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def batches(self) -> list[list[OrchestrationAction]]:
        """Copy of the collected batches."""
        return [list(batch) for batch in self._batches]

    def __len__(self) -> int:
        return sum(len(batch) for batch in self._batches)

    def __repr__(self) -> str:
        return f"OrchestrationActionCollector(batches={len(self._batches)}, actions={len(self)})"
