# ============================================================================
# MINT QUEUE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Orchestrator - In-memory work queue
# PURPOSE: Priority-banded FIFO of work items awaiting dispatch
# CREATED: 28 SEP 2026
# ============================================================================
"""
Mint Queue

In-memory only. The store is authoritative: after a restart the queue is
rebuilt from the non-terminal rows of the tasks table (seed_from).

Ordering: high before normal before low; within a band, created_at
ascending; equal timestamps keep insertion order. A task id is queued at
most once.
"""

import heapq
import itertools
import logging
from typing import Iterable, List, Optional, Set, Tuple

from core.contracts import ACTIVE_STATUSES
from core.models import MintTask, MintWorkItem

logger = logging.getLogger(__name__)

_Entry = Tuple[int, float, int, MintWorkItem]


class MintQueue:
    """Heap of work items keyed by (priority rank, created_at, sequence)."""

    def __init__(self):
        self._heap: List[_Entry] = []
        self._queued: Set[str] = set()
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._queued

    @property
    def empty(self) -> bool:
        return not self._heap

    def push(self, item: MintWorkItem) -> bool:
        """Queue an item. Returns False if its task is already queued."""
        if item.task_id in self._queued:
            return False
        entry = (item.priority.rank, item.created_at.timestamp(), next(self._seq), item)
        heapq.heappush(self._heap, entry)
        self._queued.add(item.task_id)
        return True

    def pop(self) -> Optional[MintWorkItem]:
        if not self._heap:
            return None
        item = heapq.heappop(self._heap)[3]
        self._queued.discard(item.task_id)
        return item

    def pending_ids(self) -> List[str]:
        """Queued task ids in drain order."""
        return [entry[3].task_id for entry in sorted(self._heap)]

    def clear(self) -> None:
        self._heap.clear()
        self._queued.clear()

    def seed_from(self, tasks: Iterable[MintTask]) -> int:
        """Re-enqueue non-terminal tasks in created_at order. Returns items added."""
        added = 0
        for task in sorted(tasks, key=lambda t: t.created_at):
            if task.status not in ACTIVE_STATUSES:
                continue
            if self.push(MintWorkItem.from_task(task)):
                added += 1
        if added:
            logger.info(f"Queue seeded with {added} task(s)")
        return added


__all__ = ["MintQueue"]
