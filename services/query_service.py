# ============================================================================
# QUERY SERVICE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Service - Read-side lookups for polling clients
# PURPOSE: Task status, tasks by token, aggregate metrics
# CREATED: 27 SEP 2026
# ============================================================================
"""
Query Service

Every call is a fresh read from the store. status() is the one read that
may write: an overdue PENDING/PROCESSING task is moved to TIMEOUT before
it is returned, through the same guarded transition the sweeper uses.
"""

import logging
from typing import Any, Dict, List, Optional

from core.contracts import TaskStatus
from core.models import MintTask, TimeoutCmd, utcnow
from repositories import PersistenceAdapter, TaskFilter
from services.task_service import TaskService

logger = logging.getLogger(__name__)

UNKNOWN_STATUS: Dict[str, Any] = {"status": TaskStatus.UNKNOWN.value}


class QueryService:
    """Read-only lookups (plus lazy timeout evaluation)."""

    def __init__(self, adapter: PersistenceAdapter, task_service: TaskService):
        self.adapter = adapter
        self.task_service = task_service

    async def status(self, task_id: str) -> Optional[MintTask]:
        """The task, or None when the id is unknown."""
        lookup = await self.adapter.load_task(task_id)
        if not lookup.found:
            return None
        task = lookup.task
        now = utcnow()
        if task.is_overdue(now):
            transition = await self.task_service.transition(task_id, TimeoutCmd(), now=now)
            if transition is not None:
                task = transition.task
                if transition.applied:
                    logger.info(f"Task {task_id} timed out on read")
        return task

    async def tasks_by_token(self, token_id: int) -> List[MintTask]:
        """All stored tasks for a token, newest first."""
        return await self.adapter.find_tasks(TaskFilter(token_id=token_id, newest_first=True))

    async def metrics(self) -> Dict[str, Any]:
        metrics = await self.adapter.load_metrics()
        counts = await self.adapter.count_by_status()
        return {
            "created": metrics.created,
            "completed": metrics.completed,
            "failed": metrics.failed,
            "active": metrics.active,
            "averageCompletionTimeSeconds": round(metrics.average_completion_time / 1000.0, 3),
            "pending": counts.get(TaskStatus.PENDING, 0),
            "processing": counts.get(TaskStatus.PROCESSING, 0),
            "total": sum(counts.values()),
        }


__all__ = ["QueryService", "UNKNOWN_STATUS"]
