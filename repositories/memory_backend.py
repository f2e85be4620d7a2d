# ============================================================================
# IN-MEMORY STORE BACKEND
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Repository - Dictionary-backed StoreBackend
# PURPOSE: Local development and tests without PostgreSQL
# CREATED: 19 SEP 2026
# ============================================================================
"""
In-memory store backend.

Implements the StoreBackend protocol with dictionaries. Data survives
close()/open() on the same instance, which is how tests simulate a process
restart against a durable store.

With strict=True every written task is re-validated against MintTask
(field widths included), so a row PostgreSQL would reject fails here too.

Safe for single-process async usage: no method awaits between reading and
writing its dictionaries, so every call is atomic under the event loop.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as ModelValidationError

from core.contracts import ACTIVE_STATUSES, TaskStatus
from core.errors import DuplicateActiveTaskError, StoreFatalError
from core.models import MetricsDelta, MintTask, ProviderPreference, TaskMetrics
from repositories.backend import TaskFilter

logger = logging.getLogger(__name__)


class MemoryBackend:
    """Dictionary-backed implementation of StoreBackend."""

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict
        self._tasks: Dict[str, MintTask] = {}
        self._state: Dict[str, Dict[str, Any]] = {}
        self._metrics: Optional[TaskMetrics] = None
        self._preferences: Dict[int, ProviderPreference] = {}
        self._open = False

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    async def ping(self) -> bool:
        return self._open

    def _require_open(self) -> None:
        if not self._open:
            raise StoreFatalError("memory backend is closed")

    def _stored_copy(self, task: MintTask) -> MintTask:
        if not self.strict:
            return task.model_copy(deep=True)
        try:
            return MintTask.model_validate(task.model_dump())
        except ModelValidationError as e:
            raise StoreFatalError(f"task {task.task_id} rejected by schema: {e}") from e

    def _apply_metrics(self, delta: Optional[MetricsDelta]) -> None:
        if delta is None or delta.is_empty:
            return
        self._metrics = (self._metrics or TaskMetrics()).apply(delta)

    # --- Tasks ---

    async def insert_task(self, task: MintTask, metrics: Optional[MetricsDelta] = None) -> None:
        self._require_open()
        if task.status in ACTIVE_STATUSES:
            for existing in self._tasks.values():
                if (
                    existing.token_id == task.token_id
                    and existing.status in ACTIVE_STATUSES
                    and existing.task_id != task.task_id
                ):
                    raise DuplicateActiveTaskError(task.token_id)
        if task.task_id in self._tasks:
            return
        self._tasks[task.task_id] = self._stored_copy(task)
        self._apply_metrics(metrics)

    async def upsert_task(
        self,
        task: MintTask,
        expected_status: Optional[TaskStatus] = None,
        metrics: Optional[MetricsDelta] = None,
        expected_history_len: Optional[int] = None,
    ) -> bool:
        self._require_open()
        current = self._tasks.get(task.task_id)
        if expected_status is not None and (current is None or current.status != expected_status):
            return False
        if expected_history_len is not None and (current is None or len(current.history) != expected_history_len):
            return False
        self._tasks[task.task_id] = self._stored_copy(task)
        self._apply_metrics(metrics)
        return True

    async def get_task(self, task_id: str) -> Optional[MintTask]:
        self._require_open()
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    async def find_tasks(self, task_filter: TaskFilter) -> List[MintTask]:
        self._require_open()
        tasks = [t for t in self._tasks.values() if task_filter.matches(t)]
        tasks.sort(key=lambda t: t.created_at, reverse=task_filter.newest_first)
        if task_filter.limit is not None:
            tasks = tasks[:task_filter.limit]
        return [t.model_copy(deep=True) for t in tasks]

    async def delete_tasks(self, task_filter: TaskFilter) -> int:
        self._require_open()
        doomed = [task_id for task_id, t in self._tasks.items() if task_filter.matches(t)]
        for task_id in doomed:
            del self._tasks[task_id]
        return len(doomed)

    async def count_by_status(self) -> Dict[TaskStatus, int]:
        self._require_open()
        counts: Dict[TaskStatus, int] = {s: 0 for s in TaskStatus.stored()}
        for task in self._tasks.values():
            counts[task.status] += 1
        return counts

    # --- State documents ---

    async def get_state(self, state_type: str) -> Optional[Dict[str, Any]]:
        self._require_open()
        data = self._state.get(state_type)
        return dict(data) if data is not None else None

    async def put_state(self, state_type: str, data: Dict[str, Any]) -> None:
        self._require_open()
        self._state[state_type] = dict(data)

    # --- Metrics ---

    async def get_metrics(self) -> Optional[TaskMetrics]:
        self._require_open()
        return self._metrics.model_copy() if self._metrics else None

    async def put_metrics(self, metrics: TaskMetrics) -> None:
        self._require_open()
        self._metrics = metrics.model_copy()

    # --- Provider preferences ---

    async def get_preference(self, token_id: int) -> Optional[ProviderPreference]:
        self._require_open()
        pref = self._preferences.get(token_id)
        return pref.model_copy(deep=True) if pref else None

    async def put_preference(self, preference: ProviderPreference) -> None:
        self._require_open()
        self._preferences[preference.token_id] = preference.model_copy(deep=True)


__all__ = ["MemoryBackend"]
