# ============================================================================
# STORE BACKEND PROTOCOL
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Repository - Storage contract shared by all backends
# PURPOSE: Define what the persistence adapter needs from a store
# CREATED: 19 SEP 2026
# ============================================================================
"""
Store backend protocol.

Backends are thin: they translate typed calls into one store round-trip
each and raise StoreTransientError / StoreFatalError. Retry, lifecycle
and result typing live in repositories.persistence.PersistenceAdapter.

Implementations:
    repositories.postgres_backend.PostgresBackend
    repositories.memory_backend.MemoryBackend
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, runtime_checkable

from core.contracts import TaskStatus
from core.models import MetricsDelta, MintTask, ProviderPreference, TaskMetrics


@dataclass(frozen=True)
class TaskFilter:
    """
    Predicate over the tasks table. Unset fields do not constrain.

    Used for both findTasks and deleteTasksWhere.
    """
    token_id: Optional[int] = None
    statuses: Optional[FrozenSet[TaskStatus]] = None
    timeout_before: Optional[datetime] = None
    updated_before: Optional[datetime] = None
    newest_first: bool = False
    limit: Optional[int] = None

    def matches(self, task: MintTask) -> bool:
        """In-process evaluation, used by the memory backend."""
        if self.token_id is not None and task.token_id != self.token_id:
            return False
        if self.statuses is not None and task.status not in self.statuses:
            return False
        if self.timeout_before is not None and (
            task.timeout_at is None or not task.timeout_at < self.timeout_before
        ):
            return False
        if self.updated_before is not None and not task.updated_at < self.updated_before:
            return False
        return True


@runtime_checkable
class StoreBackend(Protocol):
    """
    Storage contract for tasks, state, metrics and provider preferences.

    Every write is idempotent: tasks key on task_id, state on type,
    preferences on token_id.
    """

    # --- Lifecycle ---

    async def open(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def ping(self) -> bool:
        """Cheap round-trip used by the health check."""
        ...

    # --- Tasks ---

    async def insert_task(self, task: MintTask, metrics: Optional[MetricsDelta] = None) -> None:
        """Insert a new task. Raises DuplicateActiveTaskError if the token already has one."""
        ...

    async def upsert_task(
        self,
        task: MintTask,
        expected_status: Optional[TaskStatus] = None,
        metrics: Optional[MetricsDelta] = None,
        expected_history_len: Optional[int] = None,
    ) -> bool:
        """
        Write a task keyed on task_id.

        With expected_status and/or expected_history_len, the write only
        lands if the stored row still has that status and that many history
        entries; returns False otherwise. The metrics delta is
        applied in the same transaction as a landed write.
        """
        ...

    async def get_task(self, task_id: str) -> Optional[MintTask]:
        ...

    async def find_tasks(self, task_filter: TaskFilter) -> List[MintTask]:
        """Matching tasks, created_at ascending unless newest_first."""
        ...

    async def delete_tasks(self, task_filter: TaskFilter) -> int:
        ...

    async def count_by_status(self) -> Dict[TaskStatus, int]:
        ...

    # --- State documents ---

    async def get_state(self, state_type: str) -> Optional[Dict[str, Any]]:
        ...

    async def put_state(self, state_type: str, data: Dict[str, Any]) -> None:
        ...

    # --- Metrics ---

    async def get_metrics(self) -> Optional[TaskMetrics]:
        ...

    async def put_metrics(self, metrics: TaskMetrics) -> None:
        ...

    # --- Provider preferences ---

    async def get_preference(self, token_id: int) -> Optional[ProviderPreference]:
        ...

    async def put_preference(self, preference: ProviderPreference) -> None:
        ...


__all__ = ["TaskFilter", "StoreBackend"]
