# ============================================================================
# PERSISTENCE ADAPTER
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Repository - Typed, retrying facade over a StoreBackend
# PURPOSE: The one object every component uses to reach the store
# CREATED: 20 SEP 2026
# ============================================================================
"""
Persistence Adapter

Wraps a StoreBackend with:
- lazy opening of the process-wide connection handle
- bounded retry of StoreTransientError (3 attempts, 200ms base, +/-50%
  jitter by default); exhaustion surfaces a single StoreFatalError
- typed results: loadTask returns TaskLookup, never None and never an
  exception for a missing id
- close-on-signal: SIGINT/SIGTERM mark the adapter closed so no new
  operation starts, while operations already awaiting the store finish

Usage:
    adapter = PersistenceAdapter(MemoryBackend(), config.store)
    lookup = await adapter.load_task("task_1_abcd")
    if lookup.found:
        ...
"""

import asyncio
import logging
import signal
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from core.config import StoreConfig
from core.contracts import ACTIVE_STATUSES, TaskStatus
from core.errors import DuplicateActiveTaskError, StoreFatalError, StoreTransientError
from core.models import MetricsDelta, MintTask, ProviderPreference, TaskMetrics
from infrastructure.retry import RetryError, retry_async
from repositories.backend import StoreBackend, TaskFilter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class TaskLookup:
    """Result of load_task(). Branch on .found, not on exceptions."""
    status: LookupStatus
    task: Optional[MintTask] = None

    @property
    def found(self) -> bool:
        return self.status == LookupStatus.FOUND


TASK_NOT_FOUND = TaskLookup(LookupStatus.NOT_FOUND)


class CreateStatus(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class CreateResult:
    """Result of create_task(): the new task, or the active one it collided with."""
    status: CreateStatus
    task: MintTask

    @property
    def created(self) -> bool:
        return self.status == CreateStatus.CREATED


class PersistenceAdapter:
    """
    Process-wide handle on the relational store.

    One instance per process; passed explicitly to every component.
    """

    def __init__(
        self,
        backend: StoreBackend,
        config: Optional[StoreConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.config = config or StoreConfig()
        self._sleep = sleep
        self._opened = False
        self._closed = False
        self._open_lock = asyncio.Lock()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def _ensure_open(self) -> None:
        if self._closed:
            raise StoreFatalError("persistence adapter is closed")
        if self._opened:
            return
        async with self._open_lock:
            if not self._opened:
                await self._retry("open", self.backend.open)
                self._opened = True
                logger.info(f"Persistence adapter opened ({type(self.backend).__name__})")

    async def _retry(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await retry_async(
                fn,
                attempts=self.config.retry_attempts,
                base_delay=self.config.retry_base_seconds,
                jitter=self.config.retry_jitter,
                retry_on=(StoreTransientError,),
                operation=f"store.{operation}",
                sleep=self._sleep,
            )
        except RetryError as e:
            logger.error(f"store.{operation} gave up after {e.attempts} attempts")
            raise StoreFatalError(str(e)) from e

    async def _run(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        await self._ensure_open()
        return await self._retry(operation, fn)

    def mark_closed(self) -> None:
        """Refuse new operations. In-flight ones are left to finish."""
        if not self._closed:
            self._closed = True
            logger.info("Persistence adapter marked closed")

    def install_signal_handlers(self) -> None:
        """
        Chain SIGINT/SIGTERM so they mark the adapter closed before the
        previously installed handler (e.g. the ASGI server's) runs.
        """
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous = signal.getsignal(sig)

            def handler(signum, frame, _previous=previous):
                self.mark_closed()
                if callable(_previous):
                    _previous(signum, frame)
                elif _previous == signal.SIG_DFL and signum == signal.SIGINT:
                    raise KeyboardInterrupt

            signal.signal(sig, handler)

    async def close(self) -> None:
        self.mark_closed()
        if self._opened:
            await self.backend.close()
            self._opened = False

    async def reopen(self) -> None:
        """Clear the closed flag (tests and in-process restarts)."""
        self._closed = False

    # =========================================================================
    # TASKS
    # =========================================================================

    async def create_task(self, task: MintTask) -> CreateResult:
        """
        Insert a new task, counting it in metrics.

        If the token already has an active task, nothing is written and
        the existing task is returned with status DUPLICATE.
        """
        delta = MetricsDelta(created=1, active=1)
        try:
            await self._run("insert_task", lambda: self.backend.insert_task(task, delta))
            return CreateResult(CreateStatus.CREATED, task)
        except DuplicateActiveTaskError:
            active = await self.find_tasks(TaskFilter(
                token_id=task.token_id,
                statuses=ACTIVE_STATUSES,
                newest_first=True,
                limit=1,
            ))
            if not active:
                raise
            logger.info(f"Token {task.token_id} already has active task {active[0].task_id}")
            return CreateResult(CreateStatus.DUPLICATE, active[0])

    async def upsert_task(
        self,
        task: MintTask,
        expected_status: Optional[TaskStatus] = None,
        metrics: Optional[MetricsDelta] = None,
        expected_history_len: Optional[int] = None,
    ) -> bool:
        """Idempotent write keyed on task_id; conditional when a guard is given."""
        return await self._run(
            "upsert_task",
            lambda: self.backend.upsert_task(
                task,
                expected_status=expected_status,
                metrics=metrics,
                expected_history_len=expected_history_len,
            ),
        )

    async def load_task(self, task_id: str) -> TaskLookup:
        task = await self._run("get_task", lambda: self.backend.get_task(task_id))
        if task is None:
            return TASK_NOT_FOUND
        return TaskLookup(LookupStatus.FOUND, task)

    async def find_tasks(self, task_filter: TaskFilter) -> List[MintTask]:
        return await self._run("find_tasks", lambda: self.backend.find_tasks(task_filter))

    async def delete_tasks_where(self, task_filter: TaskFilter) -> int:
        return await self._run("delete_tasks", lambda: self.backend.delete_tasks(task_filter))

    async def count_by_status(self) -> Dict[TaskStatus, int]:
        return await self._run("count_by_status", self.backend.count_by_status)

    # =========================================================================
    # STATE DOCUMENTS
    # =========================================================================

    async def save_state(self, state_type: str, payload: Dict[str, Any]) -> None:
        await self._run("put_state", lambda: self.backend.put_state(state_type, payload))

    async def load_state(self, state_type: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Stored document merged over the default; the default alone if absent."""
        stored = await self._run("get_state", lambda: self.backend.get_state(state_type))
        return {**(default or {}), **(stored or {})}

    # =========================================================================
    # METRICS
    # =========================================================================

    async def upsert_metrics(self, metrics: TaskMetrics) -> None:
        await self._run("put_metrics", lambda: self.backend.put_metrics(metrics))

    async def load_metrics(self) -> TaskMetrics:
        metrics = await self._run("get_metrics", self.backend.get_metrics)
        return metrics or TaskMetrics()

    # =========================================================================
    # PROVIDER PREFERENCES
    # =========================================================================

    async def upsert_provider_preference(self, preference: ProviderPreference) -> None:
        await self._run("put_preference", lambda: self.backend.put_preference(preference))

    async def get_provider_preference(self, token_id: int) -> Optional[ProviderPreference]:
        return await self._run("get_preference", lambda: self.backend.get_preference(token_id))

    # =========================================================================
    # HEALTH
    # =========================================================================

    async def health_check(self) -> Dict[str, Any]:
        """Store reachability. Never raises."""
        started = time.monotonic()
        try:
            ok = await self._run("ping", self.backend.ping)
            error = None if ok else "ping returned no row"
        except (StoreFatalError, StoreTransientError) as e:
            ok, error = False, str(e)
        result: Dict[str, Any] = {
            "status": "healthy" if ok else "unhealthy",
            "backend": type(self.backend).__name__,
            "latency_ms": round((time.monotonic() - started) * 1000, 2),
            "closed": self._closed,
        }
        if error:
            result["error"] = error
        return result


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "LookupStatus",
    "TaskLookup",
    "TASK_NOT_FOUND",
    "CreateStatus",
    "CreateResult",
    "PersistenceAdapter",
]
