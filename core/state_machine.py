# ============================================================================
# TASK STATE MACHINE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Pure transition function
# PURPOSE: Apply transition commands to tasks, producing events
# CREATED: 17 SEP 2026
# ============================================================================
"""
Task state machine.

apply(task, cmd) is total: every (status, command) pair yields a
Transition. Illegal pairs return the task unchanged with a single
REJECTED event; they never raise and never append history.

Legal transitions:
    PENDING    -- dispatch --> PROCESSING
    PENDING    -- cancel   --> CANCELED
    PENDING    -- timeout  --> TIMEOUT   (sweeper)
    PROCESSING -- complete --> COMPLETED
    PROCESSING -- fail     --> FAILED
    PROCESSING -- timeout  --> TIMEOUT
    PROCESSING -- cancel   --> CANCELED
    PENDING | PROCESSING -- progress --> (status unchanged)

Every applied command appends exactly one history entry.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from core.contracts import ErrorKind, TaskStatus
from core.models.commands import (
    CancelCmd,
    CompleteCmd,
    DispatchCmd,
    FailCmd,
    ProgressCmd,
    TaskCommand,
    TimeoutCmd,
)
from core.models.metrics import MetricsDelta
from core.models.task import (
    MAX_ERROR_MESSAGE_CHARS,
    MAX_MESSAGE_CHARS,
    HistoryEntry,
    MintTask,
    TaskError,
    utcnow,
)


class EventType(str, Enum):
    DISPATCHED = "dispatched"
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TaskEvent:
    """Something that happened to a task as the result of one command."""
    type: EventType
    task_id: str
    status: TaskStatus
    message: str


@dataclass(frozen=True)
class Transition:
    """Result of apply(): the new task plus the events it produced."""
    task: MintTask
    previous_status: TaskStatus
    events: Tuple[TaskEvent, ...]

    @property
    def applied(self) -> bool:
        return not any(e.type == EventType.REJECTED for e in self.events)

    @property
    def metrics_delta(self) -> MetricsDelta:
        """Counter changes implied by the events of this transition."""
        if not self.applied:
            return MetricsDelta()
        kinds = {e.type for e in self.events}
        if EventType.COMPLETED in kinds:
            elapsed = self.task.updated_at - self.task.created_at
            return MetricsDelta(
                completed=1,
                active=-1,
                completion_ms=int(elapsed.total_seconds() * 1000),
            )
        if EventType.FAILED in kinds or EventType.TIMED_OUT in kinds:
            return MetricsDelta(failed=1, active=-1)
        if EventType.CANCELED in kinds:
            return MetricsDelta(active=-1)
        return MetricsDelta()


ALLOWED: Dict[TaskStatus, FrozenSet[str]] = {
    TaskStatus.PENDING: frozenset({"dispatch", "progress", "cancel", "timeout"}),
    TaskStatus.PROCESSING: frozenset({"progress", "complete", "fail", "cancel", "timeout"}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELED: frozenset(),
    TaskStatus.TIMEOUT: frozenset(),
}

TARGET_STATUS: Dict[str, TaskStatus] = {
    "dispatch": TaskStatus.PROCESSING,
    "complete": TaskStatus.COMPLETED,
    "fail": TaskStatus.FAILED,
    "cancel": TaskStatus.CANCELED,
    "timeout": TaskStatus.TIMEOUT,
}


def can_apply(status: TaskStatus, cmd: TaskCommand) -> bool:
    return cmd.kind in ALLOWED.get(status, frozenset())


def is_reachable(source: TaskStatus, target: TaskStatus) -> bool:
    """True if one legal command moves a task from source to target."""
    if source == target:
        return "progress" in ALLOWED.get(source, frozenset())
    return any(TARGET_STATUS.get(kind) == target for kind in ALLOWED.get(source, frozenset()))


def _reject(task: MintTask, cmd: TaskCommand) -> Transition:
    event = TaskEvent(
        type=EventType.REJECTED,
        task_id=task.task_id,
        status=task.status,
        message=f"{cmd.kind} not allowed from {task.status.value}",
    )
    return Transition(task=task, previous_status=task.status, events=(event,))


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _estimate_completion(task: MintTask, progress: int, now: datetime) -> Optional[datetime]:
    if not 0 < progress < 100:
        return task.estimated_completion_time
    elapsed = now - task.created_at
    return now + elapsed * (100 / progress - 1)


def apply(task: MintTask, cmd: TaskCommand, now: Optional[datetime] = None) -> Transition:
    """Apply one command to a task. Never raises for illegal commands."""
    if not can_apply(task.status, cmd):
        return _reject(task, cmd)

    # History stays monotonic even if the caller's clock lags the store
    now = max(now or utcnow(), task.updated_at)

    status = task.status
    progress = task.progress
    update: Dict[str, object] = {}

    if isinstance(cmd, DispatchCmd):
        status = TaskStatus.PROCESSING
        progress = max(progress, 1)
        message = cmd.message
        update["provider"] = cmd.provider
        event_type = EventType.DISPATCHED

    elif isinstance(cmd, ProgressCmd):
        # 100 is reserved for COMPLETED
        progress = min(max(progress, cmd.progress), 99)
        message = cmd.message
        if cmd.provider:
            update["provider"] = cmd.provider
        update["estimated_completion_time"] = _estimate_completion(task, progress, now)
        event_type = EventType.PROGRESS

    elif isinstance(cmd, CompleteCmd):
        status = TaskStatus.COMPLETED
        progress = 100
        message = cmd.message
        update["completed_at"] = now
        update["result"] = cmd.result
        update["provider"] = cmd.result.provider_used
        update["estimated_completion_time"] = now
        event_type = EventType.COMPLETED

    elif isinstance(cmd, FailCmd):
        status = TaskStatus.FAILED
        message = cmd.message
        update["failed_at"] = now
        update["error"] = TaskError(
            kind=cmd.error_kind,
            message=_clip(cmd.message, MAX_ERROR_MESSAGE_CHARS),
            attempts=list(cmd.attempts),
        )
        event_type = EventType.FAILED

    elif isinstance(cmd, CancelCmd):
        status = TaskStatus.CANCELED
        message = cmd.reason
        update["canceled_at"] = now
        event_type = EventType.CANCELED

    elif isinstance(cmd, TimeoutCmd):
        status = TaskStatus.TIMEOUT
        message = cmd.message
        update["error"] = TaskError(kind=ErrorKind.TIMEOUT, message=_clip(cmd.message, MAX_ERROR_MESSAGE_CHARS))
        event_type = EventType.TIMED_OUT

    else:
        return _reject(task, cmd)

    # The full failure text stays in error.message
    message = _clip(message, MAX_MESSAGE_CHARS)
    entry = HistoryEntry(time=now, status=status, message=message, progress=progress)
    new_task = task.model_copy(update={
        **update,
        "status": status,
        "progress": progress,
        "message": message,
        "updated_at": now,
        "history": [*task.history, entry],
    })
    event = TaskEvent(type=event_type, task_id=task.task_id, status=status, message=message)
    return Transition(task=new_task, previous_status=task.status, events=(event,))


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "EventType",
    "TaskEvent",
    "Transition",
    "ALLOWED",
    "apply",
    "can_apply",
    "is_reachable",
]
