# ============================================================================
# MINT TASK MODEL
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core model - One generate-and-mint attempt for a token
# PURPOSE: Task record persisted in the tasks table
# CREATED: 15 SEP 2026
# ============================================================================
"""
Mint Task Model

A MintTask represents one attempt to generate an image for a token and
write its metadata URI to the contract.

Tasks are only mutated through core.state_machine.apply(); nothing else in
the codebase assigns status, progress or history directly.
"""

import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import ErrorKind, Priority, TaskStatus

# Column widths; apply() clips messages to fit
MAX_MESSAGE_CHARS = 500
MAX_ERROR_MESSAGE_CHARS = 2000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_task_id(now: Optional[datetime] = None) -> str:
    """task_<ms-epoch>_<16 hex chars>"""
    millis = int((now.timestamp() if now else time.time()) * 1000)
    return f"task_{millis}_{secrets.token_hex(8)}"


class HistoryEntry(BaseModel):
    """One append-only line of task history."""
    model_config = ConfigDict(frozen=True)

    time: datetime
    status: TaskStatus
    message: str
    progress: int = Field(ge=0, le=100)


class TaskResultData(BaseModel):
    """Outcome of a successful task."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token_uri: str = Field(alias="tokenURI")
    provider_used: str = Field(alias="providerUsed")
    duration_ms: int = Field(alias="durationMs", ge=0)
    image_uri: Optional[str] = Field(default=None, alias="imageURI")
    cost_estimate: Optional[float] = Field(default=None, alias="costEstimate")


class TaskError(BaseModel):
    """Terminal error classification."""
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str = Field(max_length=MAX_ERROR_MESSAGE_CHARS)
    attempts: List[str] = Field(default_factory=list)


class MintTask(BaseModel):
    """
    One generation + finalize attempt for a single token.

    Maps to: mint.tasks table

    Lifecycle:
        1. Created PENDING by the enqueue path (or the cron event scan)
        2. PROCESSING once the dispatcher picks it up
        3. COMPLETED after finalizeMint, or FAILED / TIMEOUT / CANCELED
        4. Deleted by the cleanup sweep once older than the TTL
    """

    # =========================================================================
    # SQL DDL METADATA (Used by PydanticToSQL generator)
    # =========================================================================
    __sql_table__: ClassVar[str] = "tasks"
    __sql_schema__: ClassVar[str] = "mint"
    __sql_primary_key__: ClassVar[List[str]] = ["task_id"]
    __sql_indexes__: ClassVar[List[Any]] = [
        ("idx_tasks_token", ["token_id"]),
        ("idx_tasks_status", ["status"]),
        ("idx_tasks_updated", ["updated_at"]),
        ("idx_tasks_timeout", ["timeout_at"], "status IN ('PENDING', 'PROCESSING')"),
        {
            "name": "idx_tasks_one_active_per_token",
            "columns": ["token_id"],
            "type": "unique",
            "partial_where": "status IN ('PENDING', 'PROCESSING')",
        },
    ]

    task_id: str = Field(..., max_length=64)
    token_id: int = Field(..., ge=0)
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    progress: int = Field(default=0, ge=0, le=100)
    message: str = Field(default="Task created", max_length=MAX_MESSAGE_CHARS)

    provider: Optional[str] = Field(default=None, max_length=32)
    provider_options: Dict[str, Any] = Field(default_factory=dict)
    priority: Priority = Field(default=Priority.NORMAL)

    # Request payload, kept so the queue can be rebuilt from the store
    breed: str = Field(default="Tabby", max_length=50)
    owner: Optional[str] = Field(default=None, max_length=64)
    prompt_extras: Optional[str] = Field(default=None, max_length=2000)
    negative_prompt: Optional[str] = Field(default=None, max_length=2000)
    is_regeneration: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    timeout_at: Optional[datetime] = None
    estimated_completion_time: Optional[datetime] = None

    history: List[HistoryEntry] = Field(default_factory=list)
    result: Optional[TaskResultData] = None
    error: Optional[TaskError] = None

    @classmethod
    def create(
        cls,
        token_id: int,
        provider: str,
        provider_options: Optional[Dict[str, Any]] = None,
        timeout_ms: int = 300_000,
        estimated_seconds: Optional[float] = None,
        now: Optional[datetime] = None,
        **fields: Any,
    ) -> "MintTask":
        """
        Build a new PENDING task with its first history entry.

        A non-positive timeout is clamped to 1ms so timeout_at always lies
        strictly after created_at.
        """
        now = now or utcnow()
        message = "Task created"
        task = cls(
            task_id=fields.pop("task_id", None) or generate_task_id(now),
            token_id=token_id,
            provider=provider,
            provider_options=provider_options or {},
            created_at=now,
            updated_at=now,
            timeout_at=now + timedelta(milliseconds=max(int(timeout_ms), 1)),
            estimated_completion_time=(
                now + timedelta(seconds=estimated_seconds) if estimated_seconds else None
            ),
            message=message,
            history=[HistoryEntry(time=now, status=TaskStatus.PENDING, message=message, progress=0)],
            **fields,
        )
        return task

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Non-terminal and past its deadline."""
        if self.is_terminal or self.timeout_at is None:
            return False
        return (now or utcnow()) > self.timeout_at

    def to_minimal(self) -> Dict[str, Any]:
        """Compact status payload for polling clients."""
        return {
            "taskId": self.task_id,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "tokenURI": self.result.token_uri if self.result else None,
            "updatedAt": self.updated_at.isoformat(),
        }

    def to_public(self) -> Dict[str, Any]:
        """Full task payload for the status endpoint."""
        data = self.model_dump(mode="json", by_alias=True)
        data["taskId"] = self.task_id
        return data


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "MAX_MESSAGE_CHARS",
    "MAX_ERROR_MESSAGE_CHARS",
    "HistoryEntry",
    "TaskResultData",
    "TaskError",
    "MintTask",
    "generate_task_id",
    "utcnow",
]
