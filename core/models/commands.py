# ============================================================================
# TRANSITION COMMANDS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core model - Fixed-shape task mutations
# PURPOSE: The only inputs accepted by the task state machine
# CREATED: 15 SEP 2026
# ============================================================================
"""
Transition commands.

Each command is an immutable value with a fixed shape. The state machine
(core.state_machine.apply) is the single consumer.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import ErrorKind
from core.models.task import TaskResultData


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)


class DispatchCmd(_Command):
    """PENDING -> PROCESSING."""
    kind: Literal["dispatch"] = "dispatch"
    provider: str
    message: str = "dispatched"


class ProgressCmd(_Command):
    """Progress-only update; status unchanged."""
    kind: Literal["progress"] = "progress"
    progress: int = Field(ge=0, le=100)
    message: str
    provider: Optional[str] = None


class CompleteCmd(_Command):
    """PROCESSING -> COMPLETED."""
    kind: Literal["complete"] = "complete"
    result: TaskResultData
    message: str = "Task completed successfully"


class FailCmd(_Command):
    """PROCESSING -> FAILED."""
    kind: Literal["fail"] = "fail"
    error_kind: ErrorKind
    message: str
    attempts: tuple = ()


class CancelCmd(_Command):
    """PENDING | PROCESSING -> CANCELED."""
    kind: Literal["cancel"] = "cancel"
    reason: str = "Task canceled by request"


class TimeoutCmd(_Command):
    """PENDING | PROCESSING -> TIMEOUT."""
    kind: Literal["timeout"] = "timeout"
    message: str = "Task timed out"


TaskCommand = Union[DispatchCmd, ProgressCmd, CompleteCmd, FailCmd, CancelCmd, TimeoutCmd]


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "DispatchCmd",
    "ProgressCmd",
    "CompleteCmd",
    "FailCmd",
    "CancelCmd",
    "TimeoutCmd",
    "TaskCommand",
]
