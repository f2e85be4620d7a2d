# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Foundation - Core enums shared by every layer
# PURPOSE: Task status, priority bands and error classification
# CREATED: 14 SEP 2026
# ============================================================================
"""
Base contracts for the mint coordinator.

These enums cross every boundary:
- SQL (PostgreSQL enum types)
- HTTP (status payloads)
- Python (state machine, dispatcher)
"""

from enum import Enum


# ============================================================================
# STATUS ENUMS
# ============================================================================

class TaskStatus(str, Enum):
    """
    Generation task lifecycle states.

    State transitions:
        PENDING -> PROCESSING -> COMPLETED
                              -> FAILED
                              -> TIMEOUT
                              -> CANCELED
                -> CANCELED
                -> TIMEOUT (sweeper only)

    UNKNOWN is never stored; it is what a lookup of a missing id reports.
    """
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in TERMINAL_STATUSES

    @classmethod
    def stored(cls) -> list:
        """Statuses that may appear in the tasks table."""
        return [s for s in cls if s is not cls.UNKNOWN]


TERMINAL_STATUSES = frozenset({
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
    TaskStatus.CANCELED,
    TaskStatus.TIMEOUT,
})

ACTIVE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.PROCESSING})


class Priority(str, Enum):
    """Dispatcher priority band. Lower rank drains first."""
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 0, "normal": 1, "low": 2}[self.value]


# ============================================================================
# ERROR CLASSIFICATION
# ============================================================================

class ErrorKind(str, Enum):
    """Error taxonomy shared by the API, dispatcher and persistence layer."""
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    STORE_TRANSIENT = "STORE_TRANSIENT"
    STORE_FATAL = "STORE_FATAL"
    PROVIDER_TRANSIENT = "PROVIDER_TRANSIENT"
    PROVIDER_EXHAUSTED = "PROVIDER_EXHAUSTED"
    CHAIN_FINALIZE = "CHAIN_FINALIZE"
    TIMEOUT = "TIMEOUT"


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TaskStatus",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUSES",
    "Priority",
    "ErrorKind",
]
