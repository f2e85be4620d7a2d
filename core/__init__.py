# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core module initialization
# PURPOSE: Export core contracts, models, and schema utilities
# CREATED: 15 SEP 2026
# ============================================================================

from core.contracts import ErrorKind, Priority, TaskStatus
from core.models import (
    MintTask,
    MintWorkItem,
    ProcessState,
    ProviderPreference,
    TaskMetrics,
)
from core.schema import PydanticToSQL

__all__ = [
    # Enums
    "TaskStatus",
    "Priority",
    "ErrorKind",
    # Models
    "MintTask",
    "MintWorkItem",
    "ProcessState",
    "ProviderPreference",
    "TaskMetrics",
    # Schema
    "PydanticToSQL",
]
