# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# CREATED: 15 SEP 2026
# ============================================================================
"""
Models Module - Central Export Point

Table models define SQL metadata via __sql_* ClassVar attributes for DDL
generation (see core.schema.PydanticToSQL).
"""

from core.models.task import (
    MAX_ERROR_MESSAGE_CHARS,
    MAX_MESSAGE_CHARS,
    HistoryEntry,
    TaskResultData,
    TaskError,
    MintTask,
    generate_task_id,
    utcnow,
)
from core.models.commands import (
    DispatchCmd,
    ProgressCmd,
    CompleteCmd,
    FailCmd,
    CancelCmd,
    TimeoutCmd,
    TaskCommand,
)
from core.models.state import CRON_STATE_TYPE, ProcessState, StateRecord
from core.models.metrics import METRICS_TYPE, MetricsDelta, TaskMetrics, MetricsRecord
from core.models.preference import ProviderPreference
from core.models.work_item import MintWorkItem

__all__ = [
    # Task
    "MAX_ERROR_MESSAGE_CHARS",
    "MAX_MESSAGE_CHARS",
    "HistoryEntry",
    "TaskResultData",
    "TaskError",
    "MintTask",
    "generate_task_id",
    "utcnow",
    # Commands
    "DispatchCmd",
    "ProgressCmd",
    "CompleteCmd",
    "FailCmd",
    "CancelCmd",
    "TimeoutCmd",
    "TaskCommand",
    # State / metrics / preferences
    "CRON_STATE_TYPE",
    "ProcessState",
    "StateRecord",
    "METRICS_TYPE",
    "MetricsDelta",
    "TaskMetrics",
    "MetricsRecord",
    "ProviderPreference",
    # Queue
    "MintWorkItem",
]
