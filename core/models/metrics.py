# ============================================================================
# METRICS MODEL
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core model - Aggregate task counters
# PURPOSE: The task_metrics document and the deltas applied to it
# CREATED: 16 SEP 2026
# ============================================================================
"""
Task metrics.

Counters are never written wholesale by callers. Each task transition
produces a MetricsDelta that the store applies next to the task write.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models.task import utcnow

METRICS_TYPE = "task_metrics"


@dataclass(frozen=True)
class MetricsDelta:
    """Counter changes caused by one transition."""
    created: int = 0
    completed: int = 0
    failed: int = 0
    active: int = 0
    completion_ms: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not (self.created or self.completed or self.failed or self.active)


class TaskMetrics(BaseModel):
    """Payload of the task_metrics document."""
    model_config = ConfigDict(populate_by_name=True)

    created: int = 0
    completed: int = 0
    failed: int = 0
    active: int = 0
    average_completion_time: float = Field(default=0.0, alias="averageCompletionTime")

    def apply(self, delta: MetricsDelta) -> "TaskMetrics":
        """Return a copy with the delta applied (running mean in ms)."""
        completed = self.completed + delta.completed
        average = self.average_completion_time
        if delta.completed and delta.completion_ms is not None and completed > 0:
            average = (average * (completed - 1) + delta.completion_ms) / completed
        return TaskMetrics(
            created=self.created + delta.created,
            completed=completed,
            failed=self.failed + delta.failed,
            active=max(0, self.active + delta.active),
            average_completion_time=average,
        )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class MetricsRecord(BaseModel):
    """
    Row of the metrics table.

    Maps to: mint.metrics table
    """
    __sql_table__: ClassVar[str] = "metrics"
    __sql_schema__: ClassVar[str] = "mint"
    __sql_primary_key__: ClassVar[List[str]] = ["type"]
    __sql_indexes__: ClassVar[List[tuple]] = []

    type: str = Field(default=METRICS_TYPE, max_length=64)
    data: Dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "METRICS_TYPE",
    "MetricsDelta",
    "TaskMetrics",
    "MetricsRecord",
]
