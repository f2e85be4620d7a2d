# ============================================================================
# MINT WORK ITEM
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core model - In-memory queue entry
# PURPOSE: What the dispatcher needs to run one task
# CREATED: 17 SEP 2026
# ============================================================================
"""
Mint work item.

Never persisted. Items are rebuilt from their tasks with from_task() when
the queue is reseeded.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import Priority
from core.models.task import MintTask, utcnow


class MintWorkItem(BaseModel):
    """One queued unit of dispatch work."""
    model_config = ConfigDict(frozen=True)

    task_id: str
    token_id: int = Field(ge=0)
    buyer: str = "manual-request"
    breed: str = "Tabby"
    image_provider: str
    prompt_extras: Optional[str] = None
    negative_prompt: Optional[str] = None
    provider_options: Dict[str, Any] = Field(default_factory=dict)
    force_process: bool = False
    is_regeneration: bool = False
    priority: Priority = Priority.NORMAL
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_task(cls, task: MintTask) -> "MintWorkItem":
        return cls(
            task_id=task.task_id,
            token_id=task.token_id,
            buyer=task.owner or "manual-request",
            breed=task.breed,
            image_provider=task.provider or "dall-e",
            prompt_extras=task.prompt_extras,
            negative_prompt=task.negative_prompt,
            provider_options=dict(task.provider_options),
            is_regeneration=task.is_regeneration,
            priority=task.priority,
            created_at=task.created_at,
        )


__all__ = ["MintWorkItem"]
