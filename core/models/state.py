# ============================================================================
# PROCESS STATE MODEL
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core model - Cron resumption document
# PURPOSE: Small typed documents persisted in the state table
# CREATED: 16 SEP 2026
# ============================================================================
"""
Process state.

A single document per ``type`` (``cron`` is the only one written today)
that lets a fresh serverless invocation resume where the last one stopped.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models.task import utcnow

CRON_STATE_TYPE = "cron"


class ProcessState(BaseModel):
    """
    Payload of the ``cron`` state document.

    processed_tokens is a set semantically; duplicates are dropped on load.
    """
    model_config = ConfigDict(populate_by_name=True)

    last_processed_block: int = Field(default=0, ge=0, alias="lastProcessedBlock")
    processed_tokens: List[int] = Field(default_factory=list, alias="processedTokens")
    pending_tasks: List[str] = Field(default_factory=list, alias="pendingTasks")

    @field_validator("processed_tokens")
    @classmethod
    def _dedupe_tokens(cls, value: List[int]) -> List[int]:
        return sorted(set(value))

    def advance_block(self, block: int) -> None:
        """lastProcessedBlock never moves backwards."""
        self.last_processed_block = max(self.last_processed_block, block)

    def mark_processed(self, token_id: int) -> None:
        if token_id not in self.processed_tokens:
            self.processed_tokens = sorted(set(self.processed_tokens) | {token_id})

    def is_processed(self, token_id: int) -> bool:
        return token_id in self.processed_tokens

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class StateRecord(BaseModel):
    """
    Row of the state table.

    Maps to: mint.state table
    """
    __sql_table__: ClassVar[str] = "state"
    __sql_schema__: ClassVar[str] = "mint"
    __sql_primary_key__: ClassVar[List[str]] = ["type"]
    __sql_indexes__: ClassVar[List[tuple]] = []

    type: str = Field(..., max_length=64)
    state_data: Dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "CRON_STATE_TYPE",
    "ProcessState",
    "StateRecord",
]
