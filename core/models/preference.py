# ============================================================================
# PROVIDER PREFERENCE MODEL
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core model - Last provider choice per token
# PURPOSE: Row of the provider_preferences table
# CREATED: 16 SEP 2026
# ============================================================================
"""
Provider preference.

Overwritten on every enqueue; outlives the tasks it came from so a retry
inherits the user's last choice.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List

from pydantic import BaseModel, Field

from core.models.task import utcnow


class ProviderPreference(BaseModel):
    """
    Maps to: mint.provider_preferences table
    """
    __sql_table__: ClassVar[str] = "provider_preferences"
    __sql_schema__: ClassVar[str] = "mint"
    __sql_primary_key__: ClassVar[List[str]] = ["token_id"]
    __sql_indexes__: ClassVar[List[tuple]] = []

    token_id: int = Field(..., ge=0)
    provider: str = Field(..., max_length=32)
    options: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


__all__ = ["ProviderPreference"]
