# ============================================================================
# PROVIDER PREFERENCE REGISTRY
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Service - Per-token provider choice
# PURPOSE: Record and look up the last provider + options used for a token
# CREATED: 26 SEP 2026
# ============================================================================
"""
Provider preference registry.

Every enqueue overwrites the token's row; there is no TTL. When a request
arrives without imageProvider the enqueue path falls back to this row
before the configured default.
"""

import logging
from typing import Any, Dict, Optional

from core.models import ProviderPreference, utcnow
from repositories import PersistenceAdapter

logger = logging.getLogger(__name__)


class ProviderPreferenceRegistry:
    """Thin service over the provider_preferences table."""

    def __init__(self, adapter: PersistenceAdapter):
        self.adapter = adapter

    async def set_preference(
        self,
        token_id: int,
        provider: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> ProviderPreference:
        preference = ProviderPreference(
            token_id=token_id,
            provider=provider,
            options=dict(options or {}),
            timestamp=utcnow(),
        )
        await self.adapter.upsert_provider_preference(preference)
        logger.debug(f"Preference for token {token_id}: {provider}")
        return preference

    async def get_preference(self, token_id: int) -> Optional[ProviderPreference]:
        return await self.adapter.get_provider_preference(token_id)


__all__ = ["ProviderPreferenceRegistry"]
