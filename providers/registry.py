# ============================================================================
# PROVIDER REGISTRY
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Providers - Named adapters and fallback ordering
# PURPOSE: Resolve provider names and rank fallbacks
# CREATED: 24 SEP 2026
# ============================================================================
"""
Provider Registry

Holds adapters in declaration order and computes fallback order.

Fallback scoring (higher first, ties keep declaration order):
    quality * 0.4          if preferQuality (default on)
    speed * 0.3            if preferFast
    (10 - cost) * 0.2      always
    0.1                    if preferOpenSource and the provider is open source

The primary provider is always first.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

import httpx

from core.config import ProviderConfig
from providers.base import ImageProvider, ProviderTraits
from providers.dalle import DallEProvider
from providers.huggingface import HuggingFaceProvider
from providers.stability import StabilityProvider

logger = logging.getLogger(__name__)


def fallback_score(
    traits: ProviderTraits,
    prefer_quality: bool = True,
    prefer_fast: bool = False,
    prefer_open_source: bool = False,
) -> float:
    score = 0.0
    if prefer_quality:
        score += traits.quality * 0.4
    if prefer_fast:
        score += traits.speed * 0.3
    score += (10 - traits.cost) * 0.2
    if prefer_open_source and traits.open_source:
        score += 0.1
    # float noise must not break declaration-order ties
    return round(score, 6)


class ProviderRegistry:
    """Ordered collection of provider adapters."""

    def __init__(self, providers: Iterable[ImageProvider]):
        self._providers: Dict[str, ImageProvider] = {}
        for provider in providers:
            if provider.name in self._providers:
                raise ValueError(f"Provider already registered: {provider.name}")
            self._providers[provider.name] = provider

    @classmethod
    def from_config(
        cls,
        config: ProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ProviderRegistry":
        timeout = config.request_timeout_seconds
        return cls([
            DallEProvider(api_key=config.openai_api_key, timeout=timeout),
            StabilityProvider(api_key=config.stability_api_key, timeout=timeout, http_client=http_client),
            HuggingFaceProvider(api_key=config.huggingface_api_key, timeout=timeout, http_client=http_client),
        ])

    @property
    def names(self) -> List[str]:
        return list(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __iter__(self) -> Iterator[ImageProvider]:
        return iter(self._providers.values())

    def get(self, name: str) -> ImageProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise KeyError(f"Unknown provider: {name}") from None

    def fallback_order(self, primary: str, options: Optional[Dict[str, Any]] = None) -> List[str]:
        """Primary first, then the rest by descending score."""
        options = options or {}
        flags = {
            "prefer_quality": options.get("preferQuality", True) is not False,
            "prefer_fast": options.get("preferFast") is True,
            "prefer_open_source": options.get("preferOpenSource") is True,
        }
        others = [p for p in self._providers.values() if p.name != primary]
        # sorted() is stable, so equal scores keep declaration order
        ranked = sorted(others, key=lambda p: -fallback_score(p.traits, **flags))
        order = [p.name for p in ranked]
        return [primary, *order] if primary in self._providers else order

    def capabilities(self) -> Dict[str, Dict[str, Any]]:
        """Public description of each provider (configured flag, defaults, estimate)."""
        result = {}
        for provider in self._providers.values():
            estimate = provider.estimated({})
            result[provider.name] = {
                "configured": provider.configured,
                "openSource": provider.traits.open_source,
                "defaults": dict(provider.defaults),
                "options": sorted(provider.allowed_options()),
                "estimatedCost": estimate.cost,
                "estimatedSeconds": estimate.time_seconds,
            }
        return result

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()


__all__ = ["ProviderRegistry", "fallback_score"]
