# ============================================================================
# PROVIDERS MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Provider adapters
# PURPOSE: Image-generation adapters behind one interface
# CREATED: 22 SEP 2026
# ============================================================================

from providers.base import (
    Estimate,
    GenerationResult,
    ImageProvider,
    PREFERENCE_FLAGS,
    ProviderTraits,
)
from providers.dalle import DallEProvider
from providers.huggingface import HuggingFaceProvider
from providers.prompt import build_prompt, negative_prompt_for
from providers.registry import ProviderRegistry, fallback_score
from providers.stability import StabilityProvider

__all__ = [
    "Estimate",
    "GenerationResult",
    "ImageProvider",
    "PREFERENCE_FLAGS",
    "ProviderTraits",
    "DallEProvider",
    "StabilityProvider",
    "HuggingFaceProvider",
    "ProviderRegistry",
    "fallback_score",
    "build_prompt",
    "negative_prompt_for",
]
