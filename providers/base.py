# ============================================================================
# PROVIDER ADAPTER BASE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Providers - Uniform contract over image-generation services
# PURPOSE: Option allow-lists, latency measurement, error translation
# CREATED: 22 SEP 2026
# ============================================================================
"""
Provider Adapter Base

Every adapter publishes:
    name          - registry key ("dall-e", "stability", ...)
    traits        - quality / speed / cost / open_source, for fallback scoring
    option_rules  - allow-list {key: predicate}
    defaults      - settings used when an option is absent

and implements _generate() and estimated(). submit() wraps _generate()
with timing and translates transport errors into ProviderError, so the
dispatcher only ever sees one exception type from a provider.

Option handling:
    validate_options()  enqueue time: unknown keys stripped, invalid
                        values raise ValidationError
    filter_options()    fallback time: unknown and invalid keys dropped
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Optional

import httpx

from core.errors import ProviderError, ValidationError

logger = logging.getLogger(__name__)

OptionRule = Callable[[Any], bool]


# ============================================================================
# OPTION PREDICATES
# ============================================================================

def one_of(*values: Any) -> OptionRule:
    allowed = frozenset(values)
    return lambda v: isinstance(v, str) and v in allowed


def int_between(low: int, high: int) -> OptionRule:
    return lambda v: isinstance(v, int) and not isinstance(v, bool) and low <= v <= high


def number_between(low: float, high: float) -> OptionRule:
    return lambda v: isinstance(v, (int, float)) and not isinstance(v, bool) and low <= v <= high


def matches(pattern: str, max_length: int = 200) -> OptionRule:
    compiled = re.compile(pattern)
    return lambda v: isinstance(v, str) and len(v) <= max_length and bool(compiled.fullmatch(v))


def is_bool(v: Any) -> bool:
    return isinstance(v, bool)


# Fallback weighting flags, accepted by every provider
PREFERENCE_FLAGS: Dict[str, OptionRule] = {
    "preferQuality": is_bool,
    "preferFast": is_bool,
    "preferOpenSource": is_bool,
}


# ============================================================================
# VALUE TYPES
# ============================================================================

@dataclass(frozen=True)
class ProviderTraits:
    """Relative 0-10 ratings used by the fallback scorer."""
    quality: int
    speed: int
    cost: int
    open_source: bool = False


@dataclass(frozen=True)
class GenerationResult:
    """
    A generated artifact.

    image_url is either an https URL returned by the provider or a
    data: URL wrapping inline image bytes.
    """
    image_url: str
    cost_estimate: float
    latency_ms: int
    provider: str
    model: Optional[str] = None


@dataclass(frozen=True)
class Estimate:
    cost: float
    time_seconds: float


# ============================================================================
# ADAPTER BASE
# ============================================================================

class ImageProvider(ABC):
    """Base class for provider adapters."""

    name: ClassVar[str]
    traits: ClassVar[ProviderTraits]
    option_rules: ClassVar[Dict[str, OptionRule]] = {}
    defaults: ClassVar[Dict[str, Any]] = {}

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # =========================================================================
    # OPTIONS
    # =========================================================================

    @classmethod
    def allowed_options(cls) -> Dict[str, OptionRule]:
        return {**PREFERENCE_FLAGS, **cls.option_rules}

    @classmethod
    def validate_options(cls, options: Dict[str, Any]) -> Dict[str, Any]:
        """Strip unknown keys; raise ValidationError on an invalid known value."""
        rules = cls.allowed_options()
        cleaned: Dict[str, Any] = {}
        for key, value in options.items():
            rule = rules.get(key)
            if rule is None:
                continue
            if not rule(value):
                raise ValidationError("providerOptions", f"{key} is not valid for {cls.name}")
            cleaned[key] = value
        return cleaned

    @classmethod
    def filter_options(cls, options: Dict[str, Any]) -> Dict[str, Any]:
        """Keep only keys this provider knows, with values it accepts."""
        rules = cls.allowed_options()
        return {k: v for k, v in options.items() if k in rules and rules[k](v)}

    def supports(self, options: Dict[str, Any]) -> bool:
        """Configured, and every known option value is acceptable."""
        if not self.configured:
            return False
        rules = self.allowed_options()
        return all(rules[k](v) for k, v in options.items() if k in rules)

    @classmethod
    def settings(cls, options: Dict[str, Any]) -> Dict[str, Any]:
        """Defaults overlaid with the provider's own options (flags excluded)."""
        own = {k: v for k, v in cls.filter_options(options).items() if k not in PREFERENCE_FLAGS}
        return {**cls.defaults, **own}

    # =========================================================================
    # GENERATION
    # =========================================================================

    @abstractmethod
    async def _generate(self, prompt: str, settings: Dict[str, Any], negative_prompt: Optional[str]) -> str:
        """Call the provider; return an image URL or data: URL."""

    @abstractmethod
    def estimated(self, options: Dict[str, Any]) -> Estimate:
        """Expected cost (USD) and wall time for one image."""

    async def submit(
        self,
        prompt: str,
        options: Dict[str, Any],
        negative_prompt: Optional[str] = None,
    ) -> GenerationResult:
        """Generate one image. Every failure surfaces as ProviderError."""
        if not self.configured:
            raise ProviderError(self.name, "provider not configured", transient=False)

        settings = self.settings(options)
        started = time.monotonic()
        try:
            image_url = await self._generate(prompt, settings, negative_prompt)
        except ProviderError:
            raise
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ProviderError(
                self.name,
                f"HTTP {status}",
                status_code=status,
                transient=status >= 500 or status == 429,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"{type(e).__name__}: {e}", transient=True) from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError(self.name, f"malformed response: {e}", transient=False) from e

        latency_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"{self.name} generated image in {latency_ms}ms")
        return GenerationResult(
            image_url=image_url,
            cost_estimate=self.estimated(options).cost,
            latency_ms=latency_ms,
            provider=self.name,
            model=settings.get("model"),
        )


__all__ = [
    "OptionRule",
    "one_of",
    "int_between",
    "number_between",
    "matches",
    "is_bool",
    "PREFERENCE_FLAGS",
    "ProviderTraits",
    "GenerationResult",
    "Estimate",
    "ImageProvider",
]
