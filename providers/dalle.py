# ============================================================================
# DALL-E PROVIDER
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Providers - OpenAI image generation
# PURPOSE: High-quality closed-source adapter
# CREATED: 23 SEP 2026
# ============================================================================
"""
DALL-E adapter.

Uses the openai SDK (AsyncOpenAI). SDK-level retries are disabled: a
failed call falls through to the next provider instead.
"""

from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from core.errors import ProviderError
from providers.base import Estimate, ImageProvider, ProviderTraits, one_of

MAX_PROMPT_CHARS = {"dall-e-3": 4000, "dall-e-2": 1000}


class DallEProvider(ImageProvider):
    name = "dall-e"
    traits = ProviderTraits(quality=10, speed=6, cost=8, open_source=False)
    option_rules = {
        "model": one_of("dall-e-3", "dall-e-2"),
        "quality": one_of("hd", "standard"),
        "style": one_of("vivid", "natural"),
        "size": one_of("1024x1024", "1792x1024", "1024x1792", "512x512", "256x256"),
    }
    defaults = {
        "model": "dall-e-3",
        "quality": "hd",
        "style": "vivid",
        "size": "1024x1024",
    }

    def __init__(self, api_key: Optional[str] = None, timeout: float = 120.0,
                 client: Optional[AsyncOpenAI] = None, **kwargs):
        super().__init__(api_key=api_key, timeout=timeout, **kwargs)
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
        await super().aclose()

    async def _generate(self, prompt: str, settings: Dict[str, Any], negative_prompt: Optional[str]) -> str:
        model = settings["model"]
        if negative_prompt:
            prompt = f"{prompt}. Avoid: {negative_prompt}"
        prompt = prompt[:MAX_PROMPT_CHARS.get(model, 1000)]

        request: Dict[str, Any] = {"model": model, "prompt": prompt, "n": 1, "size": settings["size"]}
        if model == "dall-e-3":
            request["quality"] = settings["quality"]
            request["style"] = settings["style"]

        try:
            response = await self.client.images.generate(**request)
        except openai.APIStatusError as e:
            raise ProviderError(
                self.name,
                f"HTTP {e.status_code}",
                status_code=e.status_code,
                transient=e.status_code >= 500 or e.status_code == 429,
            ) from e
        except openai.APIConnectionError as e:
            raise ProviderError(self.name, f"connection error: {e}", transient=True) from e

        url = response.data[0].url if response.data else None
        if not url:
            raise ProviderError(self.name, "no image URL in response", transient=False)
        return url

    def estimated(self, options: Dict[str, Any]) -> Estimate:
        settings = self.settings(options)
        cost = 0.04 if settings["model"] == "dall-e-3" else 0.02
        seconds = 15.0 if settings["quality"] == "hd" else 10.0
        return Estimate(cost=cost, time_seconds=seconds)


__all__ = ["DallEProvider"]
