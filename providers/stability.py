# ============================================================================
# STABILITY PROVIDER
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Providers - Stability AI text-to-image
# PURPOSE: Style-preset-driven adapter
# CREATED: 23 SEP 2026
# ============================================================================
"""
Stability AI adapter.

The v1 generation endpoint answers with base64 artifacts; the first one
is returned as a data: URL.
"""

from typing import Any, Dict, Optional

from core.errors import ProviderError
from providers.base import Estimate, ImageProvider, ProviderTraits, int_between, number_between, one_of

STABILITY_API_URL = "https://api.stability.ai"

STYLE_PRESETS = (
    "enhance", "anime", "photographic", "digital-art", "comic-book", "fantasy-art",
    "line-art", "analog-film", "neon-punk", "isometric", "pixel-art", "3d-model",
)

# Native resolution per engine
DIMENSIONS = {
    "stable-diffusion-xl-1024-v1-0": 1024,
    "stable-diffusion-v1-6": 512,
}


class StabilityProvider(ImageProvider):
    name = "stability"
    traits = ProviderTraits(quality=8, speed=8, cost=6, open_source=False)
    option_rules = {
        "model": one_of(*DIMENSIONS),
        "style_preset": one_of(*STYLE_PRESETS),
        "steps": int_between(10, 50),
        "cfg_scale": number_between(0, 35),
    }
    defaults = {
        "model": "stable-diffusion-xl-1024-v1-0",
        "style_preset": "enhance",
        "steps": 30,
        "cfg_scale": 7,
    }

    def __init__(self, api_key: Optional[str] = None, base_url: str = STABILITY_API_URL, **kwargs):
        super().__init__(api_key=api_key, **kwargs)
        self.base_url = base_url.rstrip("/")

    async def _generate(self, prompt: str, settings: Dict[str, Any], negative_prompt: Optional[str]) -> str:
        model = settings["model"]
        side = DIMENSIONS[model]
        text_prompts = [{"text": prompt, "weight": 1}]
        if negative_prompt:
            text_prompts.append({"text": negative_prompt, "weight": -1})

        response = await self.http.post(
            f"{self.base_url}/v1/generation/{model}/text-to-image",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            },
            json={
                "text_prompts": text_prompts,
                "cfg_scale": settings["cfg_scale"],
                "steps": settings["steps"],
                "width": side,
                "height": side,
                "samples": 1,
                "style_preset": settings["style_preset"],
            },
        )
        response.raise_for_status()

        artifacts = response.json().get("artifacts") or []
        if not artifacts or not artifacts[0].get("base64"):
            raise ProviderError(self.name, "no artifacts in response", transient=False)
        if artifacts[0].get("finishReason") == "CONTENT_FILTERED":
            raise ProviderError(self.name, "image rejected by content filter", transient=False)
        return f"data:image/png;base64,{artifacts[0]['base64']}"

    def estimated(self, options: Dict[str, Any]) -> Estimate:
        steps = self.settings(options)["steps"]
        return Estimate(cost=0.02, time_seconds=max(5.0, steps * 0.2))


__all__ = ["StabilityProvider", "STYLE_PRESETS"]
