# ============================================================================
# HUGGING FACE PROVIDER
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Providers - Hugging Face inference API
# PURPOSE: Open-weights adapter
# CREATED: 24 SEP 2026
# ============================================================================
"""
Hugging Face adapter.

The inference API returns raw image bytes. A cold model answers 503 while
loading; x-wait-for-model makes the API hold the request instead.
"""

import base64
from typing import Any, Dict, Optional

from core.errors import ProviderError
from providers.base import Estimate, ImageProvider, ProviderTraits, int_between, matches, number_between

HUGGINGFACE_API_URL = "https://api-inference.huggingface.co"


class HuggingFaceProvider(ImageProvider):
    name = "huggingface"
    traits = ProviderTraits(quality=7, speed=9, cost=4, open_source=True)
    option_rules = {
        "model": matches(r"[A-Za-z0-9][\w.\-]*/[\w.\-]+"),
        "guidance_scale": number_between(0, 20),
        "num_inference_steps": int_between(1, 100),
    }
    defaults = {
        "model": "black-forest-labs/FLUX.1-dev",
        "guidance_scale": 3.5,
        "num_inference_steps": 28,
    }

    def __init__(self, api_key: Optional[str] = None, base_url: str = HUGGINGFACE_API_URL, **kwargs):
        super().__init__(api_key=api_key, **kwargs)
        self.base_url = base_url.rstrip("/")

    async def _generate(self, prompt: str, settings: Dict[str, Any], negative_prompt: Optional[str]) -> str:
        parameters: Dict[str, Any] = {
            "guidance_scale": settings["guidance_scale"],
            "num_inference_steps": settings["num_inference_steps"],
        }
        if negative_prompt:
            parameters["negative_prompt"] = negative_prompt

        response = await self.http.post(
            f"{self.base_url}/models/{settings['model']}",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "x-wait-for-model": "true",
            },
            json={"inputs": prompt, "parameters": parameters},
        )
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            raise ProviderError(self.name, f"unexpected content type {content_type or 'none'}", transient=False)
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{content_type.split(';')[0]};base64,{encoded}"

    def estimated(self, options: Dict[str, Any]) -> Estimate:
        steps = self.settings(options)["num_inference_steps"]
        return Estimate(cost=0.01, time_seconds=max(3.0, steps * 0.15))


__all__ = ["HuggingFaceProvider"]
