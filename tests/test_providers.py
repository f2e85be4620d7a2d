# ============================================================================
# PROVIDER ADAPTER TESTS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Tests - Provider adapters, option allow-lists, fallback order
# PURPOSE: Verify adapters against mocked HTTP without network access
# CREATED: 24 SEP 2026
# ============================================================================
"""
Provider Adapter Tests

Covers:
1. Stability / Hugging Face over httpx.MockTransport
2. DALL-E over a mocked AsyncOpenAI client
3. HTTP failures translated into ProviderError (transient vs permanent)
4. validate_options / filter_options allow-lists
5. Fallback order and scoring
6. Prompt construction
7. Pinata artifact store over httpx.MockTransport

Run with:
    pytest tests/test_providers.py -v
"""

import asyncio
import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from core.config import ArtifactConfig, ProviderConfig
from core.errors import ArtifactStoreError, ProviderError, ValidationError
from infrastructure.ipfs import PinataArtifactStore, build_metadata, decode_data_url
from infrastructure.traits import ACCESSORIES, WEAPONS, derive_traits, pick_weighted, rarity_tier
from providers import (
    DallEProvider,
    HuggingFaceProvider,
    ProviderRegistry,
    StabilityProvider,
    build_prompt,
    fallback_score,
    negative_prompt_for,
)
from providers.base import ProviderTraits


# ============================================================================
# FIXTURES
# ============================================================================

def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _openai_client(generate: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.images.generate = generate
    return client


def _registry() -> ProviderRegistry:
    return ProviderRegistry.from_config(ProviderConfig(
        openai_api_key="sk-test-000000000000",
        stability_api_key="sk-stab-000000000000",
        huggingface_api_key="hf_test_000000000000",
    ))


# ============================================================================
# STABILITY
# ============================================================================

class TestStability:

    def test_generate_returns_data_url(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"artifacts": [{"base64": "aGVsbG8=", "finishReason": "SUCCESS"}]})

        provider = StabilityProvider(api_key="sk-stab", http_client=_client(handler))
        result = asyncio.run(provider.submit("a ninja cat", {"steps": 20, "foo": "bar"}, "blurry"))

        assert result.image_url == "data:image/png;base64,aGVsbG8="
        assert result.provider == "stability"
        assert result.model == "stable-diffusion-xl-1024-v1-0"
        assert seen["url"].endswith("/v1/generation/stable-diffusion-xl-1024-v1-0/text-to-image")
        assert seen["auth"] == "Bearer sk-stab"
        assert seen["body"]["steps"] == 20
        assert seen["body"]["style_preset"] == "enhance"
        assert seen["body"]["width"] == 1024
        assert {"text": "blurry", "weight": -1} in seen["body"]["text_prompts"]

    def test_503_is_transient(self):
        provider = StabilityProvider(api_key="k", http_client=_client(lambda r: httpx.Response(503)))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.submit("p", {}))
        assert exc_info.value.status_code == 503
        assert exc_info.value.transient is True

    def test_400_is_permanent(self):
        provider = StabilityProvider(api_key="k", http_client=_client(lambda r: httpx.Response(400)))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.submit("p", {}))
        assert exc_info.value.transient is False

    def test_content_filtered(self):
        body = {"artifacts": [{"base64": "aGVsbG8=", "finishReason": "CONTENT_FILTERED"}]}
        provider = StabilityProvider(api_key="k", http_client=_client(lambda r: httpx.Response(200, json=body)))

        with pytest.raises(ProviderError, match="content filter"):
            asyncio.run(provider.submit("p", {}))

    def test_unconfigured_provider_refuses(self):
        with pytest.raises(ProviderError, match="not configured"):
            asyncio.run(StabilityProvider().submit("p", {}))


# ============================================================================
# HUGGING FACE
# ============================================================================

class TestHuggingFace:

    def test_image_bytes_become_data_url(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

        provider = HuggingFaceProvider(api_key="hf_x", http_client=_client(handler))
        result = asyncio.run(provider.submit("p", {"num_inference_steps": 10}, "blurry"))

        assert result.image_url == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
        assert seen["path"] == "/models/black-forest-labs/FLUX.1-dev"
        assert seen["body"]["parameters"]["num_inference_steps"] == 10
        assert seen["body"]["parameters"]["negative_prompt"] == "blurry"

    def test_json_error_body_rejected(self):
        provider = HuggingFaceProvider(
            api_key="hf_x",
            http_client=_client(lambda r: httpx.Response(200, json={"error": "loading"})),
        )
        with pytest.raises(ProviderError, match="content type"):
            asyncio.run(provider.submit("p", {}))

    def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = HuggingFaceProvider(api_key="hf_x", http_client=_client(handler))
        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.submit("p", {}))
        assert exc_info.value.transient is True


# ============================================================================
# DALL-E
# ============================================================================

class TestDallE:

    def test_generate_passes_quality_and_style(self):
        generate = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(url="https://img.example/x.png")]))
        provider = DallEProvider(client=_openai_client(generate))

        result = asyncio.run(provider.submit("a cat", {"quality": "standard"}, "text"))

        assert result.image_url == "https://img.example/x.png"
        kwargs = generate.call_args.kwargs
        assert kwargs["model"] == "dall-e-3"
        assert kwargs["quality"] == "standard"
        assert kwargs["style"] == "vivid"
        assert "Avoid: text" in kwargs["prompt"]

    def test_dalle2_omits_dalle3_fields(self):
        generate = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(url="https://img.example/y.png")]))
        provider = DallEProvider(client=_openai_client(generate))

        asyncio.run(provider.submit("x" * 3000, {"model": "dall-e-2", "size": "512x512"}))

        kwargs = generate.call_args.kwargs
        assert "quality" not in kwargs
        assert len(kwargs["prompt"]) == 1000

    def test_api_status_error_translated(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/images/generations")
        error = openai.InternalServerError(
            "unavailable", response=httpx.Response(503, request=request), body=None,
        )
        provider = DallEProvider(client=_openai_client(AsyncMock(side_effect=error)))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.submit("p", {}))
        assert exc_info.value.status_code == 503
        assert exc_info.value.transient is True

    def test_empty_response(self):
        provider = DallEProvider(client=_openai_client(AsyncMock(return_value=SimpleNamespace(data=[]))))
        with pytest.raises(ProviderError, match="no image URL"):
            asyncio.run(provider.submit("p", {}))

    def test_estimates(self):
        assert DallEProvider().estimated({}).cost == 0.04
        est = DallEProvider().estimated({"model": "dall-e-2", "quality": "standard"})
        assert (est.cost, est.time_seconds) == (0.02, 10.0)


# ============================================================================
# OPTIONS
# ============================================================================

class TestOptions:

    def test_validate_strips_unknown_keys(self):
        cleaned = StabilityProvider.validate_options({"steps": 20, "mystery": 1, "preferFast": True})
        assert cleaned == {"steps": 20, "preferFast": True}

    @pytest.mark.parametrize("options", [
        {"steps": 5},
        {"steps": True},
        {"style_preset": "watercolor"},
        {"cfg_scale": 99},
    ])
    def test_validate_rejects_bad_values(self, options):
        with pytest.raises(ValidationError) as exc_info:
            StabilityProvider.validate_options(options)
        assert exc_info.value.field == "providerOptions"

    def test_filter_drops_invalid_for_fallback(self):
        options = {"quality": "hd", "steps": 20, "model": "dall-e-3", "preferQuality": True}
        assert StabilityProvider.filter_options(options) == {"steps": 20, "preferQuality": True}
        assert DallEProvider.filter_options(options) == {"quality": "hd", "model": "dall-e-3", "preferQuality": True}

    def test_huggingface_model_pattern(self):
        assert HuggingFaceProvider.validate_options({"model": "stabilityai/sdxl-turbo"})
        with pytest.raises(ValidationError):
            HuggingFaceProvider.validate_options({"model": "../../etc/passwd"})


# ============================================================================
# REGISTRY / FALLBACK
# ============================================================================

class TestRegistry:

    def test_default_fallback_order(self):
        assert _registry().fallback_order("dall-e") == ["dall-e", "stability", "huggingface"]

    def test_primary_always_first(self):
        assert _registry().fallback_order("huggingface")[0] == "huggingface"
        assert _registry().fallback_order("stability") == ["stability", "dall-e", "huggingface"]

    def test_prefer_fast_promotes_huggingface(self):
        order = _registry().fallback_order("dall-e", {"preferFast": True})
        assert order == ["dall-e", "huggingface", "stability"]

    def test_prefer_open_source_without_quality(self):
        order = _registry().fallback_order("dall-e", {"preferQuality": False, "preferOpenSource": True})
        assert order[1] == "huggingface"

    def test_score(self):
        traits = ProviderTraits(quality=10, speed=6, cost=8)
        assert fallback_score(traits) == pytest.approx(4.4)
        assert fallback_score(traits, prefer_quality=False, prefer_fast=True) == pytest.approx(2.2)

    def test_unknown_provider(self):
        with pytest.raises(KeyError):
            _registry().get("midjourney")

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError):
            ProviderRegistry([StabilityProvider(), StabilityProvider()])

    def test_capabilities(self):
        caps = _registry().capabilities()
        assert set(caps) == {"dall-e", "stability", "huggingface"}
        assert caps["huggingface"]["openSource"] is True
        assert caps["stability"]["configured"] is True
        assert "preferQuality" in caps["dall-e"]["options"]


# ============================================================================
# PROMPT
# ============================================================================

class TestPrompt:

    def test_prompt_is_deterministic(self):
        assert build_prompt("Tabby", 42) == build_prompt("Tabby", 42)
        assert "Tabby" in build_prompt("Tabby", 42)
        assert "#42" in build_prompt("Tabby", 42)

    def test_extras_appended(self):
        assert "wearing a red scarf" in build_prompt("Bengal", 1, "wearing a red scarf")

    def test_negative_prompt_extends_default(self):
        assert negative_prompt_for(None).startswith("text, letters")
        assert negative_prompt_for("dogs").endswith(", dogs")


# ============================================================================
# ARTIFACT STORE
# ============================================================================

class TestArtifactStore:

    def test_pins_data_url_image_and_metadata(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if request.url.path.endswith("pinFileToIPFS"):
                return httpx.Response(200, json={"IpfsHash": "bafyimage"})
            body = json.loads(request.content)
            assert body["pinataContent"]["image"] == "ipfs://bafyimage"
            return httpx.Response(200, json={"IpfsHash": "bafymeta"})

        store = PinataArtifactStore(ArtifactConfig(pinata_jwt="eyJ.test.jwt"), http_client=_client(handler))

        async def run():
            image_uri = await store.store_image("data:image/png;base64,aGVsbG8=", "token-1")
            metadata = build_metadata(1, "Tabby", image_uri, "dall-e")
            return image_uri, await store.store_metadata(metadata, "token-1-metadata")

        image_uri, token_uri = asyncio.run(run())
        assert image_uri == "ipfs://bafyimage"
        assert token_uri == "ipfs://bafymeta"
        assert calls == ["/pinning/pinFileToIPFS", "/pinning/pinJSONToIPFS"]

    def test_pin_failure_raises_artifact_error(self):
        store = PinataArtifactStore(
            ArtifactConfig(pinata_jwt="jwt"),
            http_client=_client(lambda r: httpx.Response(500)),
        )
        with pytest.raises(ArtifactStoreError):
            asyncio.run(store.store_metadata({"name": "x"}, "x"))

    def test_missing_jwt(self):
        store = PinataArtifactStore(ArtifactConfig(), http_client=_client(lambda r: httpx.Response(200)))
        with pytest.raises(ArtifactStoreError, match="PINATA_JWT"):
            asyncio.run(store.store_metadata({"name": "x"}, "x"))

    def test_decode_data_url(self):
        content, mime = decode_data_url("data:image/webp;base64,aGVsbG8=")
        assert (content, mime) == (b"hello", "image/webp")
        with pytest.raises(ArtifactStoreError):
            decode_data_url("data:image/png;base64,@@@")

    def test_metadata_shape(self):
        metadata = build_metadata(42, "Tabby", "ipfs://img", "stability")
        assert metadata["name"] == "Pixel Ninja Tabby #42"
        assert {"trait_type": "Image Provider", "value": "stability"} in metadata["attributes"]

    def test_metadata_carries_derived_traits(self):
        metadata = build_metadata(42, "Tabby", "ipfs://img", "stability")
        types = [a["trait_type"] for a in metadata["attributes"]]
        assert types[:5] == ["Breed", "Weapon", "Stance", "Element", "Rank"]
        for stat in ("Agility", "Stealth", "Power", "Intelligence"):
            assert stat in types
        assert metadata["rarity"]["tier"] in {"Standard", "Common", "Uncommon", "Rare", "Epic"}


# ============================================================================
# TRAITS
# ============================================================================

class TestTraits:

    def test_same_token_same_traits(self):
        assert derive_traits(42, "Tabby") == derive_traits(42, "Tabby")

    def test_rolls_vary_across_tokens(self):
        rolls = {derive_traits(token_id, "Bombay").traits["Weapon"] for token_id in range(50)}
        assert len(rolls) > 1
        assert rolls <= set(WEAPONS)

    def test_weighting_favors_common_entries(self):
        picks = [pick_weighted(WEAPONS, token_id, "Tabby", "weapon")[1] for token_id in range(400)]
        assert picks.count("Common") > picks.count("Legendary")

    def test_accessory_is_optional(self):
        found = [derive_traits(token_id, "Tabby").traits.get("Accessory") for token_id in range(200)]
        assert None in found
        assert any(a in ACCESSORIES for a in found)

    def test_stats_include_breed_bonus(self):
        traits = derive_traits(7, "Maine Coon")
        # base 5, breed +3, weapon/element bonuses and a 0-3 roll on top
        assert traits.stats["power"] >= 8
        assert all(value >= 4 for value in traits.stats.values())

    @pytest.mark.parametrize("score,tier", [(25, "Standard"), (45, "Common"), (65, "Uncommon"), (80, "Rare"), (90, "Epic")])
    def test_rarity_tier(self, score, tier):
        assert rarity_tier(score) == tier
