# ============================================================================
# REQUEST VALIDATION TESTS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Tests - Enqueue-path input checks
# PURPOSE: Verify every /process field rule
# CREATED: 26 SEP 2026
# ============================================================================
"""
Request Validation Tests

Run with:
    pytest tests/test_validation.py -v
"""

import json

import pytest

from core.contracts import Priority
from core.errors import ValidationError
from services.validation import (
    MAX_OPTIONS_BYTES,
    MAX_TEXT_CHARS,
    parse_flag,
    parse_process_request,
    parse_provider_options,
    sanitize_text,
    validate_breed,
    validate_priority,
    validate_provider,
    validate_task_id,
    validate_timeout,
    validate_token_id,
)

PROVIDERS = ["dall-e", "stability", "huggingface"]


class TestTokenId:

    @pytest.mark.parametrize("raw,expected", [("0", 0), ("42", 42), (" 7 ", 7), (1000, 1000)])
    def test_valid(self, raw, expected):
        assert validate_token_id(raw, 1000) == expected

    @pytest.mark.parametrize("raw", ["-1", "abc", "1.5", "", None, "1e3", "\u00b2", "\u0663"])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            validate_token_id(raw, 1000)
        assert exc_info.value.field == "tokenId"

    def test_above_contract_max(self):
        with pytest.raises(ValidationError, match="<= 1000"):
            validate_token_id("1001", 1000)


class TestFields:

    def test_breed_default_and_case_insensitive(self):
        assert validate_breed(None) == "Tabby"
        assert validate_breed("maine coon") == "Maine Coon"

    def test_unknown_breed(self):
        with pytest.raises(ValidationError):
            validate_breed("Dragon")

    def test_provider(self):
        assert validate_provider(None, PROVIDERS) is None
        assert validate_provider("Stability", PROVIDERS) == "stability"
        with pytest.raises(ValidationError) as exc_info:
            validate_provider("midjourney", PROVIDERS)
        assert exc_info.value.field == "imageProvider"

    def test_text_is_sanitized(self):
        assert sanitize_text("a <b>cat</b>\x00\x07", "promptExtras") == "a &lt;b&gt;cat&lt;/b&gt;"
        assert sanitize_text("\x01\x02", "promptExtras") is None
        assert sanitize_text(None, "promptExtras") is None

    def test_text_length_limit(self):
        assert sanitize_text("x" * MAX_TEXT_CHARS, "negativePrompt")
        with pytest.raises(ValidationError) as exc_info:
            sanitize_text("x" * (MAX_TEXT_CHARS + 1), "negativePrompt")
        assert exc_info.value.field == "negativePrompt"

    def test_text_length_counts_escaped_form(self):
        assert sanitize_text("<" * (MAX_TEXT_CHARS // 4), "promptExtras") == "&lt;" * (MAX_TEXT_CHARS // 4)
        with pytest.raises(ValidationError) as exc_info:
            sanitize_text("<" * 600, "promptExtras")
        assert exc_info.value.field == "promptExtras"

    def test_provider_options(self):
        assert parse_provider_options(None) is None
        assert parse_provider_options("  ") is None
        assert parse_provider_options('{"steps": 20}') == {"steps": 20}

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"text"'])
    def test_provider_options_must_be_object(self, raw):
        with pytest.raises(ValidationError):
            parse_provider_options(raw)

    def test_provider_options_size_limit(self):
        raw = json.dumps({"pad": "x" * MAX_OPTIONS_BYTES})
        with pytest.raises(ValidationError, match="bytes"):
            parse_provider_options(raw)

    def test_flags(self):
        assert parse_flag(None, "force") is False
        assert parse_flag("true", "force") is True
        assert parse_flag("0", "force") is False
        with pytest.raises(ValidationError):
            parse_flag("maybe", "force")

    def test_timeout(self):
        assert validate_timeout(None) is None
        assert validate_timeout("0") == 0
        assert validate_timeout("500ms") == 500
        with pytest.raises(ValidationError):
            validate_timeout("-5")
        with pytest.raises(ValidationError):
            validate_timeout("99999999")
        with pytest.raises(ValidationError):
            validate_timeout("\u00b9\u00b2ms")

    def test_priority(self):
        assert validate_priority(None) == Priority.NORMAL
        assert validate_priority("HIGH") == Priority.HIGH
        with pytest.raises(ValidationError):
            validate_priority("urgent")

    def test_task_id(self):
        assert validate_task_id("task_1700000000000_0123456789abcdef")
        for bad in ("", "task_1_xyz", "task_1700000000000_0123456789ABCDEF", "x" * 200):
            with pytest.raises(ValidationError):
                validate_task_id(bad)


class TestProcessRequest:

    def test_full_request(self):
        request = parse_process_request(
            "42",
            {
                "breed": "siamese",
                "imageProvider": "dall-e",
                "promptExtras": "holding a shuriken",
                "providerOptions": '{"quality": "hd"}',
                "force": "true",
                "regenerate": "true",
                "timeout": "500",
                "priority": "high",
            },
            providers=PROVIDERS,
            max_token_id=1000,
        )
        assert request.token_id == 42
        assert request.breed == "Siamese"
        assert request.image_provider == "dall-e"
        assert request.provider_options == {"quality": "hd"}
        assert request.force and request.regenerate
        assert request.timeout_ms == 500
        assert request.priority == Priority.HIGH

    def test_minimal_request(self):
        request = parse_process_request("7", {}, providers=PROVIDERS, max_token_id=1000)
        assert request.image_provider is None
        assert request.provider_options is None
        assert request.breed == "Tabby"
        assert not request.force
