# ============================================================================
# REQUEST VALIDATION
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Service - Enqueue-path input checks
# PURPOSE: Turn raw query parameters into a validated ProcessRequest
# CREATED: 26 SEP 2026
# ============================================================================
"""
Request validation for the enqueue path.

Everything here raises core.errors.ValidationError; nothing that fails
validation ever reaches the store or the dispatcher.

Rules:
    tokenId           digits only, 0 <= id <= max_token_id
    breed             closed set (BREEDS), default Tabby
    imageProvider     a registered provider name
    promptExtras,
    negativePrompt    control chars stripped, HTML escaped, then <= 2000 chars
    providerOptions   JSON object, <= 4 KiB; known keys checked against the
                      provider's allow-list, unknown keys dropped
    timeout           0 <= ms <= MAX_TIMEOUT_MS
"""

import html
import json
import re
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import Priority
from core.errors import ValidationError

BREEDS = (
    "Tabby",
    "Siamese",
    "Calico",
    "Maine Coon",
    "Bengal",
    "Bombay",
    "Persian",
    "Sphynx",
    "Nyan",
    "Shadow",
)
DEFAULT_BREED = "Tabby"

MAX_TEXT_CHARS = 2000
MAX_OPTIONS_BYTES = 4096
MAX_TIMEOUT_MS = 3_600_000
MAX_TASK_ID_CHARS = 100

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_DIGITS = re.compile(r"[0-9]+")
_TASK_ID = re.compile(r"^task_\d{1,16}_[0-9a-f]{16}$")


class ProcessRequest(BaseModel):
    """A validated /process call. image_provider is None when not given."""
    model_config = ConfigDict(frozen=True)

    token_id: int = Field(ge=0)
    breed: str = DEFAULT_BREED
    image_provider: Optional[str] = None
    prompt_extras: Optional[str] = None
    negative_prompt: Optional[str] = None
    provider_options: Optional[Dict[str, Any]] = None
    force: bool = False
    regenerate: bool = False
    timeout_ms: Optional[int] = None
    priority: Priority = Priority.NORMAL


def validate_token_id(raw: Any, max_token_id: int) -> int:
    text = str(raw).strip() if raw is not None else ""
    if not _DIGITS.fullmatch(text):
        raise ValidationError("tokenId", "must be a non-negative integer")
    token_id = int(text)
    if token_id > max_token_id:
        raise ValidationError("tokenId", f"must be <= {max_token_id}")
    return token_id


def validate_breed(raw: Optional[str]) -> str:
    if raw is None or raw == "":
        return DEFAULT_BREED
    for breed in BREEDS:
        if raw.strip().lower() == breed.lower():
            return breed
    raise ValidationError("breed", f"must be one of {', '.join(BREEDS)}")


def validate_provider(raw: Optional[str], known: Iterable[str]) -> Optional[str]:
    if raw is None or raw == "":
        return None
    names = list(known)
    name = raw.strip().lower()
    if name not in names:
        raise ValidationError("imageProvider", f"must be one of {', '.join(names)}")
    return name


def sanitize_text(raw: Optional[str], field: str) -> Optional[str]:
    """Strip control characters, escape HTML, then length-check what gets stored."""
    if raw is None:
        return None
    cleaned = _CONTROL_CHARS.sub("", raw).strip()
    if not cleaned:
        return None
    escaped = html.escape(cleaned)
    if len(escaped) > MAX_TEXT_CHARS:
        raise ValidationError(field, f"must be at most {MAX_TEXT_CHARS} characters once HTML-escaped")
    return escaped


def parse_provider_options(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse the providerOptions query value.

    Returns None when absent so the caller can fall back to the stored
    preference. Key-level checks happen once the provider is known.
    """
    if raw is None or raw.strip() == "":
        return None
    if len(raw.encode("utf-8")) > MAX_OPTIONS_BYTES:
        raise ValidationError("providerOptions", f"must be at most {MAX_OPTIONS_BYTES} bytes")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("providerOptions", "must be valid JSON") from None
    if not isinstance(parsed, dict):
        raise ValidationError("providerOptions", "must be a JSON object")
    return parsed


def parse_flag(raw: Optional[str], field: str) -> bool:
    if raw is None or raw == "":
        return False
    value = raw.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    raise ValidationError(field, "must be true or false")


def validate_timeout(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    text = raw.strip().lower()
    if text.endswith("ms"):
        text = text[:-2]
    if not _DIGITS.fullmatch(text):
        raise ValidationError("timeout", "must be a non-negative number of milliseconds")
    value = int(text)
    if value > MAX_TIMEOUT_MS:
        raise ValidationError("timeout", f"must be <= {MAX_TIMEOUT_MS}")
    return value


def validate_priority(raw: Optional[str]) -> Priority:
    if raw is None or raw == "":
        return Priority.NORMAL
    try:
        return Priority(raw.strip().lower())
    except ValueError:
        raise ValidationError("priority", "must be one of high, normal, low") from None


def validate_task_id(raw: str) -> str:
    if not raw or len(raw) > MAX_TASK_ID_CHARS or not _TASK_ID.match(raw):
        raise ValidationError("taskId", "malformed task id")
    return raw


def parse_process_request(
    token_id: Any,
    params: Dict[str, Optional[str]],
    providers: Iterable[str],
    max_token_id: int,
) -> ProcessRequest:
    """Validate every /process input; raises on the first bad field."""
    return ProcessRequest(
        token_id=validate_token_id(token_id, max_token_id),
        breed=validate_breed(params.get("breed")),
        image_provider=validate_provider(params.get("imageProvider"), providers),
        prompt_extras=sanitize_text(params.get("promptExtras"), "promptExtras"),
        negative_prompt=sanitize_text(params.get("negativePrompt"), "negativePrompt"),
        provider_options=parse_provider_options(params.get("providerOptions")),
        force=parse_flag(params.get("force"), "force"),
        regenerate=parse_flag(params.get("regenerate"), "regenerate"),
        timeout_ms=validate_timeout(params.get("timeout")),
        priority=validate_priority(params.get("priority")),
    )


__all__ = [
    "BREEDS",
    "DEFAULT_BREED",
    "MAX_TEXT_CHARS",
    "MAX_OPTIONS_BYTES",
    "ProcessRequest",
    "validate_token_id",
    "validate_breed",
    "validate_provider",
    "sanitize_text",
    "parse_provider_options",
    "parse_flag",
    "validate_timeout",
    "validate_priority",
    "validate_task_id",
    "parse_process_request",
]
