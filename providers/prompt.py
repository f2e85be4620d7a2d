# ============================================================================
# PROMPT BUILDER
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Providers - Text prompt for one token
# PURPOSE: Deterministic prompt from breed, token id and user extras
# CREATED: 22 SEP 2026
# ============================================================================
"""Prompt construction for pixel-art ninja cat tokens."""

from typing import Optional

PROMPT_PREFIX = "32x32 pixel art sprite of a ninja cat: "
PROMPT_SUFFIX = (
    ", retro game style, limited color palette, chunky pixels, "
    "no anti-aliasing, NES/SNES aesthetic"
)
DEFAULT_NEGATIVE_PROMPT = (
    "text, letters, numbers, words, captions, labels, watermarks, signatures, blurry, low quality"
)


def build_prompt(breed: str, token_id: int, extras: Optional[str] = None) -> str:
    """
    Prompt for one token.

    extras is appended verbatim; it has already been length-limited and
    stripped of control characters by the enqueue path.
    """
    subject = f"a {breed} ninja cat, token #{token_id}"
    if extras:
        subject = f"{subject}, {extras}"
    return f"{PROMPT_PREFIX}{subject}{PROMPT_SUFFIX}"


def negative_prompt_for(user_negative: Optional[str]) -> str:
    if user_negative:
        return f"{DEFAULT_NEGATIVE_PROMPT}, {user_negative}"
    return DEFAULT_NEGATIVE_PROMPT


__all__ = [
    "DEFAULT_NEGATIVE_PROMPT",
    "build_prompt",
    "negative_prompt_for",
]
