"""
Prompt fingerprinting for IVR node identity and loop detection.

Two prompts are the same menu state only if their text matches exactly after
normalization (case, whitespace and punctuation are ignored). The hash format
is versioned so a future scheme change only produces mismatches, never
collisions with stored values.
"""
from __future__ import annotations

import re

FINGERPRINT_VERSION = "v1"
EMPTY_FINGERPRINT = "empty"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_prompt(text: str | None) -> str:
    return _NON_ALNUM_RE.sub("", (text or "").lower())


def fingerprint(text: str | None) -> str:
    """
    32-bit rolling polynomial hash (h * 31 + c) over the normalized prompt,
    wrapped to a signed 32-bit integer and rendered as ``v1:<hex>`` of its
    absolute value.
    """
    normalized = normalize_prompt(text)
    if not normalized:
        return EMPTY_FINGERPRINT

    h = 0
    for ch in normalized:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000

    return f"{FINGERPRINT_VERSION}:{abs(h):x}"
