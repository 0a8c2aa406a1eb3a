# src/cache/fingerprint.py — v1
"""Deterministic cache keys for provider calls.

A key covers the operation kind and every input that changes the output
(model, voice, text, size...), so a changed input is always a miss.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def _normalize(part: Any) -> str:
    if isinstance(part, str):
        return part
    return json.dumps(part, sort_keys=True, separators=(",", ":"), default=str)


def make_hash_key(kind: str, *parts: Any) -> str:
    """Build a SHA-256 key over the operation name and its inputs.

    Args:
        kind: Operation name (e.g. "tts", "image").
        *parts: Inputs; non-strings are JSON-encoded with sorted keys.

    Returns:
        64-char hex digest.
    """
    h = hashlib.sha256()
    h.update(kind.encode("utf-8"))
    for part in parts:
        # Separator keeps ("ab", "c") distinct from ("a", "bc")
        h.update(b"\x1f")
        h.update(_normalize(part).encode("utf-8"))
    return h.hexdigest()
