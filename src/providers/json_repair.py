# src/providers/json_repair.py — v1
"""Best-effort repair of transcription payloads.

Provider payloads occasionally arrive wrapped in code fences, with stray
control characters, or with word entries missing fields. Unusable words are
dropped rather than failing the render; captions fall back to scene timing
when nothing survives.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from shortrender.core.models import Transcript, WordTiming

logger = logging.getLogger(__name__)


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        lines = stripped.splitlines()
        if lines and lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].startswith("```"):
            lines = lines[:-1]
        stripped = "\n".join(lines).strip()
    return stripped


def extract_json_object(text: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of ``text``.

    Raises:
        ValueError: No parseable object found.
    """
    cleaned = _strip_code_fences(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ValueError("no JSON object in payload")
    snippet = cleaned[start:end + 1]
    snippet = "".join(ch for ch in snippet if ch >= " " or ch in "\n\r\t")
    try:
        obj = json.loads(snippet)
    except json.JSONDecodeError as ex:
        raise ValueError(f"Invalid JSON object: {ex}") from ex
    if not isinstance(obj, dict):
        raise ValueError("Top-level JSON value must be an object")
    return obj


def _number(value: Any) -> float | None:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def _repair_word(raw: Any) -> WordTiming | None:
    if not isinstance(raw, dict):
        return None
    word = str(raw.get("word") or raw.get("text") or "").strip()
    start, end = _number(raw.get("start")), _number(raw.get("end"))
    if not word or start is None or end is None or start < 0:
        return None
    if end < start:
        start, end = end, start
    return WordTiming(word=word, start=start, end=end)


def parse_transcript_payload(payload: str | dict[str, Any] | None) -> Transcript:
    """Turn a raw transcription payload into a Transcript, dropping bad words."""
    if payload is None:
        return Transcript()
    if isinstance(payload, str):
        try:
            payload = extract_json_object(payload)
        except ValueError as e:
            logger.warning("Unparseable transcription payload: %s", e)
            return Transcript()

    raw_words = payload.get("words") or []
    if not isinstance(raw_words, list):
        logger.warning("Transcription words is %s, not a list", type(raw_words).__name__)
        raw_words = []

    words = [w for w in (_repair_word(r) for r in raw_words) if w is not None]
    dropped = len(raw_words) - len(words)
    if dropped:
        logger.warning("Dropped %d malformed word timing(s)", dropped)
    words.sort(key=lambda w: w.start)

    text = payload.get("text")
    if not isinstance(text, str):
        text = " ".join(w.word for w in words)
    return Transcript(text=text.strip(), words=words)
