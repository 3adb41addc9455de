"""Parsing of free-text AI responses and structurally compatible fallbacks.

Every method that calls the AI gateway returns a dict. When the call fails or
the text holds no usable JSON, the dict is a stub with the same top-level keys
plus a ``fallback`` or ``error`` marker and a lower confidence. Callers check
those markers with `is_fallback` before trusting structured fields.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)
_ARRAY_PATTERN = re.compile(r"\[.*\]", re.DOTALL)

UNPARSED_CONFIDENCE = 0.6
PARSE_FAILED_CONFIDENCE = 0.3
FALLBACK_CONFIDENCE = 0.3

FALLBACK_MESSAGE = (
    "Pasensya na, I'm having trouble reaching the AI service right now. "
    "Here is a basic analysis based on your recorded data instead."
)


def _now() -> str:
    return datetime.now().isoformat()


def parse_ai_response(raw: Optional[str]) -> Dict[str, Any]:
    """Extract the first JSON object from raw model text.

    Returns the decoded object on success. Text without a ``{...}`` span is
    wrapped with confidence 0.6 and ``parsed: False``; a span that does not
    decode is wrapped with confidence 0.3 and ``error: "parsing_failed"``.
    """
    text = raw or ""
    match = _OBJECT_PATTERN.search(text)
    if not match:
        return {
            "content": text,
            "confidence": UNPARSED_CONFIDENCE,
            "parsed": False,
            "timestamp": _now(),
        }

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"[Fallback] Could not decode JSON span: {e}")
        return {
            "content": text,
            "confidence": PARSE_FAILED_CONFIDENCE,
            "error": "parsing_failed",
            "timestamp": _now(),
        }

    if not isinstance(parsed, dict):
        return {
            "content": text,
            "confidence": PARSE_FAILED_CONFIDENCE,
            "error": "parsing_failed",
            "timestamp": _now(),
        }
    return parsed


def parse_ai_list(raw: Optional[str]) -> Optional[List[Any]]:
    """Extract the first JSON array from raw model text, or None."""
    match = _ARRAY_PATTERN.search(raw or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("[Fallback] Could not decode JSON array span")
        return None
    return parsed if isinstance(parsed, list) else None


def is_fallback(result: Any) -> bool:
    """True when a result is a stub rather than a trusted structured answer."""
    if not isinstance(result, dict):
        return False
    return bool(result.get("fallback")) or "error" in result or result.get("parsed") is False


def structured_or_fallback(
    parsed: Dict[str, Any],
    required_keys: Iterable[str],
    fallback: Dict[str, Any],
) -> Dict[str, Any]:
    """Return `parsed` if it carries every required key, else the fallback.

    The fallback is returned as a copy marked with ``fallback: True`` so its
    key set matches a successful structured result plus the marker.
    """
    if not is_fallback(parsed) and all(key in parsed for key in required_keys):
        return parsed
    result = dict(fallback)
    result["fallback"] = True
    if "error" in parsed:
        result.setdefault("error", parsed["error"])
    return result


def fallback_response(context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Generic stub for a failed gateway call."""
    return {
        "content": FALLBACK_MESSAGE,
        "confidence": FALLBACK_CONFIDENCE,
        "fallback": True,
        "timestamp": _now(),
        "context": context or {},
    }
