from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, Optional

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Pull the first JSON object out of free-form model output.

    Args:
        text: Raw model output, possibly wrapped in prose or markdown fences

    Returns:
        Parsed dict, or None when nothing parseable is found
    """
    if not text:
        return None
    match = _JSON_OBJECT.search(text)
    if not match:
        return None
    try:
        obj = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def is_valid_category_response(obj: Dict[str, Any], allowed: Iterable[str]) -> bool:
    """Validate categorizer JSON response.

    Args:
        obj: Parsed response
        allowed: Category ids the model may answer with

    Returns:
        True if valid, False otherwise
    """
    if not isinstance(obj, dict):
        return False

    category = obj.get("category")
    if not isinstance(category, str) or category not in set(allowed):
        return False

    confidence = obj.get("confidence", 0.5)
    if confidence is not None and not isinstance(confidence, (int, float)):
        return False

    return True


def is_valid_authority_response(obj: Dict[str, Any]) -> bool:
    """Validate authority JSON response shape ({"authority": {...}})."""
    if not isinstance(obj, dict):
        return False
    inner = obj.get("authority")
    if not isinstance(inner, dict):
        return False
    if not isinstance(inner.get("hasAuthor"), bool):
        return False
    return True


def clamp_confidence(value: Any, default: float = 0.5) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return default
    return max(0.0, min(1.0, float(value)))
