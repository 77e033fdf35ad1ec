"""Helpers for reading structured answers out of model replies."""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_array(text: str) -> list[Any]:
    """Extract a JSON array from a model reply.

    Tolerates code fences and prose around the array. Returns an empty list
    when no array can be decoded.
    """
    text = _CODE_FENCE.sub("", text.strip())
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return []
    try:
        value = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        logger.debug("Model reply is not a valid JSON array")
        return []
    return value if isinstance(value, list) else []


def parse_choice(text: str, choices: tuple[str, ...], default: str) -> str:
    """First word of the reply if it is one of ``choices``, else ``default``."""
    words = re.findall(r"[a-z]+", text.lower())
    return words[0] if words and words[0] in choices else default
