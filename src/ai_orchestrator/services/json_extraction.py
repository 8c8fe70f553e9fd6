"""Extraction of JSON payloads from model text."""

import json
import re
from typing import Any

_FENCE_OPEN = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a Markdown code fence wrapped around the whole text."""
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()


def extract_json(text: str) -> Any:
    """Parse model output as JSON.

    Raises:
        json.JSONDecodeError: If the cleaned text is not valid JSON
    """
    return json.loads(strip_code_fences(text))
