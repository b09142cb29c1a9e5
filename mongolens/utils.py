"""Hashing and JSON helpers."""

from __future__ import annotations

import hashlib
import json
import logging
import re
from typing import Any, Iterable


logger = logging.getLogger(__name__)

_BARE_KEY_REGEX = re.compile(r"([{,]\s*)([A-Za-z_$][\w$]*)(\s*:)")
_TRAILING_COMMA_REGEX = re.compile(r",(\s*[}\]])")
# Split on double-quoted string literals; odd-indexed parts are the literals.
_STRING_LITERAL_REGEX = re.compile(r'("(?:[^"\\]|\\.)*")', re.DOTALL)


def stable_hash(values: Iterable[object]) -> str:
    """Generate a stable SHA-256 hash for a sequence of values."""

    serialized = json.dumps(list(values), sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def sanitize_json(text: str) -> str:
    """Quote bare object keys and strip trailing commas.

    These are the only repairs attempted; anything else stays malformed.
    Text inside string literals is never rewritten.
    """

    parts = _STRING_LITERAL_REGEX.split(text)
    for index in range(0, len(parts), 2):
        repaired = _BARE_KEY_REGEX.sub(r'\1"\2"\3', parts[index])
        parts[index] = _TRAILING_COMMA_REGEX.sub(r"\1", repaired)
    return "".join(parts)


def parse_json_lenient(text: str) -> Any:
    """Parse JSON, retrying once on the sanitized text.

    Raises ``json.JSONDecodeError`` when the repaired text is still invalid.
    """

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        repaired = sanitize_json(text)
        if repaired == text:
            raise
    parsed = json.loads(repaired)
    logger.warning("Repaired malformed JSON in model output")
    return parsed
