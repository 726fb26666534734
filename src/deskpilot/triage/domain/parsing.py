"""
Provider Output Parsing
=======================

Helpers that turn free-form completion text into typed values.

Malformed output never raises here: every helper either returns a
validated value or the caller's default.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from deskpilot.config import TicketCategory

E = TypeVar("E", bound=Enum)

_decoder = json.JSONDecoder()
_NON_LABEL_CHARS = re.compile(r"[^a-z_]")


@dataclass(frozen=True)
class ParsedOk:
    """A JSON object was found in the provider output."""
    value: Dict[str, Any]


@dataclass(frozen=True)
class ParsedDefault:
    """No usable JSON object; callers substitute their defaults."""
    reason: str


ParseOutcome = Union[ParsedOk, ParsedDefault]


def parse_json_object(text: Optional[str]) -> ParseOutcome:
    """
    Locate and decode the first well-formed JSON object in ``text``.

    Tolerates markdown code fences and commentary around the object by
    trying each ``{`` in turn until one decodes to a dict.
    """
    if not text or not text.strip():
        return ParsedDefault("empty response")

    position = text.find("{")
    if position < 0:
        return ParsedDefault("no JSON object found")

    while position >= 0:
        try:
            value, _ = _decoder.raw_decode(text, position)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return ParsedOk(value)
        position = text.find("{", position + 1)

    return ParsedDefault("no well-formed JSON object found")


def normalize_category(raw: Optional[str]) -> Optional[TicketCategory]:
    """Map a raw classifier label onto a category, or None if it is not one."""
    label = _NON_LABEL_CHARS.sub("", (raw or "").strip().lower())
    try:
        return TicketCategory(label)
    except ValueError:
        return None


def coerce_choice(value: Any, enum_type: Type[E], default: E) -> E:
    """Case-insensitive enum lookup with a fallback."""
    if isinstance(value, str):
        try:
            return enum_type(value.strip().lower())
        except ValueError:
            pass
    return default


def coerce_entities(value: Any) -> List[str]:
    """Keep the string items of a list; anything else becomes ``[]``."""
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def coerce_confidence(value: Any, default: float) -> float:
    """Numeric confidence or ``default``. Clamping happens on the entity."""
    # bool is an int subclass
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def coerce_text(value: Any) -> Optional[str]:
    """Non-blank string or None."""
    if isinstance(value, str) and value.strip():
        return value
    return None
