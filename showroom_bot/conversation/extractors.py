"""Keyword extractors — pull product interest and location out of free text.

Pure functions: case-insensitive substring matching against a supplied
table, first match by table priority (not by position in the message).
"""

from __future__ import annotations

import re
from typing import Optional

from showroom_bot.conversation.gazetteers import (
    DEFAULT_GAZETTEER,
    DEFAULT_PRODUCT_TABLE,
    Gazetteer,
    ProductTable,
)

# Inputs this short ("ok", "hi", "x1") never match anything
MIN_TEXT_LENGTH = 4


def _title(text: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), text)


def extract_product_interest(
    text: str,
    table: ProductTable = DEFAULT_PRODUCT_TABLE,
) -> Optional[str]:
    """Return the message (truncated) if it names a car or shows buying intent.

    Args:
        text: Raw customer message
        table: Brand tokens and intent phrases to match against

    Returns:
        The original text, cut to ``table.max_length`` chars plus "...",
        or None when nothing matched.
    """
    body = text.strip()
    if len(body) < MIN_TEXT_LENGTH:
        return None

    lower = body.lower()
    has_brand = any(token in lower for token in table.brands)
    has_intent = any(phrase in lower for phrase in table.buying_phrases)
    if not (has_brand or has_intent):
        return None

    if len(body) > table.max_length:
        return body[: table.max_length] + "..."
    return body


def extract_location(
    text: str,
    gazetteer: Gazetteer = DEFAULT_GAZETTEER,
) -> Optional[str]:
    """Return a normalized location for the first gazetteer hit.

    Local areas → "Bangalore - Hsr Layout", regional cities →
    "Mysore, Karnataka", other cities → "Mumbai".
    """
    body = text.strip()
    if len(body) < MIN_TEXT_LENGTH:
        return None

    lower = body.lower()
    for area in gazetteer.local_areas:
        if area in lower:
            return f"{gazetteer.region} - {_title(area)}"
    for city in gazetteer.regional_cities:
        if city in lower:
            return f"{_title(city)}, {gazetteer.state}"
    for city in gazetteer.other_cities:
        if city in lower:
            return _title(city)
    return None


def is_local(location: Optional[str], gazetteer: Gazetteer = DEFAULT_GAZETTEER) -> bool:
    """True when the extracted location is inside the showroom's own region."""
    return bool(location) and location.startswith(f"{gazetteer.region} - ")
