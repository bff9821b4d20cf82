"""
Text and number normalization utilities.

Keeps idempotency keys and reply formatting consistent across handlers.
"""

import re
from typing import Optional

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_for_key(text: Optional[str]) -> str:
    """
    Normalize message text for use inside an idempotency key.

    Lowercases and removes ALL whitespace, so "/p Buy  milk" and
    "/p buy milk\n" collapse to the same key.

    Returns "" for None or whitespace-only input.
    """
    if not text or not isinstance(text, str):
        return ""
    return _WHITESPACE_RE.sub("", text.strip().lower())


def format_number(value: float) -> str:
    """
    Format a number with Vietnamese separators.

    "." groups thousands and "," marks decimals (at most 3 decimals,
    trailing zeros dropped): 1264 -> "1.264", 1234.5 -> "1.234,5".
    """
    if isinstance(value, bool):
        return str(value)

    if isinstance(value, int) or float(value).is_integer():
        return f"{int(value):,}".replace(",", ".")

    integer_part, _, decimal_part = f"{value:,.3f}".partition(".")
    decimal_part = decimal_part.rstrip("0")
    integer_part = integer_part.replace(",", ".")
    return f"{integer_part},{decimal_part}" if decimal_part else integer_part
