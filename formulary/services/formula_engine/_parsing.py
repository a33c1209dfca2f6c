"""Permissive numeric parsing used by live-typed inputs."""

from __future__ import annotations

import math
from typing import Any


def parse_or_default(raw: Any, default: float = 0.0) -> float:
    """Parse ``raw`` as a float, returning ``default`` instead of raising.

    Booleans, blanks, non-numeric text and non-finite values all map to the
    default. Leading/trailing whitespace is ignored, and a leading numeric
    prefix is accepted ("12.5%" -> 12.5) to match what a number field yields
    while the user is still typing.
    """
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else default

    text = str(raw).strip()
    if not text:
        return default
    try:
        value = float(text)
    except ValueError:
        value = _leading_number(text)
        if value is None:
            return default
    return value if math.isfinite(value) else default


def _leading_number(text: str):
    end = 0
    seen_digit = seen_dot = False
    if text[:1] in "+-":
        end = 1
    while end < len(text):
        char = text[end]
        if char.isdigit():
            seen_digit = True
        elif char == "." and not seen_dot:
            seen_dot = True
        else:
            break
        end += 1
    if not seen_digit:
        return None
    return float(text[:end])


_FLAG_WORDS = {
    "1": True, "true": True, "yes": True, "on": True, "public": True,
    "0": False, "false": False, "no": False, "off": False, "private": False, "": False,
}


def parse_flag(raw: Any, default: bool = False) -> bool:
    """Read a checkbox/JSON style flag. Text is matched against known words, not truthiness."""
    if raw is None:
        return default
    if isinstance(raw, str):
        return _FLAG_WORDS.get(raw.strip().lower(), default)
    return bool(raw)
