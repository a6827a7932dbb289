"""Safe navigation and lenient parsing of upstream object fields.

Upstream objects arrive either as mappings or as attribute objects and may
miss any field at any depth. Every helper here is total: bad input yields a
type-correct default instead of an exception.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

_COUNT = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*([KMB](?![a-z])|[萬万億亿])?", re.IGNORECASE)
_MULTIPLIERS = {
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
    "萬": 10_000,
    "万": 10_000,
    "億": 100_000_000,
    "亿": 100_000_000,
}


def dig(obj: Any, *path: str | int, default: Any = None) -> Any:
    """Follow ``path`` through mappings, attributes and sequence indices.

    Returns ``default`` as soon as a step is missing or ``None``.
    """
    current = obj
    for step in path:
        if current is None:
            return default
        if isinstance(step, int):
            if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
                current = current[step] if -len(current) <= step < len(current) else None
            else:
                return default
        elif isinstance(current, Mapping):
            current = current.get(step)
        else:
            try:
                current = getattr(current, step, None)
            except Exception:  # noqa: BLE001 - properties on foreign objects may raise anything
                return default
    return default if current is None else current


def text_of(value: Any) -> str:
    """Plain text from a string or a ``{text: ...}`` / ``{content: ...}`` node."""
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, (bool, int, float)):
        return ""
    for field in ("text", "content"):
        inner = dig(value, field)
        if isinstance(inner, str):
            return inner
    return ""


def int_of(value: Any) -> int:
    """Coerce a number or numeric text to ``int``; anything else is ``0``."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        return parse_count(value)
    return 0


def bool_of(value: Any, default: bool = False) -> bool:
    return value if isinstance(value, bool) else default


def list_of(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def parse_count(text: Any) -> int:
    """Parse human-readable counts such as ``"1.2M views"`` or ``"3,456"``.

    Supports K/M/B and 萬/億 suffixes. Unparsable input yields ``0``.
    """
    if not isinstance(text, str):
        return 0
    match = _COUNT.search(text)
    if not match:
        return 0
    try:
        number = float(match.group(1).replace(",", ""))
    except ValueError:
        return 0
    unit = (match.group(2) or "").upper()
    count = number * _MULTIPLIERS.get(unit, 1)
    return int(round(count)) if math.isfinite(count) else 0


def parse_duration(text: Any) -> int:
    """Seconds in a ``"m:ss"`` or ``"h:mm:ss"`` string; ``0`` when unparsable."""
    if not isinstance(text, str) or not text.strip():
        return 0
    parts = text.strip().split(":")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return 0
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    return 0
