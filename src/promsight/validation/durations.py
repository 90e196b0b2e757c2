"""
PromQL duration handling.

Durations are one or more ``<int><unit>`` terms, largest unit first as
PromQL writes them (``5m``, ``1h30m``, ``7d``). Range selectors and
subqueries carry them inside brackets: ``[5m]`` and ``[30d:5m]``.
"""

from __future__ import annotations

import re
from datetime import timedelta

DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "y": 31536000,
}

# "ms" must be tried before "m"
_TERM = r"(\d+)(ms|s|m|h|d|w|y)"
_TERM_PATTERN = re.compile(_TERM)
DURATION_PATTERN = re.compile(rf"^(?:{_TERM})+$")
SINGLE_DURATION_PATTERN = re.compile(rf"^{_TERM}$")

# [range] or [range:resolution]; the resolution may be empty ([1h:])
RANGE_SELECTOR_PATTERN = re.compile(r"\[\s*([^\]:\s]+)\s*(?::\s*([^\]\s]*)\s*)?\]")


def parse_duration(text: str) -> timedelta:
    """
    Convert a PromQL duration string to a timedelta.

    Raises:
        ValueError: If ``text`` is not a valid duration
    """
    text = text.strip()
    if not DURATION_PATTERN.match(text):
        raise ValueError(f"invalid duration: {text!r}")

    seconds = sum(
        int(value) * DURATION_UNITS[unit] for value, unit in _TERM_PATTERN.findall(text)
    )
    return timedelta(seconds=seconds)


def is_single_duration(text: str) -> bool:
    """Return True for a plain ``<int><unit>`` duration such as ``24h``."""
    return bool(SINGLE_DURATION_PATTERN.match(text))


def extract_range_durations(query: str) -> list[str]:
    """
    Return the range part of every range selector and subquery in ``query``.

    The subquery resolution (after the colon) is not a range and is skipped.
    """
    return [match.group(1) for match in RANGE_SELECTOR_PATTERN.finditer(query)]


def format_duration(value: timedelta) -> str:
    """Render a timedelta with the largest whole unit up to days, e.g. ``7d``."""
    seconds = value.total_seconds()
    for unit in ("d", "h", "m", "s"):
        size = DURATION_UNITS[unit]
        if seconds >= size and seconds % size == 0:
            return f"{int(seconds // size)}{unit}"
    return f"{int(seconds * 1000)}ms"
