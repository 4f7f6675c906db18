"""Parsing of Grafana-style interval strings."""

import re

_INTERVAL_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w)?\s*$")

_UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
}


def interval_to_ms(interval: str) -> int:
    """Convert an interval such as ``"5s"``, ``"30m"`` or ``"1h"`` to milliseconds.

    A bare number is read as seconds.

    Raises:
        ValueError: If the interval cannot be parsed.
    """
    match = _INTERVAL_RE.match(interval)
    if match is None:
        raise ValueError(f"Invalid interval '{interval}'")
    amount, unit = match.groups()
    return int(float(amount) * _UNIT_MS[unit or "s"])
