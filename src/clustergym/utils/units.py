"""Parsing of unit-suffixed rate and time strings ("5Mbps", "2ms")."""

from __future__ import annotations

import re

_NUMBER_UNIT = re.compile(r"^\s*([0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*([A-Za-z/]*)\s*$")

_RATE_FACTORS = {
    "bps": 1.0,
    "b/s": 1.0,
    "kbps": 1e3,
    "kb/s": 1e3,
    "mbps": 1e6,
    "mb/s": 1e6,
    "gbps": 1e9,
    "gb/s": 1e9,
}

_TIME_FACTORS = {
    "": 1.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "ns": 1e-9,
    "min": 60.0,
}


def _split(text: str) -> tuple[float, str]:
    match = _NUMBER_UNIT.match(text)
    if match is None:
        raise ValueError(f"Cannot parse quantity: {text!r}")
    return float(match.group(1)), match.group(2).lower()


def parse_data_rate(value: str | int | float) -> float:
    """Return a data rate in bits per second."""
    if isinstance(value, (int, float)):
        rate = float(value)
    else:
        number, unit = _split(value)
        if unit not in _RATE_FACTORS:
            raise ValueError(f"Unknown data rate unit in {value!r}")
        rate = number * _RATE_FACTORS[unit]
    if rate <= 0:
        raise ValueError(f"Data rate must be > 0, got {value!r}")
    return rate


def parse_time(value: str | int | float) -> float:
    """Return a duration in seconds. Bare numbers are seconds."""
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        number, unit = _split(value)
        if unit not in _TIME_FACTORS:
            raise ValueError(f"Unknown time unit in {value!r}")
        seconds = number * _TIME_FACTORS[unit]
    if seconds < 0:
        raise ValueError(f"Duration must be >= 0, got {value!r}")
    return seconds
