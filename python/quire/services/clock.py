"""SMIL clock value parsing.

Supported forms:
- Full clock value: "HH:MM:SS" or "HH:MM:SS.fraction" (hours may exceed 99)
- Partial clock value: "MM:SS" or "MM:SS.fraction"
- Timecount: a number with an optional metric, "h", "min", "s" or "ms";
  a bare number is in seconds.

Unparsable values yield None rather than raising.
"""

import re

_CLOCK_RE = re.compile(r"^(?:(\d+):)?(\d+):(\d+(?:\.\d+)?)$")
_TIMECOUNT_RE = re.compile(r"^(\d+(?:\.\d+)?|\.\d+)\s*(h|min|s|ms)?$")

_METRIC_SECONDS = {
    "h": 3600.0,
    "min": 60.0,
    "s": 1.0,
    "ms": 0.001,
    None: 1.0,
}


def parse_clock_value(raw: str | None) -> float | None:
    """Parse a SMIL clock value into seconds.

    Args:
        raw: Clock value as written in the document.

    Returns:
        Number of seconds, or None when the value is malformed.
    """
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None

    if ":" in value:
        match = _CLOCK_RE.match(value)
        if match is None:
            return None
        hours, minutes, seconds = match.groups()
        return int(hours or 0) * 3600.0 + int(minutes) * 60.0 + float(seconds)

    match = _TIMECOUNT_RE.match(value)
    if match is None:
        return None
    number, metric = match.groups()
    return float(number) * _METRIC_SECONDS[metric]
