"""Duration parsing for tenant window offsets."""

import re
from datetime import timedelta
from typing import Union

# Go-style duration components, e.g. "720h", "1h30m", "90s", "250ms"; "d" is accepted for days.
_COMPONENT = re.compile(r"(\d+(?:\.\d+)?)(ms|us|µs|ns|d|h|m|s)")

_UNIT_SECONDS = {
    "d": 86400.0,
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "µs": 1e-6,
    "ns": 1e-9,
}


def parse_duration(value: Union[str, int, float, timedelta, None]) -> timedelta:
    """Parse a duration from config into a timedelta.

    Args:
        value: A timedelta, a number of seconds, or a duration string
            such as "720h", "1h30m" or "2d". None and "" mean zero.

    Returns:
        The parsed duration.

    Raises:
        ValueError: If the value cannot be interpreted.
    """
    if value is None:
        return timedelta(0)
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = str(value).strip()
    if not text or text == "0":
        return timedelta(0)

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return sign * timedelta(seconds=float(text))

    total = 0.0
    position = 0
    for match in _COMPONENT.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position != len(text) or position == 0:
        raise ValueError(f"invalid duration {value!r}")

    return sign * timedelta(seconds=total)
