"""
Pure extractor that pulls the instantaneous power out of an inverter status page.

The Deye web UI embeds the current AC output as a JavaScript variable, e.g.
``var webdata_now_p = "2500";``.  The first occurrence wins; there is no
fallback search.

This is a pure function: no side effects, no I/O, no clock.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import re

from collector.src.models import MAX_DEVICE_POWER_W, MIN_DEVICE_POWER_W

_POWER_PATTERN = re.compile(r"""webdata_now_p\s*=\s*["']?(\d+)["']?""")


def is_valid_power(value: int | None) -> bool:
    """Return True if *value* is a usable device reading (0 W to 1 MW)."""
    return value is not None and MIN_DEVICE_POWER_W <= value <= MAX_DEVICE_POWER_W


def extract_power(body: str) -> int | None:
    """Return the power in watts embedded in *body*, or None.

    Args:
        body: Raw HTML/JS of the inverter status page.

    Returns:
        The integer value of the first ``webdata_now_p`` assignment, or
        ``None`` if the variable is absent or out of range.
    """
    match = _POWER_PATTERN.search(body)
    if match is None:
        return None
    value = int(match.group(1))
    return value if is_valid_power(value) else None
