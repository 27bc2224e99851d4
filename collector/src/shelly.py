"""
Shelly EM reader for the grid voltage of one electrical phase.

Performs a single GET against the meter's ``/status`` endpoint and picks
``emeters[phase]``.  Returns ``None`` on any failure.

CHANGELOG:
- 2026-10-18: Return None when the meter reports non-numeric values
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from collector.src.models import VoltageReading

logger = logging.getLogger(__name__)

_PHASE_LABELS = "ABC"


async def fetch_voltage(
    *,
    url: str,
    phase: int = 2,
    timeout_s: float = 5.0,
) -> VoltageReading | None:
    """Read voltage and power for *phase* (0=A, 1=B, 2=C) from a Shelly EM."""
    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            response = await client.get(url)
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Shelly EM at %s unavailable: %s", url, exc)
        return None

    emeters = data.get("emeters") if isinstance(data, dict) else None
    if not isinstance(emeters, list) or not 0 <= phase < len(emeters):
        logger.warning("Shelly EM phase %d not found in emeters", phase)
        return None

    meter = emeters[phase]
    if not isinstance(meter, dict):
        logger.warning("Shelly EM phase %d has an unexpected format", phase)
        return None
    try:
        reading = VoltageReading(
            voltage=meter.get("voltage"),
            power=meter.get("power"),
            phase=_PHASE_LABELS[phase],
        )
    except ValidationError as exc:
        logger.warning(
            "Shelly EM phase %d has invalid values (%d error(s))", phase, exc.error_count()
        )
        return None
    logger.info(
        "Shelly phase %s: voltage=%s V, power=%s W",
        reading.phase,
        reading.voltage,
        reading.power,
    )
    return reading
