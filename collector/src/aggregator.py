"""
Aggregator that turns per-device readings into one plant total.

Devices that failed are substituted with the average of the devices that
succeeded, rounded half away from zero (2400.5 -> 2401).  A reading of
exactly 0 W is valid and is counted, not substituted.  When no device
succeeded the total is forced to 0 and the condition is logged as critical.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from collector.src.extractor import is_valid_power
from collector.src.models import AggregateTotal, PowerReading

logger = logging.getLogger(__name__)


def round_half_away(value: Decimal) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def aggregate(readings: Iterable[PowerReading]) -> AggregateTotal:
    """Compute the fallback-filled total for an ordered set of readings.

    Args:
        readings: One reading per configured device, in device order.

    Returns:
        The aggregate total with success/fallback counts.
    """
    values = [r.value for r in readings]
    successful = [v for v in values if is_valid_power(v)]
    failed_count = len(values) - len(successful)

    if not successful:
        logger.critical(
            "No device responded with a valid value (%d configured). Total set to 0.",
            len(values),
        )
        return AggregateTotal(
            total=0,
            successful_count=0,
            failed_count=failed_count,
            fallback_count=0,
        )

    average = round_half_away(Decimal(sum(successful)) / Decimal(len(successful)))
    total = sum(v if is_valid_power(v) else average for v in values)

    logger.info(
        "Aggregated %d W from %d device(s), average %d W, %d fallback(s)",
        total,
        len(successful),
        average,
        failed_count,
    )
    return AggregateTotal(
        total=total,
        successful_count=len(successful),
        failed_count=failed_count,
        fallback_count=failed_count,
        average=average,
    )
