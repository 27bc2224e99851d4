"""
PVOutput status uploader for the aggregated plant power.

Builds the form-encoded ``addstatus`` payload (``d``, ``t``, ``v2`` and the
optional extended values ``v5`` to ``v11``) and POSTs it exactly once with the
``X-Pvoutput-Apikey`` / ``X-Pvoutput-SystemId`` headers.  Out-of-range totals
are rejected locally without a network call; out-of-range extended values
are silently left out of the payload.

Operations:
- build_payload(total, now, enrichment): Pure form-field construction.
- Uploader.submit(total, enrichment): One POST, classified into a
  SubmissionResult.

CHANGELOG:
- 2026-10-18: Omit NaN and infinite extended values
- 2026-10-18: Add extended values v5-v11 from weather and Shelly readings
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import httpx

from collector.src.fetcher import USER_AGENT
from collector.src.models import Enrichment, SubmissionResult

logger = logging.getLogger(__name__)

PVOUTPUT_STATUS_URL = "https://pvoutput.org/service/r2/addstatus.jsp"

MIN_TOTAL_POWER_W = 0
MAX_TOTAL_POWER_W = 10_000_000
"""Accepted range for the submitted total (10 MW upper bound)."""

_DEFAULT_TIMEOUT_S = 30.0
_CONNECT_TIMEOUT_S = 10.0


@dataclass(frozen=True)
class ExtendedField:
    """Range and precision rule for one optional PVOutput value.

    Attributes:
        param: PVOutput form parameter name (``v5`` ... ``v11``).
        minimum: Inclusive lower bound, or None for unbounded.
        maximum: Inclusive upper bound, or None for unbounded.
        places: Decimal places kept after rounding (0 sends an integer).
    """

    param: str
    minimum: float | None
    maximum: float | None
    places: int


EXTENDED_FIELDS: dict[str, ExtendedField] = {
    "temperature": ExtendedField("v5", -100.0, 100.0, 1),
    "voltage": ExtendedField("v6", 0.0, 500.0, 1),
    "humidity": ExtendedField("v7", 0.0, 100.0, 0),
    "solar_radiation": ExtendedField("v8", 0.0, None, 1),
    "uv": ExtendedField("v9", 0.0, None, 1),
    "wind_speed": ExtendedField("v10", 0.0, None, 1),
    "pressure": ExtendedField("v11", 800.0, 1200.0, 1),
}
"""Maps Enrichment field name -> PVOutput parameter rule."""


def is_valid_total(total: int) -> bool:
    """Return True if *total* is within the accepted submission range."""
    return MIN_TOTAL_POWER_W <= total <= MAX_TOTAL_POWER_W


def _round_half_away(value: float, places: int) -> float | int:
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def _extended_value(value: float | None, rule: ExtendedField) -> float | int | None:
    """Range-check and round one extended value; None if it must be omitted."""
    if value is None or not math.isfinite(value):
        return None
    if rule.minimum is not None and value < rule.minimum:
        return None
    if rule.maximum is not None and value > rule.maximum:
        return None
    return _round_half_away(value, rule.places)


def build_payload(
    total: int,
    now: datetime,
    enrichment: Enrichment | None = None,
) -> dict[str, str | int | float]:
    """Build the PVOutput ``addstatus`` form fields.

    Args:
        total: Plant power in watts (sent as ``v2``).
        now: Local timestamp of the status (``d`` = YYYYMMDD, ``t`` = HH:MM).
        enrichment: Optional extended values; each is included only if it
            passes its range check.

    Returns:
        Ordered mapping of form parameter to value.
    """
    payload: dict[str, str | int | float] = {
        "d": now.strftime("%Y%m%d"),
        "t": now.strftime("%H:%M"),
        "v2": total,
    }
    if enrichment is None:
        return payload

    for name, rule in EXTENDED_FIELDS.items():
        value = _extended_value(getattr(enrichment, name), rule)
        if value is None:
            if getattr(enrichment, name) is not None:
                logger.debug("Omitting %s=%s (out of range)", name, getattr(enrichment, name))
            continue
        payload[rule.param] = value
    return payload


class Uploader:
    """Single-shot PVOutput status client.

    The status URL must use HTTPS; ``http://`` URLs are rejected at
    construction time. TLS certificate verification is always enabled.

    Args:
        api_key: PVOutput API key (``X-Pvoutput-Apikey``).
        system_id: Numeric PVOutput system id (``X-Pvoutput-SystemId``).
        url: Status endpoint URL.
        timeout_s: Total request timeout in seconds.

    Raises:
        ValueError: If *url* does not start with ``https://``.

    Usage::

        uploader = Uploader(api_key="key", system_id="12345")
        result = await uploader.submit(7350, Enrichment(temperature=25.3))
    """

    def __init__(
        self,
        api_key: str,
        system_id: str,
        url: str = PVOUTPUT_STATUS_URL,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        if not url.lower().startswith("https://"):
            raise ValueError(f"PVOutput URL must use HTTPS (got: '{url}').")
        self._api_key = api_key
        self._system_id = system_id
        self._url = url
        self._timeout = httpx.Timeout(timeout_s, connect=min(_CONNECT_TIMEOUT_S, timeout_s))

    async def submit(
        self,
        total: int,
        enrichment: Enrichment | None = None,
        *,
        now: datetime | None = None,
    ) -> SubmissionResult:
        """POST one status to PVOutput.

        Args:
            total: Plant power in watts.
            enrichment: Optional extended values.
            now: Local timestamp of the status; defaults to the current time.

        Returns:
            ``SubmissionResult`` with ``success=True`` on an HTTP 2xx response.
            Local validation failures and transport errors are reported with
            ``http_status=0`` and a populated ``error``.
        """
        if not is_valid_total(total):
            logger.error("Refusing to submit invalid power value: %d W", total)
            return SubmissionResult(
                success=False,
                error=f"Invalid power value: {total} W (out of range)",
            )

        payload = build_payload(total, now or datetime.now().astimezone(), enrichment)
        logger.info("Submitting status to PVOutput: %s", payload)

        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout) as client:
                response = await client.post(
                    self._url,
                    data=payload,
                    headers={
                        "X-Pvoutput-Apikey": self._api_key,
                        "X-Pvoutput-SystemId": self._system_id,
                        "User-Agent": USER_AGENT,
                    },
                )
        except httpx.HTTPError as exc:
            logger.warning("Submission failed (network error): %s", exc)
            return SubmissionResult(success=False, error=str(exc) or exc.__class__.__name__)

        body = response.text.strip()
        if 200 <= response.status_code < 300:
            logger.info("Submission accepted (HTTP %d): %s", response.status_code, body)
            return SubmissionResult(
                success=True,
                http_status=response.status_code,
                response_body=body,
            )

        logger.warning("Submission rejected (HTTP %d): %s", response.status_code, body)
        return SubmissionResult(
            success=False,
            http_status=response.status_code,
            response_body=body,
            error=f"HTTP {response.status_code}",
        )
