"""
Async HTTP fetcher for the Deye inverter status page.

Issues a bounded-timeout GET per attempt, with a fixed User-Agent and
``Connection: close``, and retries with exponential backoff:

- attempt 1 fails -> sleep ``base_delay_s``
- attempt 2 fails -> sleep ``2 * base_delay_s``
- ... no sleep after the final attempt.

A response counts as a success when its body is non-empty and its status is
in [200, 400).  Errors are never raised to the caller; the outcome is always
a :class:`~collector.src.models.FetchResult`.

CHANGELOG:
- 2026-10-18: Report malformed device URLs as a failed attempt
- 2026-10-18: Record status_code of the last response in FetchResult
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from collector.src.models import DeviceTarget, FetchResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USER_AGENT: str = "DeyeMonitor/2.1"
"""Identifying client header sent to devices and remote services."""

DEFAULT_TIMEOUT_S: float = 10.0
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_BASE_DELAY_S: float = 5.0


def backoff_delay(attempt: int, base_delay_s: float) -> float:
    """Return the sleep after failed *attempt* (1-based)."""
    return base_delay_s * (2 ** (attempt - 1))


async def fetch_device(
    target: DeviceTarget,
    *,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay_s: float = DEFAULT_BASE_DELAY_S,
) -> FetchResult:
    """Fetch the status page of *target* with retry and exponential backoff.

    Args:
        target: The device endpoint to contact.
        timeout_s: Per-attempt request timeout in seconds.
        max_retries: Maximum number of attempts (>= 1).
        base_delay_s: Backoff base in seconds.

    Returns:
        ``FetchResult(success=True, body=...)`` on the first usable response,
        otherwise ``FetchResult(success=False, error=...)`` carrying the last
        observed error after *max_retries* attempts.
    """
    attempts = max(1, max_retries)
    last_error: str | None = None
    last_status: int | None = None

    for attempt in range(1, attempts + 1):
        try:
            async with httpx.AsyncClient(
                auth=(target.username, target.password),
                timeout=timeout_s,
                headers={"User-Agent": USER_AGENT, "Connection": "close"},
            ) as client:
                response = await client.get(target.url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            last_error = str(exc) or exc.__class__.__name__
            last_status = None
            logger.warning(
                "Device %s attempt %d/%d failed: %s",
                target.label,
                attempt,
                attempts,
                last_error,
            )
        else:
            last_status = response.status_code
            body = response.text
            status_ok = 200 <= response.status_code < 400
            if body and status_ok:
                return FetchResult(
                    success=True,
                    body=body,
                    attempts=attempt,
                    status_code=response.status_code,
                )
            last_error = (
                "Empty response" if status_ok else f"HTTP {response.status_code}"
            )
            logger.warning(
                "Device %s attempt %d/%d rejected: %s",
                target.label,
                attempt,
                attempts,
                last_error,
            )

        if attempt < attempts:
            delay = backoff_delay(attempt, base_delay_s)
            logger.info("Backoff: sleeping %.1fs before retrying %s", delay, target.label)
            await asyncio.sleep(delay)

    return FetchResult(
        success=False,
        error=last_error or "Unknown error",
        attempts=attempts,
        status_code=last_status,
    )
