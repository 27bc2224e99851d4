"""
Single-run entry point for the Deye-to-PVOutput collector.

Meant to be started by an external scheduler (e.g. cron every 5 minutes).
One execution runs strictly sequentially:

1. **Poll**: fetch every inverter in configured order (retry + backoff per
   device, fixed pause between devices) and extract its power value.
2. **Aggregate**: sum the readings, substituting the average of the
   successful devices for the failed ones.
3. **Enrich**: optionally read Weather Underground and Shelly EM values.
4. **Submit**: POST the total to PVOutput once, unless no device produced a
   usable value.
5. **Record**: append the ExecutionRecord to the daily statistics file.

Each stage reports its outcome as a value; nothing raises across stages.
The process exits 0 when PVOutput accepted the status and 1 otherwise, and
2 when the configuration is invalid.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-18: Record enrichment values in the execution history
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import sys
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from collector.src.aggregator import aggregate
from collector.src.extractor import extract_power
from collector.src.fetcher import fetch_device
from collector.src.models import (
    AggregateTotal,
    DeviceTarget,
    Enrichment,
    ExecutionRecord,
    PowerReading,
    SubmissionResult,
)
from collector.src.shelly import fetch_voltage
from collector.src.stats import DailyStatsStore
from collector.src.uploader import Uploader
from collector.src.weather import fetch_weather

if TYPE_CHECKING:
    from collector.src.config import CollectorSettings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging for the collector.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup, excluding secrets.

    The device password and API keys are never logged; keys are reduced to
    a hashed fingerprint.

    Args:
        settings: A CollectorSettings instance (or any object with the same attrs).
    """
    logger.info(
        "Collector starting with config: "
        "device_host=%s, device_ports=%s, device_path=%s, "
        "http_timeout_s=%s, max_retries=%s, base_delay_s=%s, "
        "delay_between_devices_s=%s, pvoutput_system_id=%s, "
        "weather_enabled=%s, shelly_enabled=%s, stats_path=%s, timezone=%s, "
        "pvoutput_key_masked=%s, weather_key_masked=%s",
        settings.device_host,  # type: ignore[attr-defined]
        settings.device_ports,  # type: ignore[attr-defined]
        settings.device_path,  # type: ignore[attr-defined]
        settings.http_timeout_s,  # type: ignore[attr-defined]
        settings.max_retries,  # type: ignore[attr-defined]
        settings.base_delay_s,  # type: ignore[attr-defined]
        settings.delay_between_devices_s,  # type: ignore[attr-defined]
        settings.pvoutput_system_id,  # type: ignore[attr-defined]
        settings.weather_enabled,  # type: ignore[attr-defined]
        settings.shelly_enabled,  # type: ignore[attr-defined]
        settings.stats_path,  # type: ignore[attr-defined]
        settings.timezone,  # type: ignore[attr-defined]
        _masked_token(settings.pvoutput_api_key),  # type: ignore[attr-defined]
        _masked_token(settings.weather_api_key),  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Pipeline stages (easily testable)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunOutcome:
    """Everything one execution produced.

    Attributes:
        readings: Per-device readings in configured order.
        aggregate: Fallback-filled total.
        submission: PVOutput outcome (a skipped submission is unsuccessful).
        record: The ExecutionRecord appended to the history, if any.
        history_saved: Whether the history file was written.
        exit_code: Process exit status for the scheduler.
    """

    readings: list[PowerReading]
    aggregate: AggregateTotal
    submission: SubmissionResult
    record: ExecutionRecord | None
    history_saved: bool
    exit_code: int

    @property
    def total(self) -> int:
        return self.aggregate.total


async def _read_device(
    target: DeviceTarget,
    *,
    timeout_s: float,
    max_retries: int,
    base_delay_s: float,
) -> PowerReading:
    """Fetch one device and extract its power value."""
    result = await fetch_device(
        target,
        timeout_s=timeout_s,
        max_retries=max_retries,
        base_delay_s=base_delay_s,
    )
    if not result.success:
        error = f"Failure after {result.attempts} attempts: {result.error}"
        logger.warning("Device %d (%s): %s", target.index + 1, target.label, error)
        return PowerReading(
            device_index=target.index,
            label=target.label,
            attempts=result.attempts,
            error=error,
        )

    value = extract_power(result.body or "")
    if value is None:
        error = "Could not extract valid value from HTML"
        logger.warning("Device %d (%s): %s", target.index + 1, target.label, error)
        return PowerReading(
            device_index=target.index,
            label=target.label,
            attempts=result.attempts,
            error=error,
        )

    logger.info("Device %d (%s): power captured %d W", target.index + 1, target.label, value)
    return PowerReading(
        device_index=target.index,
        label=target.label,
        value=value,
        attempts=result.attempts,
    )


async def poll_devices(
    targets: Sequence[DeviceTarget],
    *,
    timeout_s: float,
    max_retries: int,
    base_delay_s: float,
    delay_between_devices_s: float,
) -> list[PowerReading]:
    """Poll every target one at a time, pausing between devices.

    Returns:
        One PowerReading per target, in the same order.
    """
    readings: list[PowerReading] = []
    for position, target in enumerate(targets, start=1):
        logger.info("Device %d/%d: connecting to %s", position, len(targets), target.label)
        readings.append(
            await _read_device(
                target,
                timeout_s=timeout_s,
                max_retries=max_retries,
                base_delay_s=base_delay_s,
            )
        )
        if position < len(targets) and delay_between_devices_s > 0:
            logger.info("Waiting %.1fs before next device", delay_between_devices_s)
            await asyncio.sleep(delay_between_devices_s)
    return readings


async def collect_enrichment(settings: CollectorSettings) -> Enrichment | None:
    """Gather the optional weather and voltage values, or None if both are off."""
    if not settings.weather_enabled and not settings.shelly_enabled:
        return None

    weather = None
    if settings.weather_enabled:
        weather = await fetch_weather(
            api_key=settings.weather_api_key,
            stations=settings.weather_stations,
            timeout_s=settings.weather_timeout_s,
        )

    voltage = None
    if settings.shelly_enabled:
        voltage = await fetch_voltage(
            url=settings.shelly_url,
            phase=settings.shelly_phase,
            timeout_s=settings.shelly_timeout_s,
        )

    return Enrichment.from_sources(weather, voltage)


async def run_once(
    settings: CollectorSettings,
    *,
    now: datetime | None = None,
    uploader: Uploader | None = None,
    store: DailyStatsStore | None = None,
) -> RunOutcome:
    """Execute one poll-aggregate-submit-record cycle.

    Args:
        settings: Validated collector configuration.
        now: Local timestamp of the run; defaults to the current time in
            the configured timezone.
        uploader: PVOutput client; built from *settings* when omitted.
        store: Statistics store; built from *settings* when omitted.

    Returns:
        The RunOutcome, including the exit code for the scheduler.
    """
    started = time.monotonic()
    if now is None:
        now = datetime.now(tz=settings.tz)
    if uploader is None:
        uploader = Uploader(
            api_key=settings.pvoutput_api_key,
            system_id=settings.pvoutput_system_id,
            url=settings.pvoutput_url,
            timeout_s=settings.submit_timeout_s,
        )
    if store is None:
        store = DailyStatsStore(settings.stats_path, settings.stats_retention_days)

    targets = settings.device_targets()
    if not targets:
        logger.error("No valid device URLs configured")
        return RunOutcome(
            readings=[],
            aggregate=AggregateTotal(
                total=0, successful_count=0, failed_count=0, fallback_count=0
            ),
            submission=SubmissionResult(success=False, error="No valid devices configured"),
            record=None,
            history_saved=False,
            exit_code=EXIT_FAILURE,
        )

    readings = await poll_devices(
        targets,
        timeout_s=settings.http_timeout_s,
        max_retries=settings.max_retries,
        base_delay_s=settings.base_delay_s,
        delay_between_devices_s=settings.delay_between_devices_s,
    )
    total = aggregate(readings)

    enrichment: Enrichment | None = None
    if total.total > 0 or total.successful_count > 0:
        enrichment = await collect_enrichment(settings)
        submission = await uploader.submit(total.total, enrichment, now=now)
    else:
        logger.error("Skipping PVOutput submission (total = 0 and no valid devices)")
        submission = SubmissionResult(
            success=False,
            error="Skipped: no device produced a valid value",
        )

    if submission.success:
        logger.info("Sent %d W to PVOutput", total.total)
    else:
        logger.error(
            "Failed to send data to PVOutput: %s (HTTP %d)",
            submission.error or submission.response_body or "Unknown error",
            submission.http_status,
        )

    record = ExecutionRecord(
        timestamp=now.isoformat(timespec="seconds"),
        power=total.total,
        success=submission.success,
        duration_s=round(time.monotonic() - started, 2),
        devices_ok=total.successful_count,
        devices_failed=total.failed_count,
        fallback_count=total.fallback_count,
        total_attempts=sum(r.attempts for r in readings),
        http_code=submission.http_status,
        error=submission.error or None,
        temperature=enrichment.temperature if enrichment else None,
        voltage=enrichment.voltage if enrichment else None,
    )
    history_saved = store.append(now.date(), record)

    return RunOutcome(
        readings=readings,
        aggregate=total,
        submission=submission,
        record=record,
        history_saved=history_saved,
        exit_code=EXIT_OK if submission.success else EXIT_FAILURE,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    """Synchronous entrypoint: load config, run once, exit with the outcome."""
    configure_logging()

    from collector.src.config import CollectorSettings

    try:
        settings = CollectorSettings()
    except ValidationError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(EXIT_CONFIG_ERROR)

    log_config_summary(settings)
    outcome = asyncio.run(run_once(settings))
    logger.info(
        "Run finished: total=%d W, submitted=%s, exit_code=%d",
        outcome.total,
        outcome.submission.success,
        outcome.exit_code,
    )
    sys.exit(outcome.exit_code)


if __name__ == "__main__":
    main()
