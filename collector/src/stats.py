"""
Daily statistics store backed by a single JSON document.

Keeps one bucket per calendar date (``YYYYMMDD``) holding the execution log
and a running summary.  Every append is a whole-document read-modify-write:

1. Load the history (missing, empty or corrupt file -> empty history).
2. Create today's bucket if absent and append the ExecutionRecord.
3. Update total/successful/failed counts and max/min/avg power incrementally.
4. Drop every bucket dated strictly before ``today - retention_days``.
5. Write the document to a sibling temp file and ``os.replace`` it in.

The rename makes each write atomic, but two overlapping runs can still lose
one of their updates; at a five-minute cadence this is accepted.

A corrupt file is moved aside to ``<name>.corrupt`` before the new history is
written so the old content remains available for inspection.

CHANGELOG:
- 2026-10-18: Treat a history that is not valid UTF-8 as corrupt
- 2026-10-18: Move corrupt history aside instead of overwriting it
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import os
from datetime import date, timedelta
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from collector.src.models import DailyBucket, DailySummary, ExecutionRecord

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS: int = 30
DATE_KEY_FORMAT: str = "%Y%m%d"

History = dict[str, DailyBucket]
_HISTORY_ADAPTER: TypeAdapter[History] = TypeAdapter(History)


def date_key(day: date) -> str:
    """Return the history key (``YYYYMMDD``) for *day*."""
    return day.strftime(DATE_KEY_FORMAT)


def update_summary(summary: DailySummary, record: ExecutionRecord) -> None:
    """Fold *record* into *summary* in place."""
    summary.total_executions += 1
    summary.last_update = record.timestamp
    if not record.success:
        summary.failed_executions += 1
        return

    summary.successful_executions += 1
    summary.power_values.append(record.power)
    summary.max_power = (
        record.power if summary.max_power is None else max(summary.max_power, record.power)
    )
    summary.min_power = (
        record.power if summary.min_power is None else min(summary.min_power, record.power)
    )
    summary.avg_power = round(sum(summary.power_values) / len(summary.power_values), 1)


def prune_history(history: History, today: date, retention_days: int) -> list[str]:
    """Delete buckets older than ``today - retention_days``; return removed keys."""
    cutoff = date_key(today - timedelta(days=retention_days))
    expired = sorted(key for key in history if key < cutoff)
    for key in expired:
        del history[key]
    return expired


class DailyStatsStore:
    """Rolling per-day execution history in a JSON file.

    Args:
        path: Filesystem path of the history document. Accepts str or Path.
        retention_days: Buckets older than this many days before the append
            date are deleted on every write.

    Usage::

        store = DailyStatsStore("daily_stats.json")
        store.append(date.today(), record)
        summary = store.load(date.today())
    """

    def __init__(
        self,
        path: str | Path,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> None:
        self.path = Path(path)
        self.retention_days = retention_days

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load_history(self) -> History:
        """Return the whole history, or an empty one if it cannot be read."""
        history, _ = self._read()
        return history

    def load(self, day: date) -> DailySummary | None:
        """Return the summary for *day*, or None when there is no bucket."""
        bucket = self.load_history().get(date_key(day))
        return bucket.summary if bucket is not None else None

    def append(self, day: date, record: ExecutionRecord) -> bool:
        """Append *record* to the bucket of *day* and persist the history.

        Returns:
            True if the history was written, False on a write failure
            (logged, never raised).
        """
        history, corrupt = self._read()
        key = date_key(day)

        bucket = history.setdefault(key, DailyBucket())
        bucket.executions.append(record)
        update_summary(bucket.summary, record)

        expired = prune_history(history, day, self.retention_days)
        if expired:
            logger.info("Pruned %d expired day(s) from history: %s", len(expired), expired)

        if corrupt:
            self._move_aside()
        return self._write(history)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _read(self) -> tuple[History, bool]:
        """Load the document; the flag is True when the file was corrupt."""
        if not self.path.exists():
            return {}, False
        try:
            raw = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            logger.warning(
                "History %s is corrupt, starting with empty history (%s)", self.path, exc
            )
            return {}, True
        except OSError as exc:
            logger.warning("Could not read history %s: %s", self.path, exc)
            return {}, False
        if not raw.strip():
            return {}, False
        try:
            return _HISTORY_ADAPTER.validate_json(raw), False
        except ValidationError as exc:
            logger.warning(
                "History %s is corrupt, starting with empty history (%d error(s))",
                self.path,
                exc.error_count(),
            )
            return {}, True

    def _move_aside(self) -> None:
        backup = self.path.with_name(self.path.name + ".corrupt")
        try:
            os.replace(self.path, backup)
        except OSError as exc:
            logger.warning("Could not move corrupt history to %s: %s", backup, exc)
        else:
            logger.warning("Corrupt history preserved as %s", backup)

    def _write(self, history: History) -> bool:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(_HISTORY_ADAPTER.dump_json(history, indent=2))
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error("Failed to write history %s: %s", self.path, exc)
            return False
        return True
