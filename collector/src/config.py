"""
Collector configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or a ``.env``
file; there are no hardcoded hosts or credentials.  List-valued settings
(``DEVICE_PORTS``, ``WEATHER_STATIONS``) are given as JSON arrays.

CHANGELOG:
- 2026-10-18: Add weather, Shelly and statistics settings
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from collector.src.models import DeviceTarget
from collector.src.uploader import PVOUTPUT_STATUS_URL

logger = logging.getLogger(__name__)


class CollectorSettings(BaseSettings):
    """Configuration for one collector run.

    Required variables must be set; optional variables have sensible
    defaults.

    Attributes:
        device_host: Inverter IP address / hostname on the local LAN.
        device_ports: HTTP ports, one per inverter, polled in this order.
        device_username: Basic-auth user of the inverter web UI.
        device_password: Basic-auth password of the inverter web UI.
        device_path: Status page path embedding ``webdata_now_p``.
        http_timeout_s: Per-attempt device request timeout.
        max_retries: Attempts per device (>= 1).
        base_delay_s: Exponential backoff base between attempts.
        delay_between_devices_s: Pause after every device except the last.
        pvoutput_api_key: PVOutput API key.
        pvoutput_system_id: Numeric PVOutput system id.
        pvoutput_url: PVOutput addstatus endpoint (must be HTTPS).
        submit_timeout_s: PVOutput request timeout.
        weather_enabled: Attach Weather Underground values when True.
        weather_api_key: Weather Underground API key.
        weather_stations: Station ids in order of preference.
        weather_timeout_s: Weather request timeout.
        shelly_enabled: Attach Shelly EM voltage when True.
        shelly_url: Shelly EM ``/status`` URL.
        shelly_timeout_s: Shelly request timeout.
        shelly_phase: Meter phase index (0=A, 1=B, 2=C).
        stats_path: JSON history file.
        stats_retention_days: Days of history kept.
        timezone: IANA timezone used for PVOutput date/time and history keys.
    """

    device_host: str
    device_ports: list[int]
    device_username: str = "admin"
    device_password: str = "admin"
    device_path: str = "/status.html"
    http_timeout_s: float = 10.0
    max_retries: int = 3
    base_delay_s: float = 5.0
    delay_between_devices_s: float = 5.0

    pvoutput_api_key: str
    pvoutput_system_id: str
    pvoutput_url: str = PVOUTPUT_STATUS_URL
    submit_timeout_s: float = 30.0

    weather_enabled: bool = False
    weather_api_key: str = ""
    weather_stations: list[str] = []
    weather_timeout_s: float = 10.0

    shelly_enabled: bool = False
    shelly_url: str = ""
    shelly_timeout_s: float = 5.0
    shelly_phase: int = 2

    stats_path: str = "daily_stats.json"
    stats_retention_days: int = 30
    timezone: str = "UTC"

    @field_validator("device_host", "pvoutput_api_key")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only values."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("device_ports")
    @classmethod
    def device_ports_must_not_be_empty(cls, v: list[int]) -> list[int]:
        """At least one device port is required."""
        if not v:
            raise ValueError("DEVICE_PORTS must list at least one port")
        return v

    @field_validator("pvoutput_system_id")
    @classmethod
    def system_id_must_be_numeric(cls, v: str) -> str:
        """PVOutput system ids are numeric."""
        if not v.strip().isdigit():
            raise ValueError("PVOUTPUT_SYSTEM_ID must be numeric")
        return v.strip()

    @field_validator("pvoutput_url")
    @classmethod
    def pvoutput_url_must_be_https(cls, v: str) -> str:
        """The API key travels in a header, so plain HTTP is rejected."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"PVOUTPUT_URL must use HTTPS (got: '{v[:30]}...')")
        return v

    @field_validator("max_retries")
    @classmethod
    def max_retries_must_be_positive(cls, v: int) -> int:
        """At least one attempt per device."""
        if v < 1:
            raise ValueError("MAX_RETRIES must be >= 1")
        return v

    @field_validator(
        "http_timeout_s",
        "base_delay_s",
        "delay_between_devices_s",
        "submit_timeout_s",
        "weather_timeout_s",
        "shelly_timeout_s",
    )
    @classmethod
    def must_be_non_negative(cls, v: float) -> float:
        """Delays and timeouts cannot be negative."""
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("shelly_phase")
    @classmethod
    def shelly_phase_must_be_valid(cls, v: int) -> int:
        """Shelly EM exposes phases A, B and C."""
        if v < 0 or v > 2:
            raise ValueError("SHELLY_PHASE must be 0, 1 or 2")
        return v

    @field_validator("stats_retention_days")
    @classmethod
    def retention_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("STATS_RETENTION_DAYS must be >= 1")
        return v

    @field_validator("timezone")
    @classmethod
    def timezone_must_exist(cls, v: str) -> str:
        """Validate the IANA timezone name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown TIMEZONE '{v}'") from exc
        return v

    @model_validator(mode="after")
    def _enabled_collaborators_need_endpoints(self) -> CollectorSettings:
        """Weather and Shelly need their credentials/URL when enabled."""
        if self.weather_enabled and (not self.weather_api_key or not self.weather_stations):
            raise ValueError("WEATHER_ENABLED requires WEATHER_API_KEY and WEATHER_STATIONS")
        if self.shelly_enabled and not self.shelly_url:
            raise ValueError("SHELLY_ENABLED requires SHELLY_URL")
        return self

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def device_targets(self) -> list[DeviceTarget]:
        """Build one DeviceTarget per valid port, in configured order.

        Ports outside 1..65535 are skipped with a warning.
        """
        targets: list[DeviceTarget] = []
        for port in self.device_ports:
            if port < 1 or port > 65535:
                logger.warning("Invalid device port %d, skipping", port)
                continue
            targets.append(
                DeviceTarget(
                    index=len(targets),
                    host=self.device_host,
                    port=port,
                    username=self.device_username,
                    password=self.device_password,
                    path=self.device_path,
                )
            )
        return targets

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
