"""
Pydantic models for the collect-aggregate-submit pipeline.

Defines the value objects that flow between the fetcher, extractor,
aggregator, uploader and statistics store.  None of them perform I/O; every
I/O boundary in the package returns one of these as an outcome value instead
of raising.

CHANGELOG:
- 2026-10-18: Add Enrichment.from_sources to merge weather and voltage readings
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

MIN_DEVICE_POWER_W: int = 0
MAX_DEVICE_POWER_W: int = 1_000_000
"""Accepted range for a single device reading (1 MW upper bound)."""


class DeviceTarget(BaseModel):
    """One inverter HTTP endpoint, immutable for the lifetime of a run.

    Attributes:
        index: Zero-based position of the device in the configured order.
        host: Inverter IP address or hostname.
        port: HTTP port of the inverter web UI.
        username: Basic-auth user for the inverter web UI.
        password: Basic-auth password for the inverter web UI.
        path: Path of the status page that embeds the power variable.
    """

    model_config = ConfigDict(frozen=True)

    index: int
    host: str
    port: int
    username: str = "admin"
    password: str = "admin"
    path: str = "/status.html"

    @property
    def url(self) -> str:
        """Status page URL without credentials."""
        return f"http://{self.host}:{self.port}{self.path}"

    @property
    def label(self) -> str:
        """Log-safe identifier (``host:port``)."""
        return f"{self.host}:{self.port}"


class FetchResult(BaseModel):
    """Outcome of contacting one device, including every retry.

    Attributes:
        success: True when a usable response body was received.
        body: Response body on success.
        error: Last transport error or ``HTTP <code>`` string on failure.
        attempts: Number of GET attempts made (>= 1).
        status_code: HTTP status of the last response, if any was received.
    """

    success: bool
    body: str | None = None
    error: str | None = None
    attempts: int = Field(ge=1)
    status_code: int | None = None


class PowerReading(BaseModel):
    """Per-device result after extraction.

    ``value`` is ``None`` when the fetch failed or no valid power could be
    extracted from the body.
    """

    device_index: int
    label: str
    value: int | None = None
    attempts: int = 1
    error: str | None = None


class AggregateTotal(BaseModel):
    """Combined plant power after fallback substitution.

    Attributes:
        total: Sum of valid readings plus the fallback average for every
            failed device, in watts. Forced to 0 when nothing succeeded.
        successful_count: Devices that produced a valid reading.
        failed_count: Devices without a valid reading.
        fallback_count: Devices substituted with the average.
        average: Rounded average of valid readings, or ``None`` when there
            were none.
    """

    total: int
    successful_count: int
    failed_count: int
    fallback_count: int
    average: int | None = None


class SubmissionResult(BaseModel):
    """Outcome of a single PVOutput status POST."""

    success: bool
    http_status: int = 0
    response_body: str = ""
    error: str = ""


class WeatherObservation(BaseModel):
    """Current observation from a Weather Underground personal weather station.

    Units are metric: degrees Celsius, percent, W/m2, km/h and hPa.
    """

    station_id: str = ""
    temperature: float | None = None
    humidity: float | None = None
    solar_radiation: float | None = None
    uv: float | None = None
    wind_speed: float | None = None
    pressure: float | None = None


class VoltageReading(BaseModel):
    """Grid voltage and power for one phase of a Shelly EM meter."""

    voltage: float | None = None
    power: float | None = None
    phase: str


class Enrichment(BaseModel):
    """Optional extended values attached to a status submission.

    Every field may be ``None``; the uploader range-checks each one
    independently and silently omits those that fail.
    """

    temperature: float | None = None
    voltage: float | None = None
    humidity: float | None = None
    solar_radiation: float | None = None
    uv: float | None = None
    wind_speed: float | None = None
    pressure: float | None = None

    @classmethod
    def from_sources(
        cls,
        weather: WeatherObservation | None,
        voltage: VoltageReading | None,
    ) -> Enrichment:
        """Merge the weather and voltage collaborators into one enrichment set."""
        fields: dict[str, float | None] = {}
        if weather is not None:
            fields.update(
                temperature=weather.temperature,
                humidity=weather.humidity,
                solar_radiation=weather.solar_radiation,
                uv=weather.uv,
                wind_speed=weather.wind_speed,
                pressure=weather.pressure,
            )
        if voltage is not None:
            fields["voltage"] = voltage.voltage
        return cls(**fields)


class ExecutionRecord(BaseModel):
    """One run's outcome as stored in the daily history.

    Never mutated after it has been appended to a day bucket.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: str
    power: int
    success: bool
    duration_s: float
    devices_ok: int
    devices_failed: int
    fallback_count: int = 0
    total_attempts: int
    http_code: int = 0
    error: str | None = None
    temperature: float | None = None
    voltage: float | None = None


class DailySummary(BaseModel):
    """Running per-day aggregate, updated incrementally on every append.

    ``power_values`` and the max/min/avg fields only cover executions whose
    submission succeeded.
    """

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    power_values: list[int] = Field(default_factory=list)
    max_power: int | None = None
    min_power: int | None = None
    avg_power: float | None = None
    last_update: str | None = None


class DailyBucket(BaseModel):
    """Everything stored for one calendar date (``YYYYMMDD`` key)."""

    executions: list[ExecutionRecord] = Field(default_factory=list)
    summary: DailySummary = Field(default_factory=DailySummary)
