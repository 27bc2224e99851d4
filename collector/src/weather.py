"""
Weather Underground client for ambient conditions at the plant.

Queries the personal-weather-station "observations/current" endpoint for each
preferred station in order and returns the first usable observation.  Never
raises: an unavailable service simply yields ``None`` and the submission goes
out without weather values.

CHANGELOG:
- 2026-10-18: Reject observations with unexpected shapes or value types
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from pydantic import ValidationError

from collector.src.fetcher import USER_AGENT
from collector.src.models import WeatherObservation

logger = logging.getLogger(__name__)

WUNDERGROUND_URL = "https://api.weather.com/v2/pws/observations/current"


def parse_observation(data: object) -> WeatherObservation | None:
    """Convert a decoded API response into a WeatherObservation.

    Returns None unless ``observations[0].metric.temp`` is present and every
    value has the expected type.
    """
    if not isinstance(data, dict):
        return None
    observations = data.get("observations")
    if not isinstance(observations, list) or not observations:
        return None
    obs = observations[0]
    if not isinstance(obs, dict):
        return None
    metric = obs.get("metric")
    if not isinstance(metric, dict) or metric.get("temp") is None:
        return None
    try:
        return WeatherObservation(
            station_id=obs.get("stationID") or "",
            temperature=metric.get("temp"),
            humidity=obs.get("humidity"),
            solar_radiation=obs.get("solarRadiation"),
            uv=obs.get("uv"),
            wind_speed=metric.get("windSpeed"),
            pressure=metric.get("pressure"),
        )
    except ValidationError as exc:
        logger.warning("Weather observation has invalid values (%d error(s))", exc.error_count())
        return None


async def fetch_weather(
    *,
    api_key: str,
    stations: Sequence[str],
    timeout_s: float = 10.0,
) -> WeatherObservation | None:
    """Return the current observation from the first answering station.

    Args:
        api_key: Weather Underground API key.
        stations: Station ids, in order of preference.
        timeout_s: Per-request timeout in seconds.
    """
    async with httpx.AsyncClient(
        verify=True,
        timeout=timeout_s,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        for station in stations:
            params = {
                "stationId": station,
                "format": "json",
                "units": "m",
                "apiKey": api_key,
            }
            try:
                response = await client.get(WUNDERGROUND_URL, params=params)
            except httpx.HTTPError as exc:
                logger.warning("Weather station %s unreachable: %s", station, exc)
                continue

            if response.status_code != 200:
                logger.warning(
                    "Weather station %s returned HTTP %d", station, response.status_code
                )
                continue

            try:
                observation = parse_observation(response.json())
            except ValueError:
                logger.warning("Weather station %s returned invalid JSON", station)
                continue

            if observation is None:
                logger.warning("Weather station %s has no current observation", station)
                continue

            logger.info(
                "Weather from %s: %.1f C, humidity=%s",
                station,
                observation.temperature,
                observation.humidity,
            )
            return observation

    logger.warning("No weather data available from %d station(s)", len(stations))
    return None
