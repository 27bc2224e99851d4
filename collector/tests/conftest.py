"""
Shared test fixtures for collector tests.

Provides environment variable fixtures for CollectorSettings configuration
tests. All collector env vars are cleaned before each test to ensure
isolation.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest

# All CollectorSettings environment variable names, used for cleanup.
_ALL_COLLECTOR_ENV_VARS = (
    "DEVICE_HOST",
    "DEVICE_PORTS",
    "DEVICE_USERNAME",
    "DEVICE_PASSWORD",
    "DEVICE_PATH",
    "HTTP_TIMEOUT_S",
    "MAX_RETRIES",
    "BASE_DELAY_S",
    "DELAY_BETWEEN_DEVICES_S",
    "PVOUTPUT_API_KEY",
    "PVOUTPUT_SYSTEM_ID",
    "PVOUTPUT_URL",
    "SUBMIT_TIMEOUT_S",
    "WEATHER_ENABLED",
    "WEATHER_API_KEY",
    "WEATHER_STATIONS",
    "WEATHER_TIMEOUT_S",
    "SHELLY_ENABLED",
    "SHELLY_URL",
    "SHELLY_TIMEOUT_S",
    "SHELLY_PHASE",
    "STATS_PATH",
    "STATS_RETENTION_DAYS",
    "TIMEZONE",
)


@pytest.fixture(autouse=True)
def _clean_collector_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all collector env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_COLLECTOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required and optional environment variables for CollectorSettings."""
    env = {
        "DEVICE_HOST": "192.168.1.50",
        "DEVICE_PORTS": "[8081, 8082, 8083]",
        "DEVICE_USERNAME": "installer",
        "DEVICE_PASSWORD": "s3cret",
        "DEVICE_PATH": "/status.html",
        "HTTP_TIMEOUT_S": "8",
        "MAX_RETRIES": "4",
        "BASE_DELAY_S": "2",
        "DELAY_BETWEEN_DEVICES_S": "3",
        "PVOUTPUT_API_KEY": "pv-api-key-123",
        "PVOUTPUT_SYSTEM_ID": "98765",
        "SUBMIT_TIMEOUT_S": "20",
        "WEATHER_ENABLED": "true",
        "WEATHER_API_KEY": "wu-key",
        "WEATHER_STATIONS": '["ISTATION1", "ISTATION2"]',
        "SHELLY_ENABLED": "true",
        "SHELLY_URL": "http://192.168.1.60/status",
        "SHELLY_PHASE": "1",
        "STATS_PATH": "/tmp/test-stats.json",
        "STATS_RETENTION_DAYS": "15",
        "TIMEZONE": "America/Sao_Paulo",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {
        "DEVICE_HOST": "10.0.0.20",
        "DEVICE_PORTS": "[80]",
        "PVOUTPUT_API_KEY": "key-xyz",
        "PVOUTPUT_SYSTEM_ID": "12345",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env
