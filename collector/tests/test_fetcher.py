"""
Unit tests for the device fetcher.

Tests use a mocked httpx.AsyncClient and a mocked asyncio.sleep.

Tests verify:
- A 2xx/3xx non-empty response is a success on the first attempt.
- Failures are retried with exponential backoff (5s, 10s, then stop).
- HTTP errors and empty bodies are failures carrying a status string.
- Requests carry basic auth, the identifying User-Agent and Connection: close.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from collector.src.fetcher import USER_AGENT, backoff_delay, fetch_device
from collector.src.models import DeviceTarget

_PAGE = '<script>var webdata_now_p = "2500";</script>'


def _make_target() -> DeviceTarget:
    return DeviceTarget(
        index=0,
        host="192.168.1.50",
        port=8081,
        username="admin",
        password="pw",
        path="/status.html",
    )


def _make_response(status_code: int = 200, text: str = _PAGE) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


def _make_mock_client(side_effect: list[object]) -> AsyncMock:
    """Create an AsyncClient mock whose get() yields *side_effect* in order."""
    client = AsyncMock()
    client.get = AsyncMock(side_effect=side_effect)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


class TestFetchSuccess:
    """Usable responses are returned immediately."""

    @pytest.mark.asyncio
    async def test_first_attempt_success(self) -> None:
        client = _make_mock_client([_make_response()])
        with (
            patch("collector.src.fetcher.httpx.AsyncClient", return_value=client),
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            result = await fetch_device(_make_target(), max_retries=3, base_delay_s=5)

        assert result.success is True
        assert result.body == _PAGE
        assert result.attempts == 1
        assert result.status_code == 200
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redirect_with_body_is_success(self) -> None:
        client = _make_mock_client([_make_response(status_code=302)])
        with (
            patch("collector.src.fetcher.httpx.AsyncClient", return_value=client),
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock),
        ):
            result = await fetch_device(_make_target())

        assert result.success is True

    @pytest.mark.asyncio
    async def test_request_uses_url_auth_and_headers(self) -> None:
        client = _make_mock_client([_make_response()])
        with (
            patch(
                "collector.src.fetcher.httpx.AsyncClient", return_value=client
            ) as mock_cls,
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock),
        ):
            await fetch_device(_make_target(), timeout_s=7)

        client.get.assert_awaited_once_with("http://192.168.1.50:8081/status.html")
        kwargs = mock_cls.call_args.kwargs
        assert kwargs["auth"] == ("admin", "pw")
        assert kwargs["timeout"] == 7
        assert kwargs["headers"]["User-Agent"] == USER_AGENT
        assert kwargs["headers"]["Connection"] == "close"


class TestFetchRetry:
    """Failures are retried with exponential backoff."""

    @pytest.mark.asyncio
    async def test_backoff_sequence_on_repeated_failure(self) -> None:
        client = _make_mock_client([httpx.ConnectError("connection refused")] * 3)
        with (
            patch("collector.src.fetcher.httpx.AsyncClient", return_value=client),
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            result = await fetch_device(_make_target(), max_retries=3, base_delay_s=5)

        assert [c.args[0] for c in mock_sleep.call_args_list] == [5, 10]
        assert result.success is False
        assert result.attempts == 3
        assert result.error == "connection refused"
        assert result.body is None

    @pytest.mark.asyncio
    async def test_success_after_http_error(self) -> None:
        client = _make_mock_client([_make_response(status_code=500), _make_response()])
        with (
            patch("collector.src.fetcher.httpx.AsyncClient", return_value=client),
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            result = await fetch_device(_make_target(), max_retries=3, base_delay_s=5)

        assert result.success is True
        assert result.attempts == 2
        mock_sleep.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_http_status_reported_as_error(self) -> None:
        client = _make_mock_client([_make_response(status_code=404, text="Not Found")] * 2)
        with (
            patch("collector.src.fetcher.httpx.AsyncClient", return_value=client),
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock),
        ):
            result = await fetch_device(_make_target(), max_retries=2, base_delay_s=1)

        assert result.success is False
        assert result.error == "HTTP 404"
        assert result.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_body_is_failure(self) -> None:
        client = _make_mock_client([_make_response(text="")])
        with (
            patch("collector.src.fetcher.httpx.AsyncClient", return_value=client),
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            result = await fetch_device(_make_target(), max_retries=1)

        assert result.success is False
        assert result.error == "Empty response"
        assert result.attempts == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self) -> None:
        client = _make_mock_client(
            [httpx.ReadTimeout("timed out"), _make_response()]
        )
        with (
            patch("collector.src.fetcher.httpx.AsyncClient", return_value=client),
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock),
        ):
            result = await fetch_device(_make_target(), max_retries=3, base_delay_s=5)

        assert result.success is True
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_invalid_url_is_reported_not_raised(self) -> None:
        client = _make_mock_client(
            [httpx.InvalidURL("Invalid non-printable ASCII character in URL")] * 2
        )
        with (
            patch("collector.src.fetcher.httpx.AsyncClient", return_value=client),
            patch("collector.src.fetcher.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            result = await fetch_device(_make_target(), max_retries=2, base_delay_s=5)

        assert result.success is False
        assert result.attempts == 2
        assert result.status_code is None
        assert "Invalid" in (result.error or "")
        assert [c.args[0] for c in mock_sleep.await_args_list] == [5]


class TestBackoffDelay:
    """Backoff grows as base * 2^(attempt-1)."""

    def test_delays(self) -> None:
        assert [backoff_delay(n, 5) for n in (1, 2, 3, 4)] == [5, 10, 20, 40]
