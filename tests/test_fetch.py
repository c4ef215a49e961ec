"""Retry and timeout behaviour of the shared fetch helper."""

from __future__ import annotations

import httpx
import pytest

from filmoteca.errors import FetchTimeoutError, HttpError, NetworkError
from filmoteca.services.fetch import FetchPolicy, fetch


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://api.example.com"
    )


@pytest.mark.anyio("asyncio")
async def test_fetch_retries_server_errors_with_linear_backoff() -> None:
    statuses = iter([500, 500, 200])
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(next(statuses), json={"ok": True})

    sleep = RecordingSleep()
    policy = FetchPolicy(timeout=5.0, max_retries=3, backoff_base=0.25)
    async with _client(handler) as client:
        response = await fetch(client, "GET", "/movie/1", policy=policy, sleep=sleep)

    assert response.status_code == 200
    assert len(calls) == 3
    assert sleep.delays == [0.25, 0.5]


@pytest.mark.anyio("asyncio")
async def test_fetch_raises_client_errors_without_retry() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(404, json={"status_message": "not found"})

    sleep = RecordingSleep()
    async with _client(handler) as client:
        with pytest.raises(HttpError) as excinfo:
            await fetch(client, "GET", "/movie/0", policy=FetchPolicy(max_retries=3), sleep=sleep)

    assert excinfo.value.status == 404
    assert len(calls) == 1
    assert sleep.delays == []


@pytest.mark.anyio("asyncio")
async def test_fetch_retries_rate_limits_then_raises_last_error() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(429 if len(calls) < 3 else 503)

    sleep = RecordingSleep()
    async with _client(handler) as client:
        with pytest.raises(HttpError) as excinfo:
            await fetch(
                client,
                "GET",
                "/movie/1",
                policy=FetchPolicy(max_retries=2, backoff_base=1.0),
                sleep=sleep,
            )

    assert excinfo.value.status == 503
    assert len(calls) == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.anyio("asyncio")
async def test_fetch_retries_transport_failures() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("unreachable", request=request)
        return httpx.Response(200, text="<html></html>")

    sleep = RecordingSleep()
    async with _client(handler) as client:
        response = await fetch(client, "GET", "/title/tt1/", policy=FetchPolicy(), sleep=sleep)

    assert response.text == "<html></html>"
    assert len(calls) == 2


@pytest.mark.anyio("asyncio")
async def test_fetch_reports_network_error_when_budget_exhausted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with _client(handler) as client:
        with pytest.raises(NetworkError):
            await fetch(
                client,
                "GET",
                "/title/tt1/",
                policy=FetchPolicy(max_retries=1),
                sleep=RecordingSleep(),
            )


@pytest.mark.anyio("asyncio")
async def test_fetch_converts_timeouts() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        with pytest.raises(FetchTimeoutError) as excinfo:
            await fetch(
                client,
                "GET",
                "/slow",
                policy=FetchPolicy(timeout=1.0, max_retries=2),
                sleep=RecordingSleep(),
            )

    assert isinstance(excinfo.value, TimeoutError)
    assert len(calls) == 3


@pytest.mark.parametrize("kwargs", [{"timeout": 0}, {"max_retries": -1}])
def test_fetch_policy_rejects_unusable_values(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        FetchPolicy(**kwargs)
