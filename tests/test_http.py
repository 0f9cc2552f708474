from __future__ import annotations

from typing import List

import httpx
import pytest
from tenacity import wait_none

from ton_yields.http import HttpClient, is_retryable


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(HttpClient.get.retry, "wait", wait_none())
    monkeypatch.setattr(HttpClient.post.retry, "wait", wait_none())


def _client(statuses: List[int]):
    calls: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        status = statuses[min(len(calls), len(statuses)) - 1]
        return httpx.Response(status, json={"ok": status == 200})

    return HttpClient(transport=httpx.MockTransport(handler)), calls


@pytest.mark.anyio
async def test_client_errors_are_not_retried():
    client, calls = _client([404])
    with pytest.raises(httpx.HTTPStatusError):
        await client.get("https://api.example/pools")
    await client.aclose()
    assert calls == ["GET"]


@pytest.mark.anyio
async def test_server_errors_and_rate_limits_are_retried():
    client, calls = _client([503, 429, 200])
    resp = await client.post("https://api.example/graphql", json={"query": "{}"})
    await client.aclose()
    assert resp.json() == {"ok": True}
    assert calls == ["POST", "POST", "POST"]


@pytest.mark.anyio
async def test_gives_up_after_three_attempts():
    client, calls = _client([502])
    with pytest.raises(httpx.HTTPStatusError):
        await client.get("https://api.example/pools")
    await client.aclose()
    assert len(calls) == 3


def test_is_retryable():
    request = httpx.Request("GET", "https://api.example")
    assert is_retryable(httpx.ConnectError("refused", request=request))
    assert is_retryable(httpx.ReadTimeout("slow", request=request))
    assert not is_retryable(ValueError("bad json"))
    bad_request = httpx.Response(400, request=request)
    assert not is_retryable(httpx.HTTPStatusError("400", request=request, response=bad_request))
