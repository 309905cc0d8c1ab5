from __future__ import annotations

import json
from typing import Any, Dict, List

import httpx
import pytest

from chain.rate_limiter import SlidingWindowRateLimiter
from chain.rpc import JsonRpcClient, RpcResponseError, RpcTransportError


async def _no_sleep(_: float) -> None:
    return None


def _client(handler, **kw) -> JsonRpcClient:
    transport = httpx.MockTransport(handler)
    return JsonRpcClient(
        "https://rpc.test",
        client=httpx.AsyncClient(transport=transport),
        sleep=_no_sleep,
        **kw,
    )


@pytest.mark.asyncio
async def test_request_returns_result_and_sends_jsonrpc_body():
    seen: List[Dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0xa86a"})

    rpc = _client(handler)
    assert await rpc.request("eth_chainId") == "0xa86a"
    assert seen[0]["method"] == "eth_chainId"
    assert seen[0]["params"] == []
    assert seen[0]["jsonrpc"] == "2.0"


@pytest.mark.asyncio
async def test_error_object_raises_with_short_message_and_is_not_retried():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": 3, "message": "execution reverted", "data": "0x08c379a0"}},
        )

    rpc = _client(handler)
    with pytest.raises(RpcResponseError) as ei:
        await rpc.request("eth_call", [{"to": "0x0"}, "latest"])
    assert ei.value.short_message == "execution reverted"
    assert ei.value.code == 3
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_retries_on_503_then_succeeds():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x1"})

    rpc = _client(handler, retry_count=3)
    assert await rpc.request("eth_blockNumber") == "0x1"
    assert calls["count"] == 3


@pytest.mark.asyncio
async def test_gives_up_after_retry_budget():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(429, text="slow down")

    rpc = _client(handler, retry_count=2)
    with pytest.raises(RpcTransportError):
        await rpc.request("eth_blockNumber")
    assert calls["count"] == 3


@pytest.mark.asyncio
async def test_client_error_status_is_not_retried():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(401, text="unauthorized")

    rpc = _client(handler)
    with pytest.raises(RpcTransportError) as ei:
        await rpc.request("eth_blockNumber")
    assert "401" in str(ei.value)
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_connection_errors_are_retried():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": []})

    rpc = _client(handler)
    assert await rpc.request("eth_accounts") == []
    assert calls["count"] == 2


def test_url_is_required():
    with pytest.raises(ValueError):
        JsonRpcClient("")


@pytest.mark.asyncio
async def test_burst_beyond_rate_limit_waits_instead_of_failing():
    now = [0.0]
    waits: List[float] = []

    async def advance(dt: float) -> None:
        waits.append(dt)
        now[0] += dt

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x1"})

    rpc = _client(handler, max_per_second=1)
    rpc._limiter = SlidingWindowRateLimiter(max_calls=1, per_seconds=1.0, clock=lambda: now[0], sleep=advance)

    assert [await rpc.request("eth_blockNumber") for _ in range(3)] == ["0x1"] * 3
    assert waits
    assert now[0] >= 2.0
