from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .rate_limiter import SlidingWindowRateLimiter


logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://api.avax.network/ext/bc/C/rpc"


class RpcError(RuntimeError):
    """Base error for the JSON-RPC client."""

    short_message: Optional[str] = None


class RpcTransportError(RpcError):
    """Network failure or non-retryable HTTP status from the endpoint."""


class RpcResponseError(RpcError):
    """The endpoint answered with a JSON-RPC error object."""

    def __init__(self, code: Optional[int], message: str, data: Any = None) -> None:
        self.code = code
        self.data = data
        self.short_message = message
        detail = f"{message} (code={code})"
        if data not in (None, "", "0x"):
            detail = f"{detail}: {str(data)[:200]}"
        super().__init__(detail)


class JsonRpcClient:
    """
    Minimal asynchronous JSON-RPC 2.0 client over HTTP.

    Notes
    - Transport errors, 429 and 5xx responses are retried with exponential
      backoff starting at `retry_delay`, at most `retry_count` times.
    - JSON-RPC error objects are never retried: a reverted `eth_call` or a
      rejected `eth_sendTransaction` will not get better by asking again.
    - A local sliding-window throttle keeps bursts under public endpoint limits.
    """

    def __init__(
        self,
        url: str = DEFAULT_RPC_URL,
        *,
        timeout: float = 15.0,
        retry_count: int = 3,
        retry_delay: float = 0.9,
        max_per_second: int = 20,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not url:
            raise ValueError("url is required")
        self._url = url
        self._timeout = timeout
        self._retry_count = max(0, retry_count)
        self._retry_delay = retry_delay
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._timeout)
        self._limiter = SlidingWindowRateLimiter(max_calls=max_per_second, per_seconds=1.0)
        self._ids = itertools.count(1)
        self._sleep = sleep

    @property
    def url(self) -> str:
        return self._url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "JsonRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --------------- Public API ---------------
    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Call `method` and return the `result` member of the response.

        Raises RpcResponseError when the response carries an `error` object and
        RpcTransportError when the endpoint could not be reached.
        """
        body: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        payload = await self._post(body)
        if not isinstance(payload, dict):
            raise RpcTransportError(f"Malformed JSON-RPC response for {method}")
        err = payload.get("error")
        if err is not None:
            if isinstance(err, dict):
                raise RpcResponseError(err.get("code"), str(err.get("message") or "RPC error"), err.get("data"))
            raise RpcResponseError(None, str(err))
        if "result" not in payload:
            raise RpcTransportError(f"JSON-RPC response for {method} has no result")
        return payload["result"]

    # --------------- Internal ---------------
    async def _post(self, body: Dict[str, Any]) -> Any:
        await self._limiter.acquire(blocking=True)

        attempt = 0
        backoff = self._retry_delay
        last_exc: Optional[Exception] = None
        while True:
            try:
                resp = await self._client.post(self._url, json=body)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_exc = exc
            else:
                if resp.status_code == 200:
                    try:
                        return resp.json()
                    except ValueError as exc:
                        raise RpcTransportError("Failed to parse JSON from RPC endpoint") from exc
                if resp.status_code in (429, 500, 502, 503, 504):
                    last_exc = RpcTransportError(f"HTTP {resp.status_code} from RPC endpoint")
                else:
                    raise RpcTransportError(
                        f"HTTP {resp.status_code} from RPC endpoint: {resp.text[:200]}"
                    )

            if attempt >= self._retry_count:
                break
            attempt += 1
            logger.debug(
                "rpc %s failed (%s); retry %d/%d in %.2fs",
                body.get("method"), last_exc, attempt, self._retry_count, backoff,
            )
            await self._sleep(backoff)
            backoff = min(backoff * 2, 8.0)

        if last_exc is not None:
            raise RpcTransportError("Failed request after retries") from last_exc
        raise RpcTransportError("Failed request after retries (unknown error)")


__all__ = [
    "JsonRpcClient",
    "RpcError",
    "RpcTransportError",
    "RpcResponseError",
    "DEFAULT_RPC_URL",
]
