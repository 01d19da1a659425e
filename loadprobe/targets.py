"""Target adapters: things a load test can submit requests to.

A target is any object with ``submit(payload)`` returning an async
iterator of partial results. The executor counts the length of ``str``
and ``bytes`` chunks as the response size.
"""

from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

# one connection per in-flight request; queueing in the pool would count as target latency
UNBOUNDED_LIMITS = httpx.Limits(max_connections=None, max_keepalive_connections=None)


class HttpTarget:
    """Stream HTTP responses from a single endpoint with httpx."""

    def __init__(
        self,
        url: str,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        limits: Optional[httpx.Limits] = None,
    ):
        self.url = url
        self.method = method.upper()
        self.headers = dict(headers or {})
        self.limits = limits if limits is not None else UNBOUNDED_LIMITS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # per-request timeouts are enforced by the executor
            self._client = httpx.AsyncClient(
                headers=self.headers,
                transport=self._transport,
                limits=self.limits,
                timeout=None,
            )
        return self._client

    async def submit(self, payload: Any) -> AsyncIterator[str]:
        kwargs: Dict[str, Any] = {}
        if isinstance(payload, (dict, list)):
            kwargs["json"] = payload
        elif isinstance(payload, (str, bytes)):
            kwargs["content"] = payload

        client = self._get_client()
        async with client.stream(self.method, self.url, **kwargs) as response:
            response.raise_for_status()
            async for chunk in response.aiter_text():
                yield chunk

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def __repr__(self) -> str:
        return f"HttpTarget({self.method} {self.url})"


class CallableTarget:
    """Adapt a coroutine function ``func(payload)`` to the target interface."""

    def __init__(self, func: Callable[[Any], Awaitable[Any]]):
        self.func = func

    async def submit(self, payload: Any) -> AsyncIterator[Any]:
        result = await self.func(payload)
        if result is not None:
            yield result
