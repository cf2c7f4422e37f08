"""
HTTP sender built on ``httpx.AsyncClient``.

The client is created on first use inside the delivery loop and reused for
every push, so connections to the Loki endpoint are kept alive between
batches.
"""

from __future__ import annotations

from typing import Mapping

import httpx


class AsyncHttpSender:
    """Thin wrapper around a single ``httpx.AsyncClient``.

    A custom ``transport`` (for example ``httpx.MockTransport``) can be given
    to route requests without touching the network.
    """

    def __init__(
        self,
        *,
        timeout: float = 5.0,
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._default_headers = dict(default_headers or {})
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._default_headers,
                transport=self._transport,
            )

    async def stop(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def post(
        self,
        url: str,
        *,
        content: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        if self._client is None:
            await self.start()
        assert self._client is not None
        return await self._client.post(url, content=content, headers=headers)


__all__ = ["AsyncHttpSender"]
