"""
HTTP transport.

A `Client` executes a finalized `Request` and returns a raw `Response`, or
raises `TransportError`. `HttpxClient` is the default implementation; pass an
`httpx.MockTransport` to exercise a generated client without a network.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .exceptions import TransportError
from .http import Request, Response


@dataclass(frozen=True, slots=True)
class RequestOptions:
    """Per-request transport options."""

    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    follow_redirects: bool = True


class Client(Protocol):
    def execute(self, request: Request, options: RequestOptions) -> Response: ...


class HttpxClient:
    """
    `Client` backed by `httpx.Client`.

    Responses are streamed; the body is read by the decoder and the underlying
    connection is released when the dispatcher closes the response.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if client is not None and transport is not None:
            raise ValueError("Pass either an httpx.Client or a transport, not both")
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(transport=transport)

    def execute(self, request: Request, options: RequestOptions) -> Response:
        httpx_request = self._client.build_request(
            request.method,
            request.url,
            headers=request.header_pairs(),
            content=request.body,
            timeout=httpx.Timeout(options.read_timeout, connect=options.connect_timeout),
        )
        try:
            raw = self._client.send(
                httpx_request, stream=True, follow_redirects=options.follow_redirects
            )
        except httpx.TransportError as e:
            raise TransportError(f"{type(e).__name__}: {e}", request=request) from e

        def chunks() -> Iterator[bytes]:
            try:
                yield from raw.iter_bytes()
            except httpx.TransportError as e:
                raise TransportError(
                    f"Failed reading response body: {type(e).__name__}: {e}", request=request
                ) from e

        return Response(
            raw.status_code,
            reason=raw.reason_phrase,
            headers=raw.headers.multi_items(),
            body=chunks(),
            request=request,
            on_close=raw.close,
        )

    def close(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpxClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = ["Client", "HttpxClient", "RequestOptions"]
