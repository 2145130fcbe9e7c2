"""
Transport-neutral request/response primitives.

The dispatcher models requests and responses independently of the underlying
HTTP transport so any `Client` implementation can execute them.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

Header: TypeAlias = tuple[str, str]
HeaderMap: TypeAlias = Mapping[str, tuple[str, ...]]


def _lookup(headers: HeaderMap, name: str) -> tuple[str, ...]:
    lowered = name.lower()
    for key, values in headers.items():
        if key.lower() == lowered:
            return values
    return ()


def freeze_headers(
    headers: Mapping[str, Iterable[str]] | Iterable[Header] | None,
) -> dict[str, tuple[str, ...]]:
    """Normalize a header mapping or pair list into `name -> tuple(values)`."""
    frozen: dict[str, list[str]] = {}
    if headers is None:
        return {}
    if isinstance(headers, Mapping):
        items: Iterable[tuple[str, Any]] = headers.items()
        for name, values in items:
            if isinstance(values, str):
                frozen.setdefault(name, []).append(values)
            else:
                frozen.setdefault(name, []).extend(str(v) for v in values)
    else:
        for name, value in headers:
            frozen.setdefault(name, []).append(value)
    return {name: tuple(values) for name, values in frozen.items()}


@dataclass(frozen=True, slots=True)
class Request:
    """A fully resolved HTTP request, ready to hand to a `Client`."""

    method: str
    url: str
    headers: HeaderMap = field(default_factory=dict)
    body: bytes | None = None
    charset: str = "utf-8"

    def header(self, name: str) -> tuple[str, ...]:
        return _lookup(self.headers, name)

    def header_pairs(self) -> list[Header]:
        return [(name, value) for name, values in self.headers.items() for value in values]

    def text(self) -> str | None:
        if self.body is None:
            return None
        return self.body.decode(self.charset, errors="replace")

    def __repr__(self) -> str:
        return f"Request({self.method} {self.url})"


class Response:
    """
    A raw HTTP response.

    The body is a byte stream owned by the call until it has been consumed and
    the response closed. `read()` buffers the stream so it can be read again.
    """

    __slots__ = (
        "status",
        "reason",
        "headers",
        "request",
        "_stream",
        "_content",
        "_on_close",
        "_closed",
    )

    def __init__(
        self,
        status: int,
        *,
        reason: str = "",
        headers: Mapping[str, Iterable[str]] | Iterable[Header] | None = None,
        body: bytes | Iterable[bytes] | None = None,
        request: Request | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.status = status
        self.reason = reason
        self.headers: dict[str, tuple[str, ...]] = freeze_headers(headers)
        self.request = request
        self._on_close = on_close
        self._closed = False
        self._content: bytes | None
        self._stream: Iterable[bytes] | None
        if body is None or isinstance(body, (bytes, bytearray)):
            self._content = bytes(body) if body is not None else None
            self._stream = None
        else:
            self._content = None
            self._stream = body

    @property
    def has_body(self) -> bool:
        return self._stream is not None or bool(self._content)

    @property
    def length(self) -> int | None:
        if self._content is not None:
            return len(self._content)
        values = self.header("Content-Length")
        if values and values[0].isdigit():
            return int(values[0])
        return None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> tuple[str, ...]:
        return _lookup(self.headers, name)

    def charset(self) -> str:
        for value in self.header("Content-Type"):
            for part in value.split(";")[1:]:
                key, _, charset = part.strip().partition("=")
                if key.lower() == "charset" and charset:
                    return charset.strip('"')
        return "utf-8"

    def read(self) -> bytes:
        """Consume (and cache) the whole body."""
        if self._content is None:
            if self._stream is None:
                self._content = b""
            else:
                if self._closed:
                    raise RuntimeError("Response body stream was already released")
                self._content = b"".join(self._stream)
                self._stream = None
        return self._content

    def text(self) -> str:
        return self.read().decode(self.charset(), errors="replace")

    def iter_bytes(self) -> Iterator[bytes]:
        if self._content is not None:
            if self._content:
                yield self._content
            return
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        chunks: list[bytes] = []
        for chunk in stream:
            chunks.append(chunk)
            yield chunk
        self._content = b"".join(chunks)

    def buffered(self) -> Response:
        """Read the body fully and release the underlying stream."""
        self.read()
        self.close()
        return self

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream = None
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> Response:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Response({self.status} {self.reason})".replace(" )", ")")
