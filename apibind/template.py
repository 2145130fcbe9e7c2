"""
Request templates.

`Template` is a string with `{name}` placeholders. `RequestTemplate` is the
mutable, per-call request builder that interceptors and encoders work on before
it is turned into an immutable `Request`.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from .exceptions import RequestBuildError
from .http import Request

if TYPE_CHECKING:
    from .metadata import MethodMetadata

_VARIABLE = re.compile(r"\{([^{}\s]+)\}")

# RFC 3986 pchar minus the percent sign; "/" is handled separately.
_PATH_SAFE = "-._~!$&'()*+,;=:@"
# Query characters that survive `parse_qsl` unchanged ("&", "=", "+" and "#" do not).
_QUERY_SAFE = "-._~!$'()*,;:@/?"


def encode_path(value: str, *, decode_slash: bool = True) -> str:
    """Percent-encode a path value. Slashes are kept when `decode_slash` is set."""
    return quote(value, safe=_PATH_SAFE + ("/" if decode_slash else ""))


def encode_query(value: str) -> str:
    """Percent-encode a query name or value."""
    return quote(value, safe=_QUERY_SAFE)


class CollectionFormat(Enum):
    """How a collection bound to a single query/header name is rendered."""

    EXPLODED = None
    CSV = ","
    SSV = " "
    TSV = "\t"
    PIPES = "|"

    def join(self, values: Iterable[str], *, for_query: bool) -> list[str]:
        items = list(values)
        if self is CollectionFormat.EXPLODED or not items:
            return items
        separator = self.value
        if for_query:
            separator = encode_query(separator)
        return [separator.join(items)]


@dataclass(frozen=True, slots=True)
class Template:
    """A string containing zero or more `{name}` placeholders."""

    text: str

    @property
    def variables(self) -> tuple[str, ...]:
        seen: list[str] = []
        for match in _VARIABLE.finditer(self.text):
            if match.group(1) not in seen:
                seen.append(match.group(1))
        return tuple(seen)

    @property
    def single_variable(self) -> str | None:
        """The variable name when the template is exactly one placeholder."""
        match = _VARIABLE.fullmatch(self.text)
        return match.group(1) if match else None

    def expand(
        self,
        resolve: Callable[[str], str | None],
        *,
        allow_missing: bool = False,
    ) -> str | None:
        """
        Substitute every placeholder with `resolve(name)`.

        Returns None when a placeholder resolves to None, unless `allow_missing`
        is set, in which case the placeholder is dropped.
        """
        parts: list[str] = []
        last = 0
        for match in _VARIABLE.finditer(self.text):
            parts.append(self.text[last : match.start()])
            value = resolve(match.group(1))
            if value is None:
                if not allow_missing:
                    return None
                value = ""
            parts.append(value)
            last = match.end()
        parts.append(self.text[last:])
        return "".join(parts)

    def __str__(self) -> str:
        return self.text


class RequestTemplate:
    """
    Mutable request builder for a single call attempt.

    Query values are stored percent-encoded; header values are stored as-is.
    Header names are matched case-insensitively.
    """

    def __init__(
        self,
        method: str = "GET",
        path: str = "",
        *,
        target: str = "",
        charset: str = "utf-8",
        metadata: MethodMetadata | None = None,
    ) -> None:
        self.method = method
        self.path = path
        self.target = target
        self.charset = charset
        self.metadata = metadata
        self.queries: dict[str, list[str]] = {}
        self.headers: dict[str, list[str]] = {}
        self.body: bytes | None = None
        self.body_type: Any = None

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, name: str, *values: str, encoded: bool = False) -> RequestTemplate:
        """Append values to a query parameter. No values renders a bare `name`."""
        key = name if encoded else encode_query(name)
        bucket = self.queries.setdefault(key, [])
        bucket.extend(value if encoded else encode_query(value) for value in values)
        return self

    def set_query(self, name: str, *values: str, encoded: bool = False) -> RequestTemplate:
        self.remove_query(name if encoded else encode_query(name))
        return self.query(name, *values, encoded=encoded)

    def remove_query(self, name: str) -> RequestTemplate:
        self.queries.pop(name, None)
        return self

    def query_string(self) -> str:
        pairs: list[str] = []
        for name, values in self.queries.items():
            if not values:
                pairs.append(name)
                continue
            pairs.extend(f"{name}={value}" for value in values)
        return "&".join(pairs)

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------

    def _header_key(self, name: str) -> str:
        lowered = name.lower()
        for key in self.headers:
            if key.lower() == lowered:
                return key
        return name

    def header(self, name: str, *values: str) -> RequestTemplate:
        """Append values to a header."""
        self.headers.setdefault(self._header_key(name), []).extend(values)
        return self

    def set_header(self, name: str, *values: str) -> RequestTemplate:
        """Replace all values of a header."""
        self.remove_header(name)
        if values:
            self.headers[name] = list(values)
        return self

    def remove_header(self, name: str) -> RequestTemplate:
        self.headers.pop(self._header_key(name), None)
        return self

    def header_values(self, name: str) -> tuple[str, ...]:
        return tuple(self.headers.get(self._header_key(name), ()))

    # ------------------------------------------------------------------
    # Body / URL
    # ------------------------------------------------------------------

    def set_body(self, data: bytes | str | None, *, charset: str | None = None) -> RequestTemplate:
        if charset is not None:
            self.charset = charset
        if isinstance(data, str):
            data = data.encode(self.charset)
        self.body = data
        return self

    def body_text(self) -> str | None:
        if self.body is None:
            return None
        return self.body.decode(self.charset, errors="replace")

    def url(self) -> str:
        """`target + path + ?query`. An absolute path ignores the target."""
        if "://" in self.path:
            base = self.path
        elif self.target:
            path = self.path
            if path and not path.startswith("/"):
                path = "/" + path
            base = self.target.rstrip("/") + path
        else:
            base = self.path
        query = self.query_string()
        if not query:
            return base
        joiner = "&" if "?" in base else "?"
        return f"{base}{joiner}{query}"

    def request(self) -> Request:
        """Freeze the template into an immutable request."""
        url = self.url()
        if "://" not in url:
            raise RequestBuildError(f"Request URL is not absolute: {url!r}")
        return Request(
            method=self.method,
            url=url,
            headers={name: tuple(values) for name, values in self.headers.items()},
            body=self.body,
            charset=self.charset,
        )

    def __repr__(self) -> str:
        return f"RequestTemplate({self.method} {self.url()})"


__all__ = [
    "CollectionFormat",
    "RequestTemplate",
    "Template",
    "encode_path",
    "encode_query",
]
