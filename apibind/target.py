"""Binding of an interface to a base URL."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar
from urllib.parse import urlsplit

from .exceptions import MetadataError
from .http import Request
from .template import RequestTemplate

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Target(Generic[T]):
    """
    An interface bound to a base URL such as `https://api.example.com/v2`.

    Relative request paths are appended to the base URL path, so
    `GET /api/{key}` against `http://host/default` requests `/default/api/...`.
    """

    interface: type[T]
    url: str
    name: str = ""

    def __post_init__(self) -> None:
        parts = urlsplit(self.url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise MetadataError(f"Target URL must be an absolute http(s) URL, got {self.url!r}")
        if not self.name:
            object.__setattr__(self, "name", self.url)

    def apply(self, template: RequestTemplate) -> Request:
        """Resolve `template` against the base URL and freeze it."""
        if "://" not in template.path:
            template.target = self.url
        return template.request()

    def __repr__(self) -> str:
        return f"Target(type={self.interface.__name__}, name={self.name}, url={self.url})"


__all__ = ["Target"]
