"""
Error taxonomy.

Every error raised by a generated client derives from `ApiBindError` and carries
enough context (method key, attempt number, request shape) for callers to log a
useful diagnostic.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .http import Request, Response


class ApiBindError(Exception):
    """Base class for all apibind errors."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        attempt: int | None = None,
        request: Request | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.config_key = config_key
        self.attempt = attempt
        self.request = request

    def with_context(
        self,
        *,
        config_key: str | None = None,
        attempt: int | None = None,
        request: Request | None = None,
    ) -> ApiBindError:
        """Fill in call context that was unknown where the error was raised."""
        if self.config_key is None:
            self.config_key = config_key
        if self.attempt is None:
            self.attempt = attempt
        if self.request is None:
            self.request = request
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.config_key:
            parts.append(f"method={self.config_key}")
        if self.attempt is not None:
            parts.append(f"attempt={self.attempt}")
        if self.request is not None:
            parts.append(f"request={self.request.method} {self.request.url}")
        return parts[0] if len(parts) == 1 else f"{parts[0]} ({', '.join(parts[1:])})"


class MetadataError(ApiBindError):
    """An interface declaration is invalid. Raised while building the client."""


class RequestBuildError(ApiBindError):
    """Arguments could not be expanded into a request (e.g. a `None` path value)."""


class EncodeError(ApiBindError):
    """The encoder cannot represent the body value for its declared type."""


class TransportError(ApiBindError):
    """The client failed to execute the request. Eligible for retry."""


class RetryableError(TransportError):
    """
    A failure explicitly marked as retryable.

    `retry_after` is the server-suggested delay in seconds, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        status: int | None = None,
        config_key: str | None = None,
        attempt: int | None = None,
        request: Request | None = None,
    ) -> None:
        super().__init__(message, config_key=config_key, attempt=attempt, request=request)
        self.retry_after = retry_after
        self.status = status


class HttpStatusError(ApiBindError):
    """A response carried a status the error decoder classifies as a failure."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        reason: str = "",
        headers: Mapping[str, tuple[str, ...]] | None = None,
        body: bytes | None = None,
        config_key: str | None = None,
        attempt: int | None = None,
        request: Request | None = None,
    ) -> None:
        super().__init__(message, config_key=config_key, attempt=attempt, request=request)
        self.status = status
        self.reason = reason
        self.headers = dict(headers or {})
        self.body = body

    def content_utf8(self) -> str:
        return (self.body or b"").decode("utf-8", errors="replace")


class DecodeError(ApiBindError):
    """The decoder (or a response interceptor) could not produce a typed value."""

    def __init__(
        self,
        message: str,
        *,
        response: Response | None = None,
        config_key: str | None = None,
        attempt: int | None = None,
        request: Request | None = None,
    ) -> None:
        super().__init__(message, config_key=config_key, attempt=attempt, request=request)
        self.response = response


class InterceptorAbort(ApiBindError):
    """
    Raised by an interceptor to stop the call on purpose.

    Propagated to the caller unchanged and never retried.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.details = details


__all__ = [
    "ApiBindError",
    "DecodeError",
    "EncodeError",
    "HttpStatusError",
    "InterceptorAbort",
    "MetadataError",
    "RequestBuildError",
    "RetryableError",
    "TransportError",
]
