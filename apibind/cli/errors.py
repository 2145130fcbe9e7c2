from __future__ import annotations

from typing import Any

from ..exceptions import (
    ApiBindError,
    DecodeError,
    EncodeError,
    HttpStatusError,
    InterceptorAbort,
    MetadataError,
    RequestBuildError,
    TransportError,
)


class CLIError(Exception):
    def __init__(
        self,
        message: str,
        *,
        exit_code: int = 1,
        error_type: str = "error",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.error_type = error_type
        self.details = details

    def __str__(self) -> str:  # pragma: no cover
        return self.message


_ERROR_TYPES: tuple[tuple[type[ApiBindError], str, int], ...] = (
    (MetadataError, "metadata_error", 2),
    (RequestBuildError, "usage_error", 2),
    (EncodeError, "encode_error", 2),
    (HttpStatusError, "http_error", 1),
    (DecodeError, "decode_error", 1),
    (InterceptorAbort, "aborted", 1),
    (TransportError, "network_error", 1),
)


def normalize_exception(exc: Exception) -> CLIError:
    """Map an apibind error onto a CLIError with a stable type and exit code."""
    if isinstance(exc, CLIError):
        return exc
    if isinstance(exc, ApiBindError):
        details: dict[str, Any] = {}
        if exc.config_key:
            details["method"] = exc.config_key
        if exc.attempt is not None:
            details["attempt"] = exc.attempt
        if exc.request is not None:
            details["request"] = f"{exc.request.method} {exc.request.url}"
        if isinstance(exc, HttpStatusError):
            details["status"] = exc.status
            body = exc.content_utf8()
            if body:
                details["body"] = body
        for kind, error_type, exit_code in _ERROR_TYPES:
            if isinstance(exc, kind):
                return CLIError(
                    exc.message, exit_code=exit_code, error_type=error_type, details=details
                )
        return CLIError(exc.message, details=details)
    return CLIError(f"{type(exc).__name__}: {exc}", error_type="internal_error")
