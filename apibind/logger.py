"""
Request/response trace logging.

Traces go through the standard `logging` module under the `apibind` logger
namespace; `LogLevel` selects how much of each exchange is written.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

from .http import Request, Response

logger = logging.getLogger(__name__)

_REDACTED = "<redacted>"
_SENSITIVE_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie", "set-cookie"})


class LogLevel(Enum):
    NONE = "none"
    BASIC = "basic"
    HEADERS = "headers"
    FULL = "full"

    @classmethod
    def parse(cls, value: str | LogLevel) -> LogLevel:
        if isinstance(value, LogLevel):
            return value
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(
                f"Unknown log level {value!r}; expected one of "
                + ", ".join(level.name for level in cls)
            ) from None

    def includes(self, other: LogLevel) -> bool:
        order = list(LogLevel)
        return order.index(self) >= order.index(other)


class Logger:
    """
    Writes request traces for one method.

    BASIC logs the request line and the response status with elapsed time,
    HEADERS adds headers (credentials redacted), FULL adds bodies.
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.NONE,
        *,
        log: logging.Logger | None = None,
        redact_headers: Iterable[str] = _SENSITIVE_HEADERS,
        max_body_chars: int = 4096,
    ) -> None:
        self.level = level
        self._log = log or logger
        self._redact = frozenset(name.lower() for name in redact_headers)
        self._max_body_chars = max_body_chars

    def _enabled(self, level: LogLevel) -> bool:
        return self.level is not LogLevel.NONE and self.level.includes(level)

    def _headers(self, config_key: str, headers: Iterable[tuple[str, str]]) -> None:
        for name, value in headers:
            shown = _REDACTED if name.lower() in self._redact else value
            self._log.debug("[%s] %s: %s", config_key, name, shown)

    def _body(self, config_key: str, text: str | None) -> None:
        if text is None:
            return
        if len(text) > self._max_body_chars:
            text = text[: self._max_body_chars] + "...(truncated)"
        self._log.debug("[%s] %s", config_key, text)

    def log_request(self, config_key: str, request: Request) -> None:
        if not self._enabled(LogLevel.BASIC):
            return
        self._log.debug("[%s] ---> %s %s", config_key, request.method, request.url)
        if self._enabled(LogLevel.HEADERS):
            self._headers(config_key, request.header_pairs())
        if self._enabled(LogLevel.FULL):
            self._body(config_key, request.text())
        size = len(request.body) if request.body is not None else 0
        self._log.debug("[%s] ---> END HTTP (%d-byte body)", config_key, size)

    def log_response(self, config_key: str, response: Response, elapsed_ms: float) -> None:
        if not self._enabled(LogLevel.BASIC):
            return
        reason = f" {response.reason}" if response.reason else ""
        self._log.debug(
            "[%s] <--- HTTP %d%s (%.0fms)", config_key, response.status, reason, elapsed_ms
        )
        if self._enabled(LogLevel.HEADERS):
            self._headers(
                config_key,
                ((name, value) for name, values in response.headers.items() for value in values),
            )
        if self._enabled(LogLevel.FULL):
            # Buffers the body so the decoder can still read it.
            self._body(config_key, response.text())
            self._log.debug("[%s] <--- END HTTP (%d-byte body)", config_key, response.length or 0)

    def log_transport_error(self, config_key: str, error: Exception, elapsed_ms: float) -> None:
        if not self._enabled(LogLevel.BASIC):
            return
        self._log.debug(
            "[%s] <--- ERROR %s: %s (%.0fms)",
            config_key,
            type(error).__name__,
            error,
            elapsed_ms,
        )

    def log_retry(self, config_key: str, attempt: int, delay: float) -> None:
        if not self._enabled(LogLevel.BASIC):
            return
        self._log.debug("[%s] ---> RETRYING (attempt %d in %.3fs)", config_key, attempt + 1, delay)


__all__ = ["LogLevel", "Logger"]
