"""
Encoders, decoders and error decoders.

Encoders turn a body argument into request content; decoders turn a response
body into a value of the method's declared (closed) return type. The JSON codecs
use pydantic `TypeAdapter`s so generic models such as `Entities[str, int]` are
validated against the exact type they were declared with.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Protocol

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .exceptions import DecodeError, EncodeError, HttpStatusError, RetryableError
from .http import Response
from .template import RequestTemplate
from .types import empty_value_of, is_optional, type_name

JSON_CONTENT_TYPE = "application/json"


class Encoder(Protocol):
    def encode(self, value: Any, body_type: Any, template: RequestTemplate) -> None:
        """Write `value` into `template`'s body or raise `EncodeError`."""
        ...


class Decoder(Protocol):
    def decode(self, response: Response, type_: Any) -> Any:
        """Produce a value of `type_` from `response` or raise `DecodeError`."""
        ...


class ErrorDecoder(Protocol):
    def decode(self, config_key: str, response: Response) -> Exception:
        """Translate an unsuccessful response into the exception to raise."""
        ...


class _AdapterCache:
    """Thread-safe cache of `TypeAdapter`s keyed by (hashable) type."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    def get(self, tp: Any) -> TypeAdapter[Any]:
        try:
            return self._adapters[tp]
        except KeyError:
            pass
        except TypeError:
            return TypeAdapter(tp)
        adapter = TypeAdapter(tp)
        with self._lock:
            self._adapters.setdefault(tp, adapter)
        return adapter


# =============================================================================
# Encoders
# =============================================================================


class DefaultEncoder:
    """Accepts `str` and `bytes` bodies only."""

    def encode(self, value: Any, body_type: Any, template: RequestTemplate) -> None:
        if value is None:
            if is_optional(body_type):
                return
            raise EncodeError(
                f"{type(self).__name__} cannot encode None as {type_name(body_type)}"
            )
        if isinstance(value, str):
            template.set_body(value)
            return
        if isinstance(value, (bytes, bytearray, memoryview)):
            template.set_body(bytes(value))
            return
        raise EncodeError(
            f"{type(self).__name__} cannot encode {type(value).__name__} as "
            f"{type_name(body_type)}; configure an encoder such as JsonEncoder"
        )


class JsonEncoder:
    """
    Serialize the body as JSON through a pydantic `TypeAdapter` for the declared body type.

    The value is validated against the declared type first, so values that cannot be
    represented as that type fail with `EncodeError` instead of producing an empty body.
    """

    def __init__(self, *, by_alias: bool = True, exclude_none: bool = False) -> None:
        self._by_alias = by_alias
        self._exclude_none = exclude_none
        self._adapters = _AdapterCache()

    def encode(self, value: Any, body_type: Any, template: RequestTemplate) -> None:
        adapter = self._adapters.get(body_type)
        try:
            validated = adapter.validate_python(value)
            content = adapter.dump_json(
                validated, by_alias=self._by_alias, exclude_none=self._exclude_none
            )
        except (ValidationError, PydanticSerializationError) as e:
            raise EncodeError(f"Cannot encode body as {type_name(body_type)}: {e}") from e
        template.set_body(content, charset="utf-8")
        if not template.header_values("Content-Type"):
            template.set_header("Content-Type", JSON_CONTENT_TYPE)


# =============================================================================
# Decoders
# =============================================================================


class DefaultDecoder:
    """Decodes `str`, `bytes` and `None`; any other type is a decode error."""

    def decode(self, response: Response, type_: Any) -> Any:
        if type_ is None or type_ is type(None):
            return None
        content = response.read()
        if type_ in (bytes, bytes | None):
            return content if content or type_ is bytes else None
        if type_ in (str, str | None, Any, object):
            if not content and is_optional(type_):
                return None
            return content.decode(response.charset(), errors="replace")
        raise DecodeError(
            f"{type(self).__name__} cannot decode {type_name(type_)}; "
            "configure a decoder such as JsonDecoder",
            response=response,
        )


class JsonDecoder:
    """
    Validate a JSON body against the declared return type with pydantic.

    An empty body decodes to None for optional types and to an empty container
    for list/dict/set/tuple types; for any other type it is a decode error.
    """

    def __init__(self, *, strict: bool | None = None) -> None:
        self._strict = strict
        self._adapters = _AdapterCache()

    def decode(self, response: Response, type_: Any) -> Any:
        if type_ is None or type_ is type(None):
            return None
        content = response.read()
        if not content.strip():
            has_empty, empty = empty_value_of(type_)
            if has_empty:
                return empty
            raise DecodeError(
                f"Empty response body cannot be decoded as {type_name(type_)}",
                response=response,
            )
        try:
            return self._adapters.get(type_).validate_json(content, strict=self._strict)
        except ValidationError as e:
            raise DecodeError(
                f"Response body is not a valid {type_name(type_)}: {e.error_count()} error(s)",
                response=response,
            ) from e


# =============================================================================
# Error decoders
# =============================================================================


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Parse a `Retry-After` header given as delta-seconds or an HTTP date."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text.isdigit():
        return float(text)
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return max(0.0, (when - current).total_seconds())


class DefaultErrorDecoder:
    """
    Map a non-2xx response to `HttpStatusError`.

    A response carrying a `Retry-After` header is mapped to `RetryableError`
    so the retryer gets a chance to repeat the call.
    """

    def __init__(self, *, max_body_bytes: int = 8192) -> None:
        self._max_body_bytes = max_body_bytes

    def decode(self, config_key: str, response: Response) -> Exception:
        body = response.read()[: self._max_body_bytes]
        message = f"HTTP {response.status}"
        if response.reason:
            message += f" {response.reason}"
        retry_after_values = response.header("Retry-After")
        retry_after = parse_retry_after(retry_after_values[0] if retry_after_values else None)
        if retry_after is not None:
            return RetryableError(
                message,
                retry_after=retry_after,
                status=response.status,
                config_key=config_key,
                request=response.request,
            )
        return HttpStatusError(
            message,
            status=response.status,
            reason=response.reason,
            headers=response.headers,
            body=body,
            config_key=config_key,
            request=response.request,
        )


__all__ = [
    "JSON_CONTENT_TYPE",
    "Decoder",
    "DefaultDecoder",
    "DefaultEncoder",
    "DefaultErrorDecoder",
    "Encoder",
    "ErrorDecoder",
    "JsonDecoder",
    "JsonEncoder",
    "parse_retry_after",
]
