"""
Client configuration.

`ClientConfig` enumerates every collaborator of a generated client. It is
validated once, when constructed, and shared read-only by all calls made
through clients built from it.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .client import Client, RequestOptions
from .codec import (
    Decoder,
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    Encoder,
    ErrorDecoder,
)
from .interceptors import RequestInterceptor, ResponseInterceptor
from .logger import LogLevel
from .retry import ExponentialBackoffRetryer, RetryerFactory

ENV_PREFIX = "APIBIND_"

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _maybe_load_dotenv(*, dotenv_path: Path | None, override: bool) -> None:
    try:
        from dotenv import load_dotenv
    except ImportError as exc:
        raise ImportError(
            ".env support requires python-dotenv (`pip install python-dotenv`)"
        ) from exc
    load_dotenv(dotenv_path=dotenv_path, override=override)


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {value!r}")


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """
    Configuration of a generated client.

    Attributes:
        encoder: turns the body argument into request content
        decoder: turns a successful response into the declared return type
        error_decoder: maps non-2xx responses to exceptions; None sends every
            response to the decoder
        request_interceptors: applied to each request template in order
        response_interceptors: wrap decoding; the first runs outermost
        client: transport; None creates an `HttpxClient` per generated client
        retryer: zero-argument factory, called once per logical call
        log_level: request trace verbosity
        options: transport timeouts and redirect handling
        dismiss_404: decode 404 responses instead of raising
        sleep: called with the retry delay in seconds
    """

    encoder: Encoder = field(default_factory=DefaultEncoder)
    decoder: Decoder = field(default_factory=DefaultDecoder)
    error_decoder: ErrorDecoder | None = field(default_factory=DefaultErrorDecoder)
    request_interceptors: Sequence[RequestInterceptor] = ()
    response_interceptors: Sequence[ResponseInterceptor] = ()
    client: Client | None = None
    retryer: RetryerFactory = ExponentialBackoffRetryer
    log_level: LogLevel = LogLevel.NONE
    options: RequestOptions = field(default_factory=RequestOptions)
    dismiss_404: bool = False
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        object.__setattr__(self, "request_interceptors", tuple(self.request_interceptors))
        object.__setattr__(self, "response_interceptors", tuple(self.response_interceptors))
        object.__setattr__(self, "log_level", LogLevel.parse(self.log_level))
        for interceptor in (*self.request_interceptors, *self.response_interceptors):
            if not callable(interceptor):
                raise TypeError(f"Interceptor {interceptor!r} is not callable")
        if not callable(self.retryer):
            raise TypeError("retryer must be a zero-argument factory")
        if not hasattr(self.encoder, "encode"):
            raise TypeError(f"encoder {self.encoder!r} has no encode() method")
        if not hasattr(self.decoder, "decode"):
            raise TypeError(f"decoder {self.decoder!r} has no decode() method")
        if self.error_decoder is not None and not hasattr(self.error_decoder, "decode"):
            raise TypeError(f"error_decoder {self.error_decoder!r} has no decode() method")
        if self.client is not None and not hasattr(self.client, "execute"):
            raise TypeError(f"client {self.client!r} has no execute() method")

    def evolve(self, **changes: Any) -> ClientConfig:
        """Return a copy with `changes` applied (validated again)."""
        return replace(self, **changes)

    @classmethod
    def from_env(
        cls,
        *,
        prefix: str = ENV_PREFIX,
        environ: Mapping[str, str] | None = None,
        load_dotenv: bool = False,
        dotenv_path: Path | None = None,
        **overrides: Any,
    ) -> ClientConfig:
        """
        Build a config from environment variables.

        Recognized (with the default `APIBIND_` prefix): `LOG_LEVEL`,
        `CONNECT_TIMEOUT`, `READ_TIMEOUT`, `FOLLOW_REDIRECTS`, `MAX_ATTEMPTS`,
        `DISMISS_404`. Keyword `overrides` win over the environment.
        """
        if load_dotenv:
            _maybe_load_dotenv(dotenv_path=dotenv_path, override=False)
        env = os.environ if environ is None else environ

        def lookup(name: str) -> str | None:
            value = env.get(prefix + name)
            return value if value not in (None, "") else None

        values: dict[str, Any] = {}
        if (level := lookup("LOG_LEVEL")) is not None:
            values["log_level"] = LogLevel.parse(level)

        option_changes: dict[str, Any] = {}
        if (connect := lookup("CONNECT_TIMEOUT")) is not None:
            option_changes["connect_timeout"] = _parse_float(prefix + "CONNECT_TIMEOUT", connect)
        if (read := lookup("READ_TIMEOUT")) is not None:
            option_changes["read_timeout"] = _parse_float(prefix + "READ_TIMEOUT", read)
        if (follow := lookup("FOLLOW_REDIRECTS")) is not None:
            option_changes["follow_redirects"] = _parse_bool(prefix + "FOLLOW_REDIRECTS", follow)
        if option_changes:
            values["options"] = replace(RequestOptions(), **option_changes)

        if (attempts := lookup("MAX_ATTEMPTS")) is not None:
            max_attempts = _parse_int(prefix + "MAX_ATTEMPTS", attempts)
            values["retryer"] = ExponentialBackoffRetryer.factory(max_attempts=max_attempts)
        if (dismiss := lookup("DISMISS_404")) is not None:
            values["dismiss_404"] = _parse_bool(prefix + "DISMISS_404", dismiss)

        values.update(overrides)
        return cls(**values)


__all__ = ["ENV_PREFIX", "ClientConfig"]
