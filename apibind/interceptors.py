"""
Request and response interceptors.

Request interceptors mutate the per-call `RequestTemplate` in registration
order before anything is sent. Response interceptors wrap decoding as
middleware: each receives an `InvocationContext` whose `proceed()` runs the
rest of the chain, ending at the decoder.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, TypeAlias

from .http import Response
from .template import RequestTemplate


class RequestInterceptor(Protocol):
    def __call__(self, template: RequestTemplate) -> None: ...


@dataclass(frozen=True, slots=True)
class InvocationContext:
    """State handed to a response interceptor for one decode pass."""

    response: Response
    return_type: Any
    config_key: str = ""
    _next: Callable[[InvocationContext], Any] | None = field(default=None, repr=False)

    def proceed(self) -> Any:
        """Run the next interceptor, or the decoder at the end of the chain."""
        if self._next is None:
            raise RuntimeError("InvocationContext has no next stage to proceed to")
        return self._next(self)


class ResponseInterceptor(Protocol):
    def __call__(self, context: InvocationContext) -> Any: ...


DecodeStep: TypeAlias = Callable[[InvocationContext], Any]


def apply_request_interceptors(
    interceptors: Sequence[RequestInterceptor], template: RequestTemplate
) -> None:
    for interceptor in interceptors:
        interceptor(template)


def compose(interceptors: Sequence[ResponseInterceptor], terminal: DecodeStep) -> DecodeStep:
    """Nest `interceptors` around `terminal`; the first registered runs outermost."""
    step = terminal
    for interceptor in reversed(interceptors):
        next_step = step

        def _wrapped(
            context: InvocationContext,
            *,
            _ic: ResponseInterceptor = interceptor,
            _n: DecodeStep = next_step,
        ) -> Any:
            return _ic(replace(context, _next=_n))

        step = _wrapped
    return step


# =============================================================================
# Built-in request interceptors
# =============================================================================


class BasicAuthRequestInterceptor:
    """Adds an `Authorization: Basic ...` header to every request."""

    def __init__(self, username: str, password: str, *, charset: str = "latin-1") -> None:
        token = base64.b64encode(f"{username}:{password}".encode(charset)).decode("ascii")
        self._header_value = f"Basic {token}"

    def __call__(self, template: RequestTemplate) -> None:
        template.set_header("Authorization", self._header_value)


class BearerTokenRequestInterceptor:
    """Adds an `Authorization: Bearer ...` header, read per call from `token_provider`."""

    def __init__(self, token_provider: Callable[[], str] | str) -> None:
        if isinstance(token_provider, str):
            token = token_provider
            self._provider: Callable[[], str] = lambda: token
        else:
            self._provider = token_provider

    def __call__(self, template: RequestTemplate) -> None:
        template.set_header("Authorization", f"Bearer {self._provider()}")


class HeaderRequestInterceptor:
    """Adds static headers; existing values are kept unless `replace` is set."""

    def __init__(self, headers: Mapping[str, str], *, replace: bool = False) -> None:
        self._headers = dict(headers)
        self._replace = replace

    def __call__(self, template: RequestTemplate) -> None:
        for name, value in self._headers.items():
            if self._replace:
                template.set_header(name, value)
            elif not template.header_values(name):
                template.header(name, value)


__all__ = [
    "BasicAuthRequestInterceptor",
    "BearerTokenRequestInterceptor",
    "DecodeStep",
    "HeaderRequestInterceptor",
    "InvocationContext",
    "RequestInterceptor",
    "ResponseInterceptor",
    "apply_request_interceptors",
    "compose",
]
