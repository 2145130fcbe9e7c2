"""
Per-method call dispatch.

A `Dispatcher` exists for every bound interface method. Each call walks the
states of `CallState`: the request template is rebuilt from the original
arguments on every attempt, transport failures are handed to the retryer,
and every other failure ends the call.
"""

from __future__ import annotations

import inspect
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import ApiBindError, DecodeError, EncodeError, InterceptorAbort, TransportError
from .expansion import expand_template
from .http import Request, Response
from .interceptors import InvocationContext, apply_request_interceptors, compose
from .logger import Logger
from .metadata import MethodMetadata
from .retry import RetryContext
from .template import RequestTemplate

if TYPE_CHECKING:
    from .client import Client
    from .config import ClientConfig
    from .target import Target


class CallState(Enum):
    BUILDING = "building"
    INTERCEPTING_REQUEST = "intercepting_request"
    ENCODING = "encoding"
    DISPATCHING = "dispatching"
    AWAITING_RESPONSE = "awaiting_response"
    DECODING = "decoding"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"


_RETRY_ELIGIBLE = frozenset(
    {CallState.DISPATCHING, CallState.AWAITING_RESPONSE, CallState.DECODING}
)


@dataclass(slots=True)
class CallTrace:
    """States visited by one logical call, plus the last request sent."""

    states: list[CallState] = field(default_factory=list)
    attempts: int = 0
    request: Request | None = None

    @property
    def state(self) -> CallState | None:
        return self.states[-1] if self.states else None

    def enter(self, state: CallState) -> None:
        self.states.append(state)


class Dispatcher:
    """Turns calls of one interface method into HTTP exchanges."""

    def __init__(
        self,
        metadata: MethodMetadata,
        *,
        target: Target[Any],
        config: ClientConfig,
        client: Client,
        logger: Logger,
        signature: inspect.Signature,
    ) -> None:
        self.metadata = metadata
        self.target = target
        self._config = config
        self._client = client
        self._logger = logger
        parameters = list(signature.parameters.values())[1:]
        self._signature = signature.replace(parameters=parameters)
        self._decode = compose(config.response_interceptors, self._decode_terminal)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.invoke(self.bind(args, kwargs))

    def bind(self, args: Sequence[Any], kwargs: dict[str, Any]) -> list[Any]:
        """Map call arguments onto declared parameter positions (defaults applied)."""
        bound = self._signature.bind(*args, **kwargs)
        bound.apply_defaults()
        return [bound.arguments[name] for name in self._signature.parameters]

    def invoke(self, argv: Sequence[Any], trace: CallTrace | None = None) -> Any:
        """Run one logical call, retrying transport failures as the retryer allows."""
        trace = trace if trace is not None else CallTrace()
        retryer = self._config.retryer()
        context = RetryContext()
        while True:
            try:
                return self._attempt(argv, context, trace)
            except TransportError as e:
                self._annotate(e, context, trace)
                delay = None
                if trace.state in _RETRY_ELIGIBLE:
                    delay = retryer.should_retry(e, context)
                if delay is None:
                    trace.enter(CallState.FAILED)
                    raise
                trace.enter(CallState.RETRYING)
                self._logger.log_retry(self.metadata.config_key, context.attempt, delay)
                if delay > 0:
                    self._config.sleep(delay)
            except ApiBindError as e:
                self._annotate(e, context, trace)
                trace.enter(CallState.FAILED)
                raise
            except BaseException:
                trace.enter(CallState.FAILED)
                raise

    def _annotate(self, error: ApiBindError, context: RetryContext, trace: CallTrace) -> None:
        error.with_context(
            config_key=self.metadata.config_key,
            attempt=context.attempt or None,
            request=trace.request,
        )

    def _attempt(self, argv: Sequence[Any], context: RetryContext, trace: CallTrace) -> Any:
        metadata = self.metadata
        config = self._config

        trace.enter(CallState.BUILDING)
        trace.request = None
        template = expand_template(metadata, argv)

        trace.enter(CallState.INTERCEPTING_REQUEST)
        apply_request_interceptors(config.request_interceptors, template)

        trace.enter(CallState.ENCODING)
        if metadata.body_index is not None:
            self._encode(argv[metadata.body_index], template)
        request = self.target.apply(template)

        trace.enter(CallState.DISPATCHING)
        trace.request = request
        trace.attempts = context.record_attempt()
        self._logger.log_request(metadata.config_key, request)
        started = time.perf_counter()
        trace.enter(CallState.AWAITING_RESPONSE)
        try:
            response = self._client.execute(request, config.options)
        except TransportError as e:
            self._logger.log_transport_error(metadata.config_key, e, _elapsed_ms(started))
            raise
        except OSError as e:
            self._logger.log_transport_error(metadata.config_key, e, _elapsed_ms(started))
            raise TransportError(f"{type(e).__name__}: {e}", request=request) from e
        if response.request is None:
            response.request = request

        try:
            self._logger.log_response(metadata.config_key, response, _elapsed_ms(started))
            trace.enter(CallState.DECODING)
            value = self._handle_response(response)
        finally:
            response.close()
        trace.enter(CallState.DONE)
        return value

    def _encode(self, value: Any, template: RequestTemplate) -> None:
        try:
            self._config.encoder.encode(value, self.metadata.body_type, template)
        except ApiBindError:
            raise
        except Exception as e:
            raise EncodeError(f"Encoder failed: {type(e).__name__}: {e}") from e

    def _handle_response(self, response: Response) -> Any:
        error_decoder = self._config.error_decoder
        status = response.status
        decodable = 200 <= status < 300 or (status == 404 and self._config.dismiss_404)
        if error_decoder is not None and not decodable:
            raise error_decoder.decode(self.metadata.config_key, response)

        context = InvocationContext(
            response=response,
            return_type=self.metadata.return_type,
            config_key=self.metadata.config_key,
        )
        try:
            return self._decode(context)
        except (InterceptorAbort, TransportError):
            raise
        except DecodeError as e:
            if e.response is None:
                e.response = response
            raise
        except ApiBindError:
            raise
        except Exception as e:
            raise DecodeError(
                f"Decoding failed: {type(e).__name__}: {e}", response=response
            ) from e

    def _decode_terminal(self, context: InvocationContext) -> Any:
        return_type = context.return_type
        if return_type is Response:
            return context.response.buffered()
        if return_type is None or return_type is type(None):
            return None
        return self._config.decoder.decode(context.response, return_type)

    def __repr__(self) -> str:
        return f"Dispatcher({self.metadata.config_key} -> {self.metadata.request_line()})"


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


__all__ = ["CallState", "CallTrace", "Dispatcher"]
