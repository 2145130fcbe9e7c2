"""
apibind: typed, declarative HTTP API clients.

Describe a remote API as a decorated Python class and get a generated client
that expands templates, runs interceptors, encodes bodies, dispatches through
a pluggable transport, decodes typed results and retries transport failures.

Example:
    ```python
    from typing import Annotated

    from apibind import ClientConfig, JsonDecoder, Param, request_line, target

    class Users:
        @request_line("GET /users/{id}")
        def get(self, id: Annotated[int, Param("id")]) -> User: ...

    users = target(Users, "https://api.example.com", ClientConfig(decoder=JsonDecoder()))
    user = users.get(42)
    ```
"""

from __future__ import annotations

from .client import Client, HttpxClient, RequestOptions
from .codec import (
    Decoder,
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    Encoder,
    ErrorDecoder,
    JsonDecoder,
    JsonEncoder,
)
from .config import ClientConfig
from .contract import Contract, body, delete, get, headers, patch, post, put, request_line
from .dispatcher import CallState, CallTrace, Dispatcher
from .exceptions import (
    ApiBindError,
    DecodeError,
    EncodeError,
    HttpStatusError,
    InterceptorAbort,
    MetadataError,
    RequestBuildError,
    RetryableError,
    TransportError,
)
from .factory import ApiBind, GeneratedClient, dispatchers_of, target, target_of
from .http import Request, Response
from .interceptors import (
    BasicAuthRequestInterceptor,
    BearerTokenRequestInterceptor,
    HeaderRequestInterceptor,
    InvocationContext,
    RequestInterceptor,
    ResponseInterceptor,
)
from .logger import LogLevel, Logger
from .metadata import HeaderMap, MethodMetadata, Param, QueryMap
from .retry import ExponentialBackoffRetryer, NeverRetry, RetryContext, Retryer
from .target import Target
from .template import CollectionFormat, RequestTemplate, Template

__version__ = "0.3.0"

__all__ = [
    "__version__",
    # Building clients
    "ApiBind",
    "ClientConfig",
    "GeneratedClient",
    "Target",
    "target",
    "target_of",
    "dispatchers_of",
    # Contract
    "Contract",
    "request_line",
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "headers",
    "body",
    "Param",
    "QueryMap",
    "HeaderMap",
    "CollectionFormat",
    "MethodMetadata",
    "Template",
    "RequestTemplate",
    # Codecs
    "Encoder",
    "Decoder",
    "ErrorDecoder",
    "DefaultEncoder",
    "DefaultDecoder",
    "DefaultErrorDecoder",
    "JsonEncoder",
    "JsonDecoder",
    # Interceptors
    "RequestInterceptor",
    "ResponseInterceptor",
    "InvocationContext",
    "BasicAuthRequestInterceptor",
    "BearerTokenRequestInterceptor",
    "HeaderRequestInterceptor",
    # Transport
    "Client",
    "HttpxClient",
    "RequestOptions",
    "Request",
    "Response",
    # Dispatch and retry
    "Dispatcher",
    "CallState",
    "CallTrace",
    "Retryer",
    "RetryContext",
    "ExponentialBackoffRetryer",
    "NeverRetry",
    # Logging
    "LogLevel",
    "Logger",
    # Errors
    "ApiBindError",
    "MetadataError",
    "RequestBuildError",
    "EncodeError",
    "TransportError",
    "RetryableError",
    "HttpStatusError",
    "DecodeError",
    "InterceptorAbort",
]
