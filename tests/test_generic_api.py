from __future__ import annotations

from typing import Annotated, Any, Generic, TypeVar

import httpx
import pytest
from pydantic import BaseModel

from apibind import (
    ApiBind,
    ClientConfig,
    HttpxClient,
    InvocationContext,
    JsonDecoder,
    JsonEncoder,
    MetadataError,
    Param,
    RequestTemplate,
    Response,
    request_line,
    target,
)

K = TypeVar("K")
M = TypeVar("M")


class Keys(BaseModel, Generic[K]):
    keys: list[K] = []


class Entity(BaseModel, Generic[K, M]):
    key: K | None = None
    model: M | None = None


class Entities(BaseModel, Generic[K, M]):
    entities: list[Entity[K, M]] = []


class BaseApi(Generic[K, M]):
    @request_line("GET /api/{key}")
    def get(self, key: Annotated[K, Param("key")]) -> Entity[K, M]: ...

    @request_line("POST /api")
    def get_all(self, keys: Keys[K]) -> Entities[K, M]: ...


class MyApi(BaseApi[str, int]):
    pass


class RecordingDecoder:
    def __init__(self) -> None:
        self.types: list[Any] = []

    def decode(self, response: Response, type_: Any) -> Any:
        self.types.append(type_)
        return None


class RecordingEncoder:
    def __init__(self) -> None:
        self.types: list[Any] = []

    def encode(self, value: Any, body_type: Any, template: RequestTemplate) -> None:
        self.types.append(body_type)


def _recording_transport(calls: list[httpx.Request], body: bytes = b"foo") -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, content=body, request=request)

    return httpx.MockTransport(handler)


def test_resolves_parameterized_result_and_path() -> None:
    calls: list[httpx.Request] = []
    decoder = RecordingDecoder()
    seen: list[str] = []

    def request_interceptor(template: RequestTemplate) -> None:
        seen.append("apply")

    def response_interceptor(context: InvocationContext) -> Any:
        seen.append("aroundDecode")
        return context.proceed()

    config = ClientConfig(
        decoder=decoder,
        request_interceptors=[request_interceptor],
        response_interceptors=[response_interceptor],
        client=HttpxClient(transport=_recording_transport(calls)),
    )
    api = target(MyApi, "http://localhost/default", config)

    assert api.get("foo") is None

    assert [r.url.path for r in calls] == ["/default/api/foo"]
    assert calls[0].method == "GET"
    assert decoder.types == [Entity[str, int]]
    assert seen == ["apply", "aroundDecode"]


def test_resolves_body_parameter_type() -> None:
    calls: list[httpx.Request] = []
    encoder = RecordingEncoder()
    decoder = RecordingDecoder()
    config = ClientConfig(
        encoder=encoder,
        decoder=decoder,
        client=HttpxClient(transport=_recording_transport(calls)),
    )

    target(MyApi, "http://localhost/default", config).get_all(Keys[str]())

    assert encoder.types == [Keys[str]]
    assert decoder.types == [Entities[str, int]]
    assert calls[0].method == "POST"
    assert calls[0].url.path == "/default/api"


def test_json_codecs_round_trip_generic_models() -> None:
    captured: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request.content)
        return httpx.Response(
            200,
            json={"entities": [{"key": "a", "model": 1}, {"key": "b", "model": "2"}]},
            request=request,
        )

    config = ClientConfig(
        encoder=JsonEncoder(),
        decoder=JsonDecoder(),
        client=HttpxClient(transport=httpx.MockTransport(handler)),
    )
    result = target(MyApi, "http://localhost", config).get_all(Keys[str](keys=["a", "b"]))

    assert isinstance(result, Entities[str, int])
    assert [(e.key, e.model) for e in result.entities] == [("a", 1), ("b", 2)]
    assert captured == [b'{"keys":["a","b"]}']


def test_unbound_generic_interface_fails_at_build_time() -> None:
    with pytest.raises(MetadataError) as excinfo:
        ApiBind(ClientConfig(client=HttpxClient(transport=_recording_transport([])))).target(
            BaseApi, "http://localhost"
        )
    assert "Unresolved generic" in str(excinfo.value)
    assert excinfo.value.config_key is not None


def test_generated_client_is_instance_of_interface() -> None:
    config = ClientConfig(client=HttpxClient(transport=_recording_transport([])))
    first = target(MyApi, "http://localhost/default", config)
    second = target(MyApi, "http://localhost/default", config)

    assert isinstance(first, MyApi)
    assert isinstance(first, BaseApi)
    assert first == second
    assert hash(first) == hash(second)
    assert "http://localhost/default" in repr(first)
