from __future__ import annotations

from typing import Annotated, Any, Generic, TypeVar

import pytest
from pydantic import BaseModel

import apibind
from apibind import (
    CollectionFormat,
    Contract,
    HeaderMap,
    MetadataError,
    Param,
    QueryMap,
    body,
    delete,
    headers,
    post,
    request_line,
)

T = TypeVar("T")


class Item(BaseModel):
    id: int
    name: str = ""


class Page(BaseModel, Generic[T]):
    items: list[T] = []


@headers("Accept: application/json")
class Items:
    @request_line("GET /items/{id}?verbose={verbose}", collection_format=CollectionFormat.CSV)
    @headers("X-A: 1")
    @headers("X-B: {id}")
    def get(
        self,
        id: Annotated[int, Param("id")],
        verbose: Annotated[bool | None, Param("verbose")] = None,
    ) -> Item: ...

    @post("/items")
    def create(self, item: Item, trace: Annotated[dict[str, str], HeaderMap()]) -> Item: ...

    @delete("/items/{id}")
    def remove(self, id: Annotated[int, Param("id")]) -> None: ...

    @apibind.get()
    def root(self) -> str: ...

    def helper(self) -> str:
        return "plain"


def test_metadata_for_bound_methods() -> None:
    table = Contract().parse_and_validate(Items)
    assert sorted(table) == ["create", "get", "remove", "root"]

    meta = table["get"]
    assert meta.config_key == "Items#get(id,verbose)"
    assert meta.method_name == "get"
    assert meta.verb == "GET"
    assert meta.request_line() == "GET /items/{id}?verbose={verbose}"
    assert meta.index_to_name == {0: "id", 1: "verbose"}
    assert meta.param_indexes_to_expand == frozenset({0, 1})
    assert meta.body_index is None
    assert meta.return_type is Item
    assert meta.collection_format is CollectionFormat.CSV
    assert [(name, str(value)) for name, value in meta.headers] == [
        ("Accept", "application/json"),
        ("X-A", "1"),
        ("X-B", "{id}"),
    ]
    assert meta.parameter_names == ("id", "verbose")


def test_unmarked_parameter_is_the_body() -> None:
    meta = Contract().parse_and_validate(Items)["create"]
    assert meta.verb == "POST"
    assert meta.body_index == 0
    assert meta.body_type is Item
    assert meta.header_map_index == 1
    assert meta.describe()["body"] == "Item"


def test_verb_shortcuts() -> None:
    table = Contract().parse_and_validate(Items)
    assert table["remove"].request_line() == "DELETE /items/{id}"
    assert table["remove"].return_type is type(None)
    assert table["root"].request_line() == "GET "
    assert str(table["root"].path) == ""


def test_methods_without_request_line_are_not_bound() -> None:
    assert "helper" not in Contract().parse_and_validate(Items)


@headers("X-Base: 1")
class Base:
    @request_line("GET /a")
    def a(self) -> str: ...

    @request_line("GET /b")
    def b(self) -> str: ...


@headers("X-Child: 2")
class Child(Base):
    def b(self) -> str:
        return "local"

    @request_line("GET /c")
    def c(self) -> str: ...


def test_hierarchy_is_flattened_and_plain_overrides_unbind() -> None:
    table = Contract().parse_and_validate(Child)
    assert sorted(table) == ["a", "c"]
    assert table["a"].config_key == "Child#a()"
    assert [name for name, _ in table["c"].headers] == ["X-Base", "X-Child"]


def test_generic_body_and_return_types_resolve_through_subclass() -> None:
    class Pages(Generic[T]):
        @request_line("POST /pages")
        def put(self, page: Page[T]) -> list[Page[T]]: ...

    class ItemPages(Pages[Item]):
        pass

    meta = Contract().parse_and_validate(ItemPages)["put"]
    assert meta.body_type == Page[Item]
    assert meta.return_type == list[Page[Item]]


def test_unresolved_generic_body_is_rejected() -> None:
    class Pages(Generic[T]):
        @request_line("POST /pages")
        def put(self, page: Page[T]) -> None: ...

    with pytest.raises(MetadataError, match="Unresolved generic body type"):
        Contract().parse_and_validate(Pages)


A = TypeVar("A")
B = TypeVar("B")


class First(Generic[A]):
    @request_line("GET /first/{key}")
    def first(self, key: Annotated[A, Param("key")]) -> list[A]: ...


class Second(Generic[B]):
    @request_line("GET /second/{key}")
    def second(self, key: Annotated[str, Param("key")]) -> Page[B]: ...


class FirstStr(First[str]):
    pass


class SecondInt(Second[int]):
    pass


class Combined(FirstStr, SecondInt):
    pass


def test_generic_bindings_survive_multiple_inheritance() -> None:
    table = Contract().parse_and_validate(Combined)
    assert sorted(table) == ["first", "second"]
    assert table["first"].return_type == list[str]
    assert table["second"].return_type == Page[int]
    assert table["second"].config_key == "Combined#second(key)"


class Variadic:
    @request_line("GET /x")
    def f(self, *ids: int) -> str: ...


class TwoBodies:
    @request_line("POST /x")
    def f(self, a: str, b: str) -> str: ...


class BodyAndTemplate:
    @request_line("POST /x")
    @body("{a}")
    def f(self, a: Annotated[str, Param("a")], payload: str) -> str: ...


class Undeclared:
    @request_line("GET /x/{id}")
    def f(self) -> str: ...


class Unused:
    @request_line("GET /x")
    def f(self, id: Annotated[int, Param("id")]) -> str: ...


class DuplicateName:
    @request_line("GET /x/{id}")
    def f(self, a: Annotated[int, Param("id")], b: Annotated[int, Param("id")]) -> str: ...


class TwoMarkers:
    @request_line("GET /x/{a}")
    def f(self, a: Annotated[int, Param("a"), Param("b")]) -> str: ...


class TwoQueryMaps:
    @request_line("GET /x")
    def f(
        self,
        a: Annotated[dict[str, Any], QueryMap()],
        b: Annotated[dict[str, Any], QueryMap()],
    ) -> str: ...


class LowerVerb:
    @request_line("get /x")
    def f(self) -> str: ...


class BadHeader:
    @request_line("GET /x")
    @headers("NoColonHere")
    def f(self) -> str: ...


@pytest.mark.parametrize(
    ("interface", "message"),
    [
        (Variadic, "Variadic parameter 'ids'"),
        (TwoBodies, "too many body parameters"),
        (BodyAndTemplate, "body template cannot be combined"),
        (Undeclared, "'id' does not match any Param"),
        (Unused, "Param 'id' is not referenced"),
        (DuplicateName, "'id' is bound by more than one parameter"),
        (TwoMarkers, "more than one binding marker"),
        (TwoQueryMaps, "QueryMap declared more than once"),
        (LowerVerb, "upper-case HTTP verb"),
        (BadHeader, "Header template must look like"),
    ],
)
def test_invalid_declarations_are_rejected(interface: type, message: str) -> None:
    with pytest.raises(MetadataError) as excinfo:
        Contract().parse_and_validate(interface)
    assert message in excinfo.value.message
    assert excinfo.value.config_key is not None
    assert excinfo.value.config_key.startswith(f"{interface.__name__}#f(")


def test_interface_must_be_a_class() -> None:
    with pytest.raises(MetadataError, match="must be a class"):
        Contract().parse_and_validate(Items())  # type: ignore[arg-type]


def test_describe_summarizes_metadata() -> None:
    summary = Contract().parse_and_validate(Items)["get"].describe()
    assert summary == {
        "method": "Items#get(id,verbose)",
        "request": "GET /items/{id}?verbose={verbose}",
        "headers": ["Accept: application/json", "X-A: 1", "X-B: {id}"],
        "params": {"0": "id", "1": "verbose"},
        "body": None,
        "returns": "Item",
    }
