"""
Interface contract.

Declares HTTP bindings on interface methods and turns a decorated interface
into a table of `MethodMetadata`, validated once when the client is built.

Example:
    ```python
    from typing import Annotated, Generic, TypeVar

    from apibind import Param, headers, request_line

    K = TypeVar("K")

    @headers("Accept: application/json")
    class BaseApi(Generic[K]):
        @request_line("GET /api/{key}?verbose={verbose}")
        def get(
            self,
            key: Annotated[K, Param("key")],
            verbose: Annotated[bool | None, Param("verbose")] = None,
        ) -> Entity[K]: ...

    class MyApi(BaseApi[str]): ...
    ```
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any, TypeVar, get_args, get_origin, get_type_hints

from .exceptions import MetadataError
from .metadata import Expander, HeaderMap, MethodMetadata, Param, QueryMap
from .template import CollectionFormat, Template
from .types import TypeBindings, free_type_vars, interface_bindings, resolve_type, type_name

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")

_REQUEST_LINE_ATTR = "__apibind_request_line__"
_HEADERS_ATTR = "__apibind_headers__"
_BODY_ATTR = "__apibind_body__"

_IGNORED_BASES = frozenset({"object", "Generic", "Protocol"})


@dataclass(frozen=True, slots=True)
class RequestLine:
    line: str
    decode_slash: bool = True
    collection_format: CollectionFormat = CollectionFormat.EXPLODED


def request_line(
    line: str,
    *,
    decode_slash: bool = True,
    collection_format: CollectionFormat = CollectionFormat.EXPLODED,
) -> Callable[[F], F]:
    """
    Bind a method to an HTTP request line such as `"GET /users/{id}?fields={fields}"`.

    Args:
        line: verb, path template and optional query template
        decode_slash: keep `/` unescaped in expanded path values
        collection_format: how collections bound to one query/header name render
    """

    def decorator(func: F) -> F:
        setattr(func, _REQUEST_LINE_ATTR, RequestLine(line, decode_slash, collection_format))
        return func

    return decorator


def _make_verb_decorator(verb: str) -> Callable[..., Callable[[F], F]]:
    def verb_decorator(
        path: str = "",
        *,
        decode_slash: bool = True,
        collection_format: CollectionFormat = CollectionFormat.EXPLODED,
    ) -> Callable[[F], F]:
        return request_line(
            f"{verb} {path}".rstrip(),
            decode_slash=decode_slash,
            collection_format=collection_format,
        )

    verb_decorator.__name__ = verb.lower()
    verb_decorator.__doc__ = f"Shorthand for `request_line(\"{verb} <path>\")`."
    return verb_decorator


get = _make_verb_decorator("GET")
post = _make_verb_decorator("POST")
put = _make_verb_decorator("PUT")
patch = _make_verb_decorator("PATCH")
delete = _make_verb_decorator("DELETE")


def headers(*lines: str) -> Callable[[T], T]:
    """
    Attach header templates (`"Name: value {var}"`) to a method or an interface class.

    Class-level headers apply to every method of the interface and precede
    method-level headers.
    """

    def decorator(obj: T) -> T:
        existing = obj.__dict__.get(_HEADERS_ATTR, ())
        setattr(obj, _HEADERS_ATTR, tuple(lines) + tuple(existing))
        return obj

    return decorator


def body(template: str) -> Callable[[F], F]:
    """Send an expanded string template as the request body instead of an encoded argument."""

    def decorator(func: F) -> F:
        setattr(func, _BODY_ATTR, template)
        return func

    return decorator


def _parse_header(line: str, *, config_key: str) -> tuple[str, Template]:
    name, sep, value = line.partition(":")
    if not sep or not name.strip():
        raise MetadataError(
            f"Header template must look like 'Name: value', got {line!r}", config_key=config_key
        )
    return name.strip(), Template(value.strip())


def _parse_request_line(
    line: str, *, config_key: str
) -> tuple[str, Template, list[tuple[str, Template]]]:
    parts = line.strip().split(None, 1)
    if not parts:
        raise MetadataError("Request line is empty", config_key=config_key)
    verb = parts[0]
    if not (verb.isalpha() and verb.isupper()):
        raise MetadataError(
            f"Request line must start with an upper-case HTTP verb, got {line!r}",
            config_key=config_key,
        )
    uri = parts[1].strip() if len(parts) > 1 else ""
    path, _, query = uri.partition("?")
    if path and not path.startswith("/") and "://" not in path and not path.startswith("{"):
        path = "/" + path

    queries: list[tuple[str, Template]] = []
    for chunk in query.split("&"):
        if not chunk:
            continue
        name, _, value = chunk.partition("=")
        if not name:
            raise MetadataError(
                f"Query template has an empty name: {line!r}", config_key=config_key
            )
        queries.append((name, Template(value)))
    return verb, Template(path), queries


def _split_annotation(annotation: Any, *, config_key: str, name: str) -> tuple[Any, Any]:
    """Return `(base_type, marker)` for a parameter annotation."""
    if get_origin(annotation) is not Annotated:
        return annotation, None
    base = get_args(annotation)[0]
    markers = [m for m in annotation.__metadata__ if isinstance(m, (Param, QueryMap, HeaderMap))]
    if len(markers) > 1:
        raise MetadataError(
            f"Parameter {name!r} carries more than one binding marker", config_key=config_key
        )
    return base, (markers[0] if markers else None)


def _closed(tp: Any, bindings: TypeBindings, *, config_key: str, what: str) -> Any:
    resolved = resolve_type(tp, bindings)
    unresolved = free_type_vars(resolved)
    if unresolved:
        names = ", ".join(var.__name__ for var in unresolved)
        raise MetadataError(
            f"Unresolved generic {what} type {type_name(resolved)} (open: {names}); "
            "bind the type variables in a subclass of the interface",
            config_key=config_key,
        )
    return resolved


class Contract:
    """Builds validated `MethodMetadata` for every bound method of an interface."""

    def parse_and_validate(self, interface: type) -> dict[str, MethodMetadata]:
        if not isinstance(interface, type):
            raise MetadataError(f"Interface must be a class, got {interface!r}")

        methods: dict[str, tuple[type, Callable[..., Any]]] = {}
        header_lines: list[str] = []
        for klass in reversed(interface.__mro__):
            if klass.__name__ in _IGNORED_BASES and klass.__module__ in ("builtins", "typing"):
                continue
            header_lines.extend(klass.__dict__.get(_HEADERS_ATTR, ()))
            for name, attr in vars(klass).items():
                if not inspect.isfunction(attr):
                    continue
                if hasattr(attr, _REQUEST_LINE_ATTR):
                    methods[name] = (klass, attr)
                else:
                    methods.pop(name, None)

        bindings_by_class = interface_bindings(interface)
        table: dict[str, MethodMetadata] = {}
        for name, (owner, func) in methods.items():
            table[name] = self.parse_method(
                interface,
                func,
                bindings=bindings_by_class.get(owner, {}),
                class_headers=header_lines,
            )
        return table

    def parse_method(
        self,
        interface: type,
        func: Callable[..., Any],
        *,
        bindings: TypeBindings,
        class_headers: list[str],
    ) -> MethodMetadata:
        signature = inspect.signature(func)
        parameters = list(signature.parameters.values())[1:]
        config_key = f"{interface.__name__}#{func.__name__}({','.join(p.name for p in parameters)})"

        for parameter in parameters:
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                raise MetadataError(
                    f"Variadic parameter {parameter.name!r} cannot be bound to a request",
                    config_key=config_key,
                )

        try:
            hints = get_type_hints(func, include_extras=True)
        except (NameError, TypeError) as e:
            raise MetadataError(f"Cannot evaluate annotations: {e}", config_key=config_key) from e

        rl: RequestLine = getattr(func, _REQUEST_LINE_ATTR)
        verb, path, queries = _parse_request_line(rl.line, config_key=config_key)
        header_templates = [
            _parse_header(line, config_key=config_key)
            for line in (*class_headers, *func.__dict__.get(_HEADERS_ATTR, ()))
        ]
        body_text = getattr(func, _BODY_ATTR, None)
        body_template = Template(body_text) if body_text is not None else None

        index_to_name: dict[int, str] = {}
        index_to_encoded: set[int] = set()
        index_to_expander: dict[int, Expander] = {}
        body_index: int | None = None
        body_type: Any = None
        query_map: tuple[int, bool] | None = None
        header_map_index: int | None = None

        for index, parameter in enumerate(parameters):
            annotation = hints.get(parameter.name, Any)
            base, marker = _split_annotation(annotation, config_key=config_key, name=parameter.name)
            if isinstance(marker, Param):
                if marker.name in index_to_name.values():
                    raise MetadataError(
                        f"Template variable {marker.name!r} is bound by more than one parameter",
                        config_key=config_key,
                    )
                index_to_name[index] = marker.name
                if marker.encoded:
                    index_to_encoded.add(index)
                if marker.expander is not None:
                    index_to_expander[index] = marker.expander
            elif isinstance(marker, QueryMap):
                if query_map is not None:
                    raise MetadataError("QueryMap declared more than once", config_key=config_key)
                query_map = (index, marker.encoded)
            elif isinstance(marker, HeaderMap):
                if header_map_index is not None:
                    raise MetadataError("HeaderMap declared more than once", config_key=config_key)
                header_map_index = index
            else:
                if body_index is not None:
                    raise MetadataError(
                        f"Method has too many body parameters ({parameters[body_index].name!r} "
                        f"and {parameter.name!r}); bind extra parameters with Param",
                        config_key=config_key,
                    )
                body_index = index
                body_type = _closed(base, bindings, config_key=config_key, what="body")

        if body_index is not None and body_template is not None:
            raise MetadataError(
                "A body template cannot be combined with a body parameter", config_key=config_key
            )

        return_type = _closed(
            hints.get("return", Any), bindings, config_key=config_key, what="return"
        )

        metadata = MethodMetadata(
            config_key=config_key,
            method_name=func.__name__,
            verb=verb,
            path=path,
            queries=tuple(queries),
            headers=tuple(header_templates),
            body_template=body_template,
            body_index=body_index,
            body_type=body_type,
            return_type=return_type,
            index_to_name=index_to_name,
            param_indexes_to_expand=frozenset(index_to_name),
            index_to_encoded=frozenset(index_to_encoded),
            index_to_expander=index_to_expander,
            query_map_index=query_map[0] if query_map else None,
            query_map_encoded=query_map[1] if query_map else False,
            header_map_index=header_map_index,
            decode_slash=rl.decode_slash,
            collection_format=rl.collection_format,
            parameter_names=tuple(p.name for p in parameters),
        )
        self._validate_variables(metadata)
        return metadata

    def _validate_variables(self, metadata: MethodMetadata) -> None:
        referenced = metadata.template_variables
        declared = set(metadata.index_to_name.values())
        undeclared = sorted(referenced - declared)
        if undeclared:
            raise MetadataError(
                f"Template variable {undeclared[0]!r} does not match any Param-bound parameter",
                config_key=metadata.config_key,
            )
        unused = sorted(declared - referenced)
        if unused:
            raise MetadataError(
                f"Param {unused[0]!r} is not referenced by any path, query, header or body "
                "template",
                config_key=metadata.config_key,
            )


__all__ = [
    "Contract",
    "RequestLine",
    "body",
    "delete",
    "get",
    "headers",
    "patch",
    "post",
    "put",
    "request_line",
]
