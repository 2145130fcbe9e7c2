"""
Template expansion engine.

Builds a fresh `RequestTemplate` from a method's metadata and the argument
values of one call. Body arguments are left for the encoder.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from .exceptions import RequestBuildError
from .metadata import MethodMetadata
from .template import CollectionFormat, RequestTemplate, Template, encode_path, encode_query

_COLLECTIONS = (list, tuple, set, frozenset)


def to_string(value: Any) -> str:
    """Default value-to-string conversion for template variables."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return to_string(value.value)
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class _Arguments:
    """Resolved argument values of one call, keyed by template variable name."""

    def __init__(self, metadata: MethodMetadata, argv: Sequence[Any]) -> None:
        self._metadata = metadata
        self._values: dict[str, Any] = {}
        self._encoded: set[str] = set()
        self._expanders: dict[str, Any] = {}
        for index, name in metadata.index_to_name.items():
            self._values[name] = argv[index]
            if index in metadata.index_to_encoded:
                self._encoded.add(name)
            if index in metadata.index_to_expander:
                self._expanders[name] = metadata.index_to_expander[index]

    def raw(self, name: str) -> Any:
        return self._values.get(name)

    def is_encoded(self, name: str) -> bool:
        return name in self._encoded

    def render(self, value: Any, name: str) -> str | None:
        if value is None:
            return None
        expander = self._expanders.get(name)
        if expander is not None:
            return expander(value)
        return to_string(value)

    def render_all(self, name: str) -> list[str]:
        """Render a collection-valued argument element by element (None elements skipped)."""
        value = self.raw(name)
        if value is None:
            return []
        items = value if isinstance(value, _COLLECTIONS) else [value]
        rendered = (self.render(item, name) for item in items)
        return [item for item in rendered if item is not None]

    def is_collection(self, name: str) -> bool:
        return isinstance(self.raw(name), _COLLECTIONS)


def _expand_path(metadata: MethodMetadata, args: _Arguments) -> str:
    def resolve(name: str) -> str:
        values = args.render_all(name)
        if not values:
            raise RequestBuildError(
                f"Path variable {name!r} is required but resolved to None",
                config_key=metadata.config_key,
            )
        joined = CollectionFormat.CSV.join(values, for_query=False)[0]
        if args.is_encoded(name):
            return joined
        return encode_path(joined, decode_slash=metadata.decode_slash)

    return metadata.path.expand(resolve) or ""


def _expand_value(template: Template, args: _Arguments, *, for_query: bool) -> str | None:
    def resolve(name: str) -> str | None:
        rendered = args.render(args.raw(name), name)
        if rendered is None or not for_query or args.is_encoded(name):
            return rendered
        return encode_query(rendered)

    return template.expand(resolve)


def _expand_entry(
    template: Template,
    args: _Arguments,
    *,
    collection_format: CollectionFormat,
    for_query: bool,
) -> list[str] | None:
    """Values for one query/header entry, or None when the entry is omitted."""
    variable = template.single_variable
    if variable is not None and args.is_collection(variable):
        values = args.render_all(variable)
        if not values:
            return None
        if for_query and not args.is_encoded(variable):
            values = [encode_query(value) for value in values]
        return collection_format.join(values, for_query=for_query)
    expanded = _expand_value(template, args, for_query=for_query)
    if expanded is None:
        return None
    return [expanded]


def _map_items(value: Any, *, config_key: str, kind: str) -> list[tuple[str, list[Any]]]:
    if value is None:
        return []
    if not isinstance(value, Mapping):
        raise RequestBuildError(f"{kind} argument must be a mapping", config_key=config_key)
    items: list[tuple[str, list[Any]]] = []
    for key, item in value.items():
        if key is None:
            raise RequestBuildError(f"{kind} keys must not be None", config_key=config_key)
        elements = list(item) if isinstance(item, _COLLECTIONS) else [item]
        items.append((str(key), [element for element in elements if element is not None]))
    return items


def expand_template(metadata: MethodMetadata, argv: Sequence[Any]) -> RequestTemplate:
    """Create the pre-interceptor `RequestTemplate` for one call attempt."""
    args = _Arguments(metadata, argv)
    template = RequestTemplate(metadata.verb, _expand_path(metadata, args), metadata=metadata)

    for name, value_template in metadata.queries:
        if not value_template.variables:
            if value_template.text:
                template.query(name, value_template.text, encoded=True)
            else:
                template.query(name, encoded=True)
            continue
        values = _expand_entry(
            value_template, args, collection_format=metadata.collection_format, for_query=True
        )
        if values is not None:
            template.query(name, *values, encoded=True)

    if metadata.query_map_index is not None:
        items = _map_items(
            argv[metadata.query_map_index], config_key=metadata.config_key, kind="QueryMap"
        )
        for key, elements in items:
            rendered = [to_string(element) for element in elements]
            if not rendered:
                continue
            if metadata.query_map_encoded:
                template.query(key, *rendered, encoded=True)
            else:
                template.query(key, *rendered)

    for name, value_template in metadata.headers:
        values = _expand_entry(
            value_template, args, collection_format=metadata.collection_format, for_query=False
        )
        if values is not None:
            template.header(name, *values)

    if metadata.header_map_index is not None:
        items = _map_items(
            argv[metadata.header_map_index], config_key=metadata.config_key, kind="HeaderMap"
        )
        for key, elements in items:
            if elements:
                template.header(key, *(to_string(element) for element in elements))

    if metadata.body_template is not None:
        text = metadata.body_template.expand(
            lambda name: args.render(args.raw(name), name), allow_missing=True
        )
        template.set_body(text)

    if metadata.body_index is not None:
        template.body_type = metadata.body_type
    return template


__all__ = ["expand_template", "to_string"]
