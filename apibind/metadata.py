"""
Per-method call metadata.

A `MethodMetadata` is built once per interface method when a client is
created and never mutated afterwards. Parameter markers (`Param`, `QueryMap`,
`HeaderMap`) are attached to parameters with `typing.Annotated`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .template import CollectionFormat, Template
from .types import type_name

Expander = Callable[[Any], "str | None"]


@dataclass(frozen=True, slots=True)
class Param:
    """
    Bind a parameter to a template variable.

    Example:
        ```python
        @request_line("GET /repos/{owner}/{repo}")
        def repo(self, owner: Annotated[str, Param("owner")],
                 repo: Annotated[str, Param("repo")]) -> Repo: ...
        ```

    Attributes:
        name: template variable name (case-sensitive)
        encoded: the value is already percent-encoded and passed through as-is
        expander: custom value-to-string conversion (returning None omits the value)
    """

    name: str
    encoded: bool = False
    expander: Expander | None = None


@dataclass(frozen=True, slots=True)
class QueryMap:
    """Mark a `Mapping[str, Any]` parameter whose items become query parameters."""

    encoded: bool = False


@dataclass(frozen=True, slots=True)
class HeaderMap:
    """Mark a `Mapping[str, Any]` parameter whose items become headers."""


@dataclass(frozen=True, slots=True)
class MethodMetadata:
    """Immutable description of one interface method."""

    config_key: str
    method_name: str
    verb: str
    path: Template
    queries: tuple[tuple[str, Template], ...] = ()
    headers: tuple[tuple[str, Template], ...] = ()
    body_template: Template | None = None
    body_index: int | None = None
    body_type: Any = None
    return_type: Any = None
    index_to_name: Mapping[int, str] = field(default_factory=dict)
    param_indexes_to_expand: frozenset[int] = frozenset()
    index_to_encoded: frozenset[int] = frozenset()
    index_to_expander: Mapping[int, Expander] = field(default_factory=dict)
    query_map_index: int | None = None
    query_map_encoded: bool = False
    header_map_index: int | None = None
    decode_slash: bool = True
    collection_format: CollectionFormat = CollectionFormat.EXPLODED
    parameter_names: tuple[str, ...] = ()

    @property
    def template_variables(self) -> frozenset[str]:
        """Every variable referenced by the path, query, header and body templates."""
        names: set[str] = set(self.path.variables)
        for _, template in (*self.queries, *self.headers):
            names.update(template.variables)
        if self.body_template is not None:
            names.update(self.body_template.variables)
        return frozenset(names)

    def request_line(self) -> str:
        line = f"{self.verb} {self.path}"
        if self.queries:
            rendered = [f"{name}={value}" if value.text else name for name, value in self.queries]
            line += "?" + "&".join(rendered)
        return line

    def describe(self) -> dict[str, Any]:
        """Plain-data summary used by the CLI and diagnostics."""
        return {
            "method": self.config_key,
            "request": self.request_line(),
            "headers": [f"{name}: {value}" for name, value in self.headers],
            "params": {str(index): name for index, name in sorted(self.index_to_name.items())},
            "body": (
                type_name(self.body_type)
                if self.body_index is not None
                else (str(self.body_template) if self.body_template is not None else None)
            ),
            "returns": type_name(self.return_type),
        }


__all__ = ["Expander", "HeaderMap", "MethodMetadata", "Param", "QueryMap"]
