"""
Type resolution helpers.

Interfaces may be generic (`class BaseApi(Generic[K, M])`) and bound by a
subclass (`class MyApi(BaseApi[str, int])`). Method signatures declared on the
base refer to `K`/`M`; these helpers substitute the bindings so the codecs only
ever see closed types such as `Entity[str, int]`.
"""

from __future__ import annotations

import collections.abc
import types
from typing import Annotated, Any, Generic, Literal, Protocol, TypeVar, Union, get_args, get_origin

TypeBindings = dict[TypeVar, Any]

_UNION_ORIGINS: tuple[Any, ...] = (Union, types.UnionType)


def _pydantic_generic(tp: Any) -> tuple[Any, tuple[Any, ...]] | None:
    """
    Return `(origin, args)` for a pydantic generic model.

    pydantic returns the unparametrized class for `Model[T]` when `T` is the
    model's own parameter, so an unparametrized generic model reports its
    parameters as (open) args.
    """
    meta = getattr(tp, "__pydantic_generic_metadata__", None)
    if not isinstance(meta, dict):
        return None
    origin = meta.get("origin")
    if origin is None:
        parameters = tuple(meta.get("parameters") or ())
        return (tp, parameters) if parameters else None
    args = meta.get("args") or ()
    if not args:
        return None
    return origin, tuple(args)


def resolve_type(tp: Any, bindings: TypeBindings) -> Any:
    """Substitute bound TypeVars inside `tp`. Unbound TypeVars are left in place."""
    if isinstance(tp, TypeVar):
        return bindings.get(tp, tp)
    if isinstance(tp, list):
        return [resolve_type(item, bindings) for item in tp]

    pydantic_generic = _pydantic_generic(tp)
    if pydantic_generic is not None:
        origin, args = pydantic_generic
        new_args = tuple(resolve_type(arg, bindings) for arg in args)
        if new_args == args:
            return tp
        return origin[new_args[0] if len(new_args) == 1 else new_args]

    origin = get_origin(tp)
    if origin is None or origin is Literal:
        return tp
    args = get_args(tp)
    if not args:
        return tp

    if origin is Annotated:
        inner = resolve_type(args[0], bindings)
        if inner is args[0]:
            return tp
        return Annotated[(inner, *tp.__metadata__)]

    new_args = tuple(resolve_type(arg, bindings) for arg in args)
    if new_args == args:
        return tp
    if origin in _UNION_ORIGINS:
        return Union[new_args]
    if origin is collections.abc.Callable:
        return collections.abc.Callable[new_args[0], new_args[1]]
    copy_with = getattr(tp, "copy_with", None)
    if copy_with is not None:
        return copy_with(new_args)
    return origin[new_args]


def free_type_vars(tp: Any) -> list[TypeVar]:
    """List the TypeVars still open inside `tp`, in first-seen order."""
    found: list[TypeVar] = []

    def visit(item: Any) -> None:
        if isinstance(item, TypeVar):
            if item not in found:
                found.append(item)
            return
        if isinstance(item, list):
            for element in item:
                visit(element)
            return
        pydantic_generic = _pydantic_generic(item)
        if pydantic_generic is not None:
            for arg in pydantic_generic[1]:
                visit(arg)
            return
        origin = get_origin(item)
        if origin is None or origin is Literal:
            return
        args = get_args(item)
        if origin is Annotated:
            args = args[:1]
        for arg in args:
            visit(arg)

    visit(tp)
    return found


def interface_bindings(interface: type) -> dict[type, TypeBindings]:
    """
    Map every generic class in `interface`'s hierarchy to its TypeVar bindings.

    Bindings are expressed in terms of the concrete `interface`: for
    `class Leaf(Mid[int])` and `class Mid(BaseApi[str, V], Generic[V])` the
    result maps `BaseApi` to `{K: str, M: int}`.
    """
    result: dict[type, TypeBindings] = {interface: {}}

    def visit(klass: type, bindings: TypeBindings) -> None:
        # Only the class's own declaration; getattr would find a parent's bases.
        for base in klass.__dict__.get("__orig_bases__", klass.__bases__):
            origin = get_origin(base)
            if origin is None:
                if isinstance(base, type) and base not in (object, Generic, Protocol):
                    result.setdefault(base, {})
                    visit(base, {})
                continue
            if origin is Generic or origin is Protocol:
                continue
            parameters = getattr(origin, "__parameters__", ())
            args = tuple(resolve_type(arg, bindings) for arg in get_args(base))
            base_bindings = dict(zip(parameters, args))
            if origin not in result:
                result[origin] = base_bindings
            visit(origin, base_bindings)

    visit(interface, {})
    return result


def is_optional(tp: Any) -> bool:
    """Whether `None` is a valid value of `tp`."""
    if tp is None or tp is type(None) or tp is Any:
        return True
    origin = get_origin(tp)
    if origin is Annotated:
        return is_optional(get_args(tp)[0])
    if origin in _UNION_ORIGINS:
        return any(arg is type(None) for arg in get_args(tp))
    return False


def empty_value_of(tp: Any) -> tuple[bool, Any]:
    """
    Return `(True, value)` when `tp` has a natural empty value.

    Optional types map to `None`; builtin containers map to an empty container.
    """
    if is_optional(tp):
        return True, None
    origin = get_origin(tp)
    if origin is Annotated:
        return empty_value_of(get_args(tp)[0])
    container = origin or tp
    for kind in (list, dict, set, frozenset, tuple):
        if container is kind:
            return True, kind()
    if container in (collections.abc.Sequence, collections.abc.Iterable):
        return True, []
    if container is collections.abc.Mapping:
        return True, {}
    return False, None


def type_name(tp: Any) -> str:
    """Readable name for diagnostics (`Entity[str, int]`, `str`, `None`)."""
    if tp is None or tp is type(None):
        return "None"
    if isinstance(tp, type) and get_origin(tp) is None and _pydantic_generic(tp) is None:
        return tp.__qualname__
    if isinstance(tp, type):
        return tp.__name__
    return repr(tp).replace("typing.", "")


__all__ = [
    "TypeBindings",
    "empty_value_of",
    "free_type_vars",
    "interface_bindings",
    "is_optional",
    "resolve_type",
    "type_name",
]
