from __future__ import annotations

import importlib
import sys
from pathlib import Path

from .errors import CLIError


def load_interface(reference: str, *, search_path: Path | None = None) -> type:
    """
    Import an interface given as `package.module:ClassName`.

    `search_path` (default: the current directory) is put first on `sys.path`
    so project-local modules can be loaded.
    """
    module_name, sep, attr_path = reference.partition(":")
    if not sep or not module_name or not attr_path:
        raise CLIError(
            f"Interface must look like 'module:ClassName', got {reference!r}",
            exit_code=2,
            error_type="usage_error",
        )
    root = str((search_path or Path.cwd()).resolve())
    if root not in sys.path:
        sys.path.insert(0, root)
    try:
        obj: object = importlib.import_module(module_name)
    except ImportError as exc:
        raise CLIError(
            f"Cannot import module {module_name!r}: {exc}",
            exit_code=2,
            error_type="usage_error",
        ) from exc
    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise CLIError(
                f"Module {module_name!r} has no attribute {attr_path!r}",
                exit_code=2,
                error_type="usage_error",
            ) from exc
    if not isinstance(obj, type):
        raise CLIError(f"{reference!r} is not a class", exit_code=2, error_type="usage_error")
    return obj
