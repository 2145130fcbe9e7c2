from __future__ import annotations

import json
import sys
from collections.abc import Mapping
from typing import Any

from pydantic_core import to_jsonable_python
from rich.console import Console
from rich.table import Table

from ..metadata import MethodMetadata
from .errors import CLIError


def _error_title(error_type: str) -> str:
    mapping = {
        "usage_error": "Usage error",
        "metadata_error": "Invalid interface",
        "encode_error": "Encode error",
        "decode_error": "Decode error",
        "http_error": "HTTP error",
        "network_error": "Network error",
        "aborted": "Aborted",
        "internal_error": "Internal error",
    }
    return mapping.get((error_type or "").strip(), "Error")


def emit_json(payload: Any) -> None:
    text = json.dumps(to_jsonable_python(payload), ensure_ascii=False, indent=2)
    sys.stdout.write(text + "\n")


def render_error(error: CLIError, *, as_json: bool = False, quiet: bool = False) -> None:
    if as_json:
        emit_json(
            {
                "ok": False,
                "error": {
                    "type": error.error_type,
                    "message": error.message,
                    "details": error.details,
                },
            }
        )
        return
    stderr = Console(file=sys.stderr, force_terminal=False, soft_wrap=True)
    stderr.print(f"{_error_title(error.error_type)}: {error.message}", markup=False)
    if quiet or not error.details:
        return
    for key, value in error.details.items():
        stderr.print(f"  {key}: {value}", markup=False)


def render_metadata(interface: type, table: Mapping[str, MethodMetadata]) -> None:
    console = Console(force_terminal=False, soft_wrap=True)
    if not table:
        console.print(f"{interface.__name__}: no bound methods", markup=False)
        return
    grid = Table(title=f"{interface.__module__}.{interface.__qualname__}", show_lines=False)
    grid.add_column("Method")
    grid.add_column("Request")
    grid.add_column("Headers")
    grid.add_column("Body")
    grid.add_column("Returns")
    for metadata in table.values():
        summary = metadata.describe()
        grid.add_row(
            summary["method"],
            summary["request"],
            "\n".join(summary["headers"]) or "-",
            summary["body"] or "-",
            summary["returns"],
        )
    console.print(grid)


def render_result(value: Any, *, as_json: bool) -> None:
    if as_json or not isinstance(value, (str, bytes)):
        emit_json({"ok": True, "data": value})
        return
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    sys.stdout.write(value + ("" if value.endswith("\n") else "\n"))
