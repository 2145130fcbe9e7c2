from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler

import apibind

from ..codec import JsonDecoder, JsonEncoder
from ..config import ClientConfig
from ..factory import ApiBind, dispatchers_of
from ..http import Response
from ..logger import LogLevel
from ..retry import ExponentialBackoffRetryer
from .errors import CLIError, normalize_exception
from .loader import load_interface
from .render import render_error, render_metadata, render_result

_LOGGER_NAME = "apibind"


@dataclass(frozen=True, slots=True)
class CLIState:
    verbosity: int
    json_output: bool
    quiet: bool


@dataclass(frozen=True, slots=True)
class _PreviousLogging:
    level: int
    handlers: list[logging.Handler]
    propagate: bool


def configure_logging(verbosity: int) -> _PreviousLogging:
    log = logging.getLogger(_LOGGER_NAME)
    previous = _PreviousLogging(log.level, list(log.handlers), log.propagate)
    if verbosity <= 0:
        return previous
    handler = RichHandler(
        console=Console(file=sys.stderr, force_terminal=False),
        show_path=False,
        markup=False,
    )
    log.handlers = [handler]
    log.setLevel(logging.DEBUG)
    log.propagate = False
    return previous


def restore_logging(previous: _PreviousLogging) -> None:
    log = logging.getLogger(_LOGGER_NAME)
    log.handlers = previous.handlers
    log.setLevel(previous.level)
    log.propagate = previous.propagate


def run_command(state: CLIState, fn: Callable[[], None]) -> None:
    try:
        fn()
    except click.exceptions.Exit:
        raise
    except Exception as exc:
        error = normalize_exception(exc)
        render_error(error, as_json=state.json_output, quiet=state.quiet)
        raise click.exceptions.Exit(error.exit_code) from exc


def _parse_args(pairs: tuple[str, ...]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise CLIError(
                f"Arguments must look like name=value, got {pair!r}",
                exit_code=2,
                error_type="usage_error",
            )
        if name in values:
            existing = values[name]
            values[name] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            values[name] = value
    return values


def _read_body(body: str) -> Any:
    text = Path(body[1:]).read_text(encoding="utf-8") if body.startswith("@") else body
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise CLIError(
            f"--body is not valid JSON: {exc}", exit_code=2, error_type="usage_error"
        ) from exc


def _response_payload(response: Response) -> dict[str, Any]:
    return {
        "status": response.status,
        "headers": {name: list(values) for name, values in response.headers.items()},
        "body": response.text(),
    }


@click.group(
    name="apibind",
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--json", "json_flag", is_flag=True, help="Emit machine-readable JSON.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress error details on stderr.")
@click.option("-v", "verbose", count=True, help="Log request traces to stderr (-v).")
@click.version_option(version=apibind.__version__, prog_name="apibind")
@click.pass_context
def cli(click_ctx: click.Context, *, json_flag: bool, quiet: bool, verbose: int) -> None:
    if click_ctx.invoked_subcommand is None:
        click.echo(click_ctx.get_help())
        raise click.exceptions.Exit(0)

    click_ctx.obj = CLIState(verbosity=verbose, json_output=json_flag, quiet=quiet)
    previous = configure_logging(verbose)
    click_ctx.call_on_close(lambda: restore_logging(previous))


@cli.command(name="describe")
@click.argument("interface")
@click.pass_obj
def describe_cmd(state: CLIState, interface: str) -> None:
    """Validate INTERFACE (module:Class) and show its bound methods."""

    def run() -> None:
        iface = load_interface(interface)
        table = ApiBind().describe(iface)
        if state.json_output:
            render_result([metadata.describe() for metadata in table.values()], as_json=True)
        else:
            render_metadata(iface, table)

    run_command(state, run)


@cli.command(name="call")
@click.argument("interface")
@click.argument("method")
@click.option("--url", required=True, help="Base URL the interface is bound to.")
@click.option(
    "-a",
    "--arg",
    "arg_pairs",
    multiple=True,
    help="Method argument as name=value (repeat a name for lists).",
)
@click.option("--body", default=None, help="JSON body argument, or @path to read it from a file.")
@click.option(
    "--log-level",
    type=click.Choice([level.name for level in LogLevel], case_sensitive=False),
    default=None,
    help="Request trace level (implies -v).",
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=None,
    help="Dispatch attempts per call (default: APIBIND_MAX_ATTEMPTS or 5).",
)
@click.option("--timeout", type=float, default=None, help="Read timeout in seconds.")
@click.option("--dotenv/--no-dotenv", default=False, help="Opt-in .env loading.")
@click.pass_obj
def call_cmd(
    state: CLIState,
    interface: str,
    method: str,
    url: str,
    arg_pairs: tuple[str, ...],
    body: str | None,
    log_level: str | None,
    max_attempts: int | None,
    timeout: float | None,
    dotenv: bool,
) -> None:
    """Call METHOD of INTERFACE against URL using the JSON codecs."""

    def run() -> None:
        iface = load_interface(interface)
        overrides: dict[str, Any] = {
            "encoder": JsonEncoder(),
            "decoder": JsonDecoder(),
        }
        if max_attempts is not None:
            overrides["retryer"] = ExponentialBackoffRetryer.factory(max_attempts=max_attempts)
        if log_level is not None:
            overrides["log_level"] = LogLevel.parse(log_level)
            if state.verbosity == 0:
                previous = configure_logging(1)
                click.get_current_context().call_on_close(lambda: restore_logging(previous))
        config = ClientConfig.from_env(load_dotenv=dotenv, **overrides)
        if timeout is not None:
            config = config.evolve(options=replace(config.options, read_timeout=timeout))

        kwargs = _parse_args(arg_pairs)
        with ApiBind(config).target(iface, url) as client:
            dispatchers = dispatchers_of(client)
            if method not in dispatchers:
                raise CLIError(
                    f"{iface.__name__} has no bound method {method!r}; "
                    f"available: {', '.join(sorted(dispatchers)) or '-'}",
                    exit_code=2,
                    error_type="usage_error",
                )
            metadata = dispatchers[method].metadata
            if body is not None:
                if metadata.body_index is None:
                    raise CLIError(
                        f"{metadata.config_key} takes no body argument",
                        exit_code=2,
                        error_type="usage_error",
                    )
                kwargs[metadata.parameter_names[metadata.body_index]] = _read_body(body)
            try:
                result = getattr(client, method)(**kwargs)
            except TypeError as exc:
                raise CLIError(str(exc), exit_code=2, error_type="usage_error") from exc

        if isinstance(result, Response):
            result = _response_payload(result)
        render_result(result, as_json=state.json_output)

    run_command(state, run)


def main() -> None:
    cli()
