# === NAVMAP v1 ===
# {
#   "module": "AdbcFlightSQL.DriverFetch.cli",
#   "purpose": "Typer entry point invoked as a build step",
#   "sections": [
#     {"id": "app", "name": "Typer application", "anchor": "APP", "kind": "constants"},
#     {"id": "fetch", "name": "fetch", "anchor": "function-fetch", "kind": "function"},
#     {"id": "targets", "name": "targets", "anchor": "function-targets", "kind": "function"},
#     {"id": "config", "name": "config", "anchor": "function-config", "kind": "function"},
#     {"id": "version", "name": "version_cmd", "anchor": "function-version-cmd", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Command-line build step for the ADBC FlightSQL driver.

Build scripts call ``adbc-flightsql-fetch fetch`` with ``TARGET``/``OUT_DIR``
and any ``ADBC_FLIGHTSQL_*`` overrides in the environment. The resolved
library path and version are printed to stdout as ``KEY=VALUE`` lines; all
diagnostics go to stderr.

Example:
    $ TARGET=x86_64-unknown-linux-gnu adbc-flightsql-fetch fetch --env-file "$GITHUB_ENV"
    ADBC_FLIGHTSQL_LIB_PATH=/work/build/adbc-flightsql/libadbc_driver_flightsql.so
    ADBC_FLIGHTSQL_LIB_VERSION=1.9.0
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .errors import DriverFetchError
from .logging_config import setup_logging
from .pipeline import fetch_driver
from .publish import (
    append_env_file,
    env_lines,
    is_stale,
    read_stamp,
    write_constants_module,
    write_stamp,
)
from .settings import load_settings
from .targets import SUPPORTED_TARGETS

_err_console = Console(stderr=True)

app = typer.Typer(
    name="adbc-flightsql-fetch",
    help="Fetch the prebuilt ADBC FlightSQL driver library for a build target",
    no_args_is_help=True,
)


def _fail(exc: Exception) -> typer.Exit:
    _err_console.print(f"[red]error:[/red] {escape(str(exc))}")
    return typer.Exit(1)


@app.command()
def fetch(
    env_file: Optional[Path] = typer.Option(
        None,
        "--env-file",
        help="Append KEY=VALUE outputs to this file (e.g. $GITHUB_ENV)",
    ),
    constants_module: Optional[Path] = typer.Option(
        None,
        "--constants-module",
        help="Write DRIVER_PATH/DRIVER_VERSION constants to this Python module",
    ),
    package_constants: bool = typer.Option(
        False,
        "--package-constants",
        help="Record DRIVER_PATH/DRIVER_VERSION inside the installed package",
    ),
    stamp: Optional[Path] = typer.Option(
        None,
        "--stamp",
        help="Skip the fetch when this stamp shows no watched input changed",
    ),
) -> None:
    """Fetch the driver library and publish its path and version.

    Example:
        $ adbc-flightsql-fetch fetch
        $ adbc-flightsql-fetch fetch --stamp build/adbc-flightsql/.stamp
    """
    try:
        settings = load_settings()
        logger = setup_logging(settings.logging_settings())

        outputs = None
        if stamp is not None and not is_stale(stamp, os.environ):
            outputs = read_stamp(stamp)
            destination = settings.resolve_output_path(settings.resolve_variant())
            # A relative OUT_DIR resolves against the working directory.
            if outputs is not None and outputs.lib_path != destination:
                outputs = None
            if outputs is not None:
                logger.info(
                    "build inputs unchanged; reusing stamped outputs",
                    extra={"stage": "publish", "stamp": str(stamp)},
                )
        if outputs is None:
            outputs = fetch_driver(settings, logger=logger).outputs()

        for line in env_lines(outputs):
            typer.echo(line)
        if env_file is not None:
            append_env_file(env_file, outputs)
        if constants_module is not None:
            write_constants_module(outputs, constants_module)
        if package_constants:
            write_constants_module(outputs)
        if stamp is not None:
            write_stamp(stamp, outputs, os.environ)
    except DriverFetchError as exc:
        raise _fail(exc) from exc


@app.command()
def targets(
    format_output: str = typer.Option("table", "--format", "-f", help="Output format: table or json"),
) -> None:
    """List supported build targets and the library each one installs."""
    rows = [
        {
            "target": variant.target,
            "wheel_suffix": variant.wheel_suffix,
            "library": variant.lib_filename,
            "conda_subdir": variant.conda_subdir,
        }
        for variant in SUPPORTED_TARGETS.values()
    ]
    if format_output == "json":
        typer.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="Supported targets")
    table.add_column("Target", style="cyan")
    table.add_column("Wheel suffix", style="green")
    table.add_column("Library", style="yellow")
    table.add_column("Conda subdir", style="magenta")
    for row in rows:
        table.add_row(row["target"], row["wheel_suffix"], row["library"], row["conda_subdir"])
    Console().print(table)


@app.command()
def config(
    format_output: str = typer.Option("table", "--format", "-f", help="Output format: table or json"),
) -> None:
    """Show the configuration resolved from the environment."""
    try:
        settings = load_settings()
        variant = settings.resolve_variant()
        resolved = settings.model_dump(mode="json")
        resolved["resolved_target"] = variant.target
        resolved["output_path"] = str(settings.resolve_output_path(variant))
        resolved["effective_version"] = settings.effective_version()
        if settings.source == "conda":
            resolved["conda_build"] = settings.effective_conda_build(variant)
    except DriverFetchError as exc:
        raise _fail(exc) from exc

    if format_output == "json":
        typer.echo(json.dumps(resolved, indent=2, sort_keys=True))
        return

    table = Table(title="adbc-flightsql-fetch - Effective Configuration")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, value in resolved.items():
        table.add_row(key, "" if value is None else str(value))
    Console().print(table)


@app.command("version")
def version_cmd() -> None:
    """Show version information."""
    typer.echo(f"adbc-flightsql-fetch {__version__}")


def main() -> None:
    """Console-script entry point."""
    app()


__all__ = ["app", "main", "fetch", "targets", "config", "version_cmd"]
