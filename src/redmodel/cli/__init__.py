"""redmodel CLI: operator console for inspecting a redmodel keyspace."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import typer

from redmodel.cli import find, info, tmp, verify
from redmodel.config import RedmodelConfig
from redmodel.errors import StorageBackendError
from redmodel.store import parse_store_url

app = typer.Typer(
    name="redmodel",
    help="redmodel CLI: inspect objects, indices and temporary keys in a store.",
    no_args_is_help=True,
)


class _State:
    """Global CLI state shared across subcommands."""

    url: str = RedmodelConfig.url
    json_output: bool = False
    verbose: bool = False


state = _State()


def _version_callback(value: bool) -> None:
    if value:
        from redmodel import __version__

        print(f"redmodel {__version__}")
        raise typer.Exit()


def _enable_debug_logging() -> None:
    """Send redmodel debug logs to stderr."""
    logger = logging.getLogger("redmodel")
    logger.setLevel(logging.DEBUG)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
        logger.addHandler(handler)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(
        None,
        "--url",
        envvar="REDMODEL_URL",
        help=f"Store URL (default: {RedmodelConfig.url})",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output when supported"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
    version: bool = typer.Option(
        False, "--version", help="Show version", is_eager=True, callback=_version_callback
    ),
) -> None:
    """Global options for all redmodel commands."""
    resolved = url or RedmodelConfig.url
    try:
        parse_store_url(resolved)
    except StorageBackendError as e:
        raise typer.BadParameter(e.detail, param_hint="--url")

    state.url = resolved
    state.json_output = json_output
    state.verbose = verbose
    if verbose:
        _enable_debug_logging()
    if ctx.invoked_subcommand is None and not version:
        print(ctx.get_help())
        raise typer.Exit()


app.add_typer(tmp.app, name="tmp", help="Inspect and purge temporary query keys")

app.command(name="info")(info.info_cmd)
app.command(name="verify")(verify.verify_cmd)
app.command(name="find")(find.find_cmd)


def main() -> None:
    """Entry point for the redmodel CLI."""
    app()
