"""redmodel tmp: inspect and purge temporary query keys.

Temporary keys live under ``<type>:_tmp:`` and are removed by the query that
created them. Keys found here were left behind by a process that died mid-query.
"""

from __future__ import annotations

from typing import Optional

import typer

from redmodel.cli import _exitcodes as ec
from redmodel.cli._output import print_error, print_object, print_table
from redmodel.cli._storage import open_cli_store, resolve_config
from redmodel.errors import RedmodelError
from redmodel.keys import model_key

app = typer.Typer(no_args_is_help=True)


def _pattern(type_name: str | None) -> str:
    segment = resolve_config().tmp_segment
    if type_name:
        return f"{model_key(type_name)[segment]}:*"
    return f"*:{segment}:*"


@app.command(name="list")
def list_cmd(
    type_name: Optional[str] = typer.Option(None, "--type", "-t", help="Only this model type"),
) -> None:
    """List leftover temporary keys."""
    from redmodel.cli import state

    try:
        store = open_cli_store()
        try:
            keys = store.scan(_pattern(type_name))
        finally:
            store.close()
    except RedmodelError as e:
        print_error(str(e))
        raise typer.Exit(ec.STORE_ERROR)

    if state.json_output:
        print_table(["key"], [[k] for k in keys], json_mode=True)
        return
    if not keys:
        print("No temporary keys.")
        return
    for key in keys:
        print(key)


@app.command(name="purge")
def purge_cmd(
    type_name: Optional[str] = typer.Option(None, "--type", "-t", help="Only this model type"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete leftover temporary keys."""
    from redmodel.cli import state

    try:
        store = open_cli_store()
        try:
            keys = store.scan(_pattern(type_name))
            if keys and not yes:
                typer.confirm(f"Delete {len(keys)} temporary key(s)?", abort=True)
            deleted = int(store.call("DEL", *keys)) if keys else 0
        finally:
            store.close()
    except RedmodelError as e:
        print_error(str(e))
        raise typer.Exit(ec.STORE_ERROR)

    if state.json_output:
        print_object({"deleted": deleted}, json_mode=True)
    else:
        print(f"Deleted {deleted} temporary key(s).")
