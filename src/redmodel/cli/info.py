"""redmodel info: show store status and per-model key counts."""

from __future__ import annotations

from typing import Any, Optional

import typer

from redmodel.cli import _exitcodes as ec
from redmodel.cli._loader import load_models
from redmodel.cli._output import print_error, print_object
from redmodel.cli._storage import open_cli_store, open_session, resolve_config
from redmodel.errors import RedmodelError


def info_cmd(
    models: Optional[str] = typer.Option(None, "--models", help="Python import path for models"),
    models_path: Optional[str] = typer.Option(
        None, "--models-path", help="Filesystem path to models"
    ),
) -> None:
    """Show store status, object counts and leftover temporary keys."""
    from redmodel.cli import state

    model_types = {}
    if models or models_path:
        try:
            model_types = load_models(models, models_path)
        except Exception as e:
            print_error(f"Failed to load models: {e}")
            raise typer.Exit(ec.GENERAL_ERROR)

    config = resolve_config()
    try:
        store = open_cli_store()
    except RedmodelError as e:
        print_error(f"Cannot open store: {e}")
        raise typer.Exit(ec.STORE_ERROR)

    try:
        session = open_session(store, model_types.values())
        data: dict[str, Any] = {
            "url": config.url,
            "keys": int(store.call("DBSIZE")),
            "tmp_keys": len(store.scan(f"*:{config.tmp_segment}:*")),
        }
        counts: dict[str, Any] = {}
        for name, model in sorted(model_types.items()):
            counts[name] = len(session.all(model)) if model.__schema__.index_all else "n/a"
        if counts:
            data["objects"] = counts
        print_object(data, json_mode=state.json_output)
    except RedmodelError as e:
        print_error(str(e))
        raise typer.Exit(ec.STORE_ERROR)
    finally:
        store.close()
