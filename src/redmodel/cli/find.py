"""redmodel find: list ids of objects matching index filters."""

from __future__ import annotations

from typing import Optional

import typer

from redmodel.cli import _exitcodes as ec
from redmodel.cli._filters import parse_cli_filters
from redmodel.cli._loader import load_models
from redmodel.cli._output import print_error, print_table
from redmodel.cli._storage import open_cli_store, open_session
from redmodel.errors import IndexNotFoundError, RedmodelError


def find_cmd(
    type_name: str = typer.Argument(..., help="Model type name"),
    models: Optional[str] = typer.Option(None, "--models", help="Python import path for models"),
    models_path: Optional[str] = typer.Option(
        None, "--models-path", help="Filesystem path to models"
    ),
    filters: list[str] = typer.Option([], "--filter", "-f", help="FIELD=VALUE (repeatable)"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Show at most N ids"),
) -> None:
    """List ids of TYPE objects whose indices match every filter."""
    from redmodel.cli import state

    if not models and not models_path:
        print_error("One of --models or --models-path is required")
        raise typer.Exit(ec.USAGE_ERROR)

    try:
        model_types = load_models(models, models_path)
    except Exception as e:
        print_error(f"Failed to load models: {e}")
        raise typer.Exit(ec.GENERAL_ERROR)

    model = model_types.get(type_name)
    if model is None:
        print_error(f"Unknown model type '{type_name}'")
        raise typer.Exit(ec.USAGE_ERROR)

    try:
        parsed = parse_cli_filters(filters)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(ec.USAGE_ERROR)

    try:
        store = open_cli_store()
    except RedmodelError as e:
        print_error(f"Cannot open store: {e}")
        raise typer.Exit(ec.STORE_ERROR)

    try:
        session = open_session(store, model_types.values())
        result = session.find(model, **parsed) if parsed else session.all(model)
        ids = sorted(result.ids(), key=lambda i: (len(i), i))
    except IndexNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(ec.USAGE_ERROR)
    except RedmodelError as e:
        print_error(str(e))
        raise typer.Exit(ec.STORE_ERROR)
    finally:
        store.close()

    if limit is not None:
        ids = ids[:limit]
    if state.json_output:
        print_table(["id"], [[i] for i in ids], json_mode=True)
        return
    for obj_id in ids:
        print(obj_id)
