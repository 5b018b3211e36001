"""redmodel verify: compare index manifests with the indices objects imply."""

from __future__ import annotations

from typing import Any, Optional

import typer

from redmodel.cli import _exitcodes as ec
from redmodel.cli._loader import load_models
from redmodel.cli._output import print_error, print_object, print_table
from redmodel.cli._storage import open_cli_store, open_session
from redmodel.errors import RedmodelError
from redmodel.session import Session
from redmodel.types import Model


def _object_ids(session: Session, model: type[Model], ids: list[str]) -> list[str]:
    if ids:
        return ids
    if model.__schema__.index_all:
        return sorted(session.all(model).ids())
    return []


def verify_cmd(
    models: Optional[str] = typer.Option(None, "--models", help="Python import path for models"),
    models_path: Optional[str] = typer.Option(
        None, "--models-path", help="Filesystem path to models"
    ),
    type_name: Optional[str] = typer.Option(None, "--type", "-t", help="Only this model type"),
    ids: list[str] = typer.Option([], "--id", help="Object id to check (repeatable)"),
    repair: bool = typer.Option(False, "--repair", help="Re-synchronize mismatched objects"),
) -> None:
    """Check every object's index manifest against its current attribute values.

    Without ``--id`` only types declared with ``index_all`` can be enumerated.
    """
    from redmodel.cli import state

    if not models and not models_path:
        print_error("One of --models or --models-path is required")
        raise typer.Exit(ec.USAGE_ERROR)
    if ids and not type_name:
        print_error("--id requires --type")
        raise typer.Exit(ec.USAGE_ERROR)

    try:
        model_types = load_models(models, models_path)
    except Exception as e:
        print_error(f"Failed to load models: {e}")
        raise typer.Exit(ec.GENERAL_ERROR)

    if type_name is not None:
        if type_name not in model_types:
            print_error(f"Unknown model type '{type_name}'")
            raise typer.Exit(ec.USAGE_ERROR)
        selected = {type_name: model_types[type_name]}
    else:
        selected = model_types

    try:
        store = open_cli_store()
    except RedmodelError as e:
        print_error(f"Cannot open store: {e}")
        raise typer.Exit(ec.STORE_ERROR)

    rows: list[list[Any]] = []
    checked = 0
    try:
        session = open_session(store, model_types.values())
        for name, model in sorted(selected.items()):
            sync = session.synchronizer(model)
            for obj_id in _object_ids(session, model, ids):
                obj = session.get(model, obj_id)
                if obj is None:
                    continue
                checked += 1
                missing, stale = sync.audit(obj.id, obj.index_values())
                if not missing and not stale:
                    continue
                rows.append([name, obj.id, len(missing), len(stale)])
                if repair:
                    session.reindex(obj)
    except RedmodelError as e:
        print_error(str(e))
        raise typer.Exit(ec.STORE_ERROR)
    finally:
        store.close()

    json_mode = state.json_output
    if not rows:
        if json_mode:
            print_object({"status": "ok", "checked": checked, "mismatches": []}, json_mode=True)
        else:
            print(f"Indices OK: {checked} object(s) checked.")
        return

    if json_mode:
        data = {
            "status": "repaired" if repair else "mismatch",
            "checked": checked,
            "mismatches": [dict(zip(["type", "id", "missing", "stale"], r)) for r in rows],
        }
        print_object(data, json_mode=True)
    else:
        print_table(["type", "id", "missing", "stale"], rows)
        verb = "Repaired" if repair else "Found"
        print(f"{verb} {len(rows)} mismatched object(s) of {checked} checked.")
    if not repair:
        raise typer.Exit(ec.INDEX_MISMATCH)
