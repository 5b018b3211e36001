"""CLI helpers for store and session construction from global CLI state."""

from __future__ import annotations

from collections.abc import Iterable

from redmodel.config import RedmodelConfig
from redmodel.session import Session
from redmodel.store import Store, open_store
from redmodel.types import Model


def resolve_config() -> RedmodelConfig:
    """Runtime config with the URL chosen by ``--url`` / ``REDMODEL_URL``."""
    from redmodel.cli import state

    return RedmodelConfig(url=state.url)


def open_cli_store() -> Store:
    return open_store(config=resolve_config())


def open_session(store: Store, models: Iterable[type[Model]] = ()) -> Session:
    """Session over an already-open CLI store; the caller closes the store."""
    return Session(store, models=models, config=resolve_config())
