"""Shared test fixtures for redmodel tests."""

from __future__ import annotations

import fakeredis
import pytest

from redmodel import Session, Store
from tests.models import ALL_MODELS

# --- Store fixtures ---


@pytest.fixture
def server():
    """One in-process store shared by every client created in a test."""
    return fakeredis.FakeServer()


@pytest.fixture
def client(server):
    return fakeredis.FakeRedis(server=server)


@pytest.fixture
def store(client):
    return Store(client)


@pytest.fixture
def session(store):
    s = Session(store, models=ALL_MODELS)
    yield s
    s.close()


@pytest.fixture
def make_session(server):
    """Factory for sessions with their own connection to the shared server."""
    stores: list[Store] = []

    def _make() -> Session:
        store = Store(fakeredis.FakeRedis(server=server))
        stores.append(store)
        return Session(store, models=ALL_MODELS)

    yield _make
    for store in stores:
        store.close()


def keys(client, pattern: str = "*") -> list[str]:
    """Sorted decoded keys matching ``pattern``."""
    return sorted(k.decode() for k in client.keys(pattern))


def members(client, key: str) -> set[str]:
    return {m.decode() for m in client.smembers(key)}
