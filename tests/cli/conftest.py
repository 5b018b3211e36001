"""Shared fixtures for CLI tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import fakeredis
import pytest
from typer.testing import CliRunner

from redmodel import Session, Store
from redmodel.cli import _storage, app
from tests.models import ALL_MODELS, Post, User

if TYPE_CHECKING:
    from click.testing import Result


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_store(server, monkeypatch):
    """Route every store the CLI opens to the shared in-process server."""
    opened: list[str] = []

    def fake_open_store(url=None, *, config=None):
        opened.append(config.url if config else url)
        return Store(fakeredis.FakeRedis(server=server))

    monkeypatch.setattr(_storage, "open_store", fake_open_store)
    return opened


@pytest.fixture
def seeded(cli_store, store):
    """A store with a few users and posts."""
    session = Session(store, models=ALL_MODELS)
    alice = session.create(User, name="Alice", status="active")
    bob = session.create(User, name="Bob", status="away")
    session.create(User, name="Carol", status="active")
    session.create(Post, title="hello", author=alice)
    session.create(Post, title="again", author=bob)
    return session


def invoke(runner: CliRunner, args: list[str], url: str | None = None) -> "Result":
    """Invoke the CLI, optionally with a global --url."""
    if url:
        args = ["--url", url] + args
    return runner.invoke(app, args, catch_exceptions=False)
