"""Tests for redmodel info and the global options."""

import json
import logging

import pytest

from redmodel.cli import app
from tests.cli.conftest import invoke


def test_info_json(runner, seeded):
    result = invoke(runner, ["--json", "info", "--models", "tests.models"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["objects"]["User"] == 3
    assert data["objects"]["Post"] == 2
    assert data["objects"]["Person"] == "n/a"
    assert data["tmp_keys"] == 0
    assert data["keys"] > 0


def test_info_text_without_models(runner, seeded):
    result = invoke(runner, ["info"])
    assert result.exit_code == 0
    assert "url: redis://localhost:6379/0" in result.output
    assert "objects" not in result.output


def test_info_uses_url_option(runner, seeded, cli_store):
    result = invoke(runner, ["info"], url="redis://elsewhere:6380/1")
    assert result.exit_code == 0
    assert cli_store == ["redis://elsewhere:6380/1"]


def test_info_url_from_env(runner, seeded, cli_store, monkeypatch):
    monkeypatch.setenv("REDMODEL_URL", "redis://from-env:6379/0")
    result = invoke(runner, ["info"])
    assert result.exit_code == 0
    assert cli_store == ["redis://from-env:6379/0"]


def test_invalid_url(runner):
    result = runner.invoke(app, ["--url", "http://x", "info"])
    assert result.exit_code == 2
    assert "Unsupported" in result.output


def test_bad_models_module(runner, seeded):
    result = invoke(runner, ["info", "--models", "no.such.module"])
    assert result.exit_code == 1
    assert "Failed to load models" in result.output


def test_version(runner):
    result = invoke(runner, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("redmodel ")


@pytest.fixture
def restore_logging():
    logger = logging.getLogger("redmodel")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_verbose_enables_debug_logging(runner, seeded, restore_logging):
    result = invoke(runner, ["--verbose", "info", "--models", "tests.models"])
    assert result.exit_code == 0
    assert logging.getLogger("redmodel").level == logging.DEBUG
