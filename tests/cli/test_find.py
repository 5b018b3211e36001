"""Tests for redmodel find."""

import json

from tests.cli.conftest import invoke


def test_find_single_filter(runner, seeded):
    result = invoke(runner, ["find", "User", "--models", "tests.models", "-f", "status=active"])
    assert result.exit_code == 0
    assert result.output.split() == ["1", "3"]


def test_find_repeated_field_is_any_of(runner, seeded):
    result = invoke(
        runner,
        ["find", "User", "--models", "tests.models", "-f", "name=Alice", "-f", "name=Bob"],
    )
    assert result.exit_code == 0
    assert result.output.split() == ["1", "2"]


def test_find_across_fields(runner, seeded):
    result = invoke(
        runner,
        ["find", "User", "--models", "tests.models", "-f", "status=active", "-f", "initial=C"],
    )
    assert result.output.split() == ["3"]


def test_find_without_filters_lists_all(runner, seeded):
    result = invoke(runner, ["--json", "find", "Post", "--models", "tests.models"])
    assert result.exit_code == 0
    assert json.loads(result.output) == [{"id": "1"}, {"id": "2"}]


def test_find_limit(runner, seeded):
    result = invoke(runner, ["find", "User", "--models", "tests.models", "--limit", "1"])
    assert result.output.split() == ["1"]


def test_find_unknown_index(runner, seeded):
    result = invoke(runner, ["find", "User", "--models", "tests.models", "-f", "age=3"])
    assert result.exit_code == 2
    assert "no index on 'age'" in result.output


def test_find_bad_filter_token(runner, seeded):
    result = invoke(runner, ["find", "User", "--models", "tests.models", "-f", "status"])
    assert result.exit_code == 2


def test_find_unknown_type(runner, seeded):
    result = invoke(runner, ["find", "Nope", "--models", "tests.models"])
    assert result.exit_code == 2


def test_find_type_without_index_all(runner, seeded):
    result = invoke(runner, ["find", "Person", "--models", "tests.models"])
    assert result.exit_code == 2
