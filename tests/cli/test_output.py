"""Tests for CLI output helpers."""

import json

from redmodel.cli._output import print_error, print_object, print_table


def test_print_table_json(capsys):
    print_table(["id", "name"], [["1", "Alice"], ["2", "Bob"]], json_mode=True)
    data = json.loads(capsys.readouterr().out)
    assert data == [{"id": "1", "name": "Alice"}, {"id": "2", "name": "Bob"}]


def test_print_table_text_is_aligned(capsys):
    print_table(["id", "name"], [["1", "Alice"], ["10", "Bo"]])
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "id  name "
    assert lines[1] == "--  -----"
    assert lines[2] == "1   Alice"


def test_print_table_empty(capsys):
    print_table(["id"], [], json_mode=False)
    assert capsys.readouterr().out == ""


def test_print_object_json(capsys):
    print_object({"key": "val"}, json_mode=True)
    assert json.loads(capsys.readouterr().out) == {"key": "val"}


def test_print_object_nested_text(capsys):
    print_object({"url": "redis://h", "objects": {"User": 3}})
    out = capsys.readouterr().out
    assert "url: redis://h" in out
    assert "objects:\n  User: 3" in out


def test_print_error(capsys):
    print_error("boom")
    captured = capsys.readouterr()
    assert captured.err == "Error: boom\n"
    assert captured.out == ""
