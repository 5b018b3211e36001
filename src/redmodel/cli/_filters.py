"""CLI filter token parser: converts ``field=value`` tokens to find() filters."""

from __future__ import annotations

from typing import Any


def parse_cli_filters(tokens: list[str]) -> dict[str, Any]:
    """Parse ``field=value`` tokens into keyword filters.

    Repeating a field ORs its values: ``-f tag=a -f tag=b`` matches either tag.
    Different fields are AND-combined.
    """
    filters: dict[str, list[str]] = {}
    for token in tokens:
        field, sep, value = token.partition("=")
        field = field.strip()
        if not sep or not field:
            raise ValueError(f"Invalid filter '{token}'; expected FIELD=VALUE")
        filters.setdefault(field, []).append(value)
    return {f: vals[0] if len(vals) == 1 else vals for f, vals in filters.items()}
