"""Hierarchical key derivation for the store keyspace.

Every store key redmodel touches is derived from a type name, an optional id,
and path segments joined with ``:``::

    Person:1                      object hash
    Person:1:_indices             index manifest
    Person:1:_counters            counters hash
    Person:1:posts                relation set/list
    Person:_indices:name:Alice    index set
    Person:_id                    auto id sequence
    Person:_tmp:<hex>             temporary query key
"""

from __future__ import annotations

from typing import Any

SEPARATOR = ":"

INDICES = "_indices"
COUNTERS = "_counters"
ID_SEQUENCE = "_id"


class Key(str):
    """A store key that derives child keys by indexing.

    ``Key("Person")["_indices"]["name"]["Alice"] == "Person:_indices:name:Alice"``.
    Keys are plain strings, so two callers deriving the same logical key always
    produce equal (and equally hashed) values.
    """

    __slots__ = ()

    def __getitem__(self, segment: Any) -> Key:  # type: ignore[override]
        return Key(f"{self}{SEPARATOR}{segment}")

    def __repr__(self) -> str:
        return f"Key({str.__repr__(self)})"


def model_key(type_name: str) -> Key:
    """Root key for a model type."""
    return Key(type_name)


def index_key(type_name: str, field: str, value: Any) -> Key:
    """Key of the set holding ids whose ``field`` currently equals ``value``."""
    return model_key(type_name)[INDICES][field][value]
