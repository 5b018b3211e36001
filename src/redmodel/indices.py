"""Secondary index maintenance.

Each indexed field keeps one store set per distinct value
(``<type>:_indices:<field>:<value>``) holding the ids of objects that
currently have that value. Every object also keeps a manifest
(``<type>:<id>:_indices``) listing the index sets it belongs to.

Synchronisation runs in two batches. The add phase puts the id into every
index set implied by the object's current values and records those keys in
the manifest. The diff phase re-derives the valid keys from the persisted
object and removes the id from every manifest entry that is no longer valid.

The two batches are not atomic with respect to the object's attribute write
or to each other. Concurrent writers to the same object may briefly observe
index sets that hold a superset of the valid memberships; they converge once
the last writer's diff phase completes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from redmodel.codec import text
from redmodel.errors import IndexNotFoundError
from redmodel.keys import INDICES, Key
from redmodel.store import Command, Store

logger = logging.getLogger(__name__)

IndexValues = Mapping[str, Iterable[Any]]


class IndexSynchronizer:
    """Keeps index sets and the per-object manifest of one model type consistent."""

    def __init__(self, store: Store, namespace: Key, fields: Iterable[str]) -> None:
        self.store = store
        self.namespace = namespace
        self.fields = tuple(fields)

    def manifest_key(self, obj_id: str) -> Key:
        return self.namespace[obj_id][INDICES]

    def index_key(self, field: str, value: Any) -> Key:
        if field not in self.fields:
            raise IndexNotFoundError(self.namespace, field)
        return self.namespace[INDICES][field][value]

    def filter_keys(self, field: str, value: Any) -> list[Key]:
        """Index keys for one filter; a list, tuple or set value means "any of"."""
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.index_key(field, v) for v in value]
        return [self.index_key(field, value)]

    def index_keys(self, values: IndexValues) -> set[Key]:
        """Every index key implied by a field -> value-list mapping."""
        return {self.index_key(field, v) for field, vals in values.items() for v in vals}

    def synchronize(
        self,
        obj_id: str,
        current_values: Callable[[], IndexValues],
        persisted_values: Callable[[], IndexValues] | None = None,
    ) -> set[str]:
        """Reconcile index sets and the manifest of ``obj_id``; return the stale keys removed.

        ``current_values`` yields the in-memory index values; ``persisted_values``
        re-reads the object from the store and yields its index values. When it is
        omitted the current values are re-evaluated instead.
        """
        manifest = self.manifest_key(obj_id)

        commands: list[Command] = []
        for key in sorted(self.index_keys(current_values())):
            commands.append(("SADD", manifest, key))
            commands.append(("SADD", key, obj_id))
        self.store.commit(commands)

        indexed = {text(k) for k in self.store.call("SMEMBERS", manifest)}
        valid = self.index_keys((persisted_values or current_values)())
        stale = indexed - valid
        if stale:
            removals: list[Command] = [("SREM", key, obj_id) for key in sorted(stale)]
            removals.append(("SREM", manifest, *sorted(stale)))
            self.store.commit(removals)
            logger.debug("Removed %s:%s from %d stale index set(s)", self.namespace, obj_id, len(stale))
        return stale

    def purge_commands(self, obj_id: str) -> list[Command]:
        """Commands that drop ``obj_id`` from every index set listed in its manifest."""
        manifest = self.manifest_key(obj_id)
        members = sorted(text(k) for k in self.store.call("SMEMBERS", manifest))
        commands: list[Command] = [("SREM", key, obj_id) for key in members]
        commands.append(("DEL", manifest))
        return commands

    def audit(self, obj_id: str, values: IndexValues) -> tuple[set[str], set[str]]:
        """Compare the manifest with ``values``; return (missing, stale) index keys."""
        indexed = {text(k) for k in self.store.call("SMEMBERS", self.manifest_key(obj_id))}
        valid = {str(k) for k in self.index_keys(values)}
        return valid - indexed, indexed - valid

