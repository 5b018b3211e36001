"""Session runtime: binds model declarations to the store, indices and queries."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from redmodel.codec import NDATA, pack, unpack_hash
from redmodel.concurrency import ConcurrencyGuard
from redmodel.config import RedmodelConfig
from redmodel.errors import IndexNotFoundError, MissingIDError
from redmodel.indices import IndexSynchronizer
from redmodel.keys import COUNTERS, ID_SEQUENCE, Key
from redmodel.query import List, MultiSet, MutableSet, Set, SetOperation, compile_filters
from redmodel.schema import Container, Registry
from redmodel.store import Store, open_store
from redmodel.types import Model

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Model)


class Session:
    """Unit of access to one store for a set of model types.

    ``store`` may be an open :class:`Store`, a redis URL, or ``None`` to use
    ``config.url``. Sessions created from a URL own their connection and close
    it on :meth:`close`.

    Usage::

        with Session("redis://localhost:6379/0", models=[Person, Post]) as s:
            alice = s.create(Person, id=1, name="Alice")
            s.find(Person, name="Alice").sample()
    """

    def __init__(
        self,
        store: Store | str | None = None,
        *,
        models: Iterable[type[Model]] = (),
        config: RedmodelConfig | None = None,
    ) -> None:
        self.config = config or RedmodelConfig()
        if isinstance(store, Store):
            self.store = store
            self._owns_store = False
        else:
            self.store = open_store(store, config=self.config)
            self._owns_store = True

        self.registry = Registry(models)
        self.registry.resolve()
        self._guard = ConcurrencyGuard(self.store)
        self._synchronizers: dict[str, IndexSynchronizer] = {}

    # --- lifecycle ---

    def register(self, *models: type[Model]) -> None:
        for model in models:
            self.registry.register(model)
        self.registry.resolve()

    def close(self) -> None:
        if self._owns_store:
            self.store.close()

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # --- per-type services ---

    def _adopt(self, model: type[Model]) -> None:
        self.registry.adopt(model)

    def synchronizer(self, model: type[Model]) -> IndexSynchronizer:
        name = model.__schema__.type_name
        sync = self._synchronizers.get(name)
        if sync is None:
            sync = IndexSynchronizer(self.store, model.key_namespace(), model.__schema__.index_names)
            self._synchronizers[name] = sync
        return sync

    def tmp_namespace(self, model: type[Model]) -> Key:
        return model.key_namespace()[self.config.tmp_segment]

    def _build(self, model: type[M], obj_id: str, raw: Any) -> M:
        attributes, serial, token = unpack_hash(raw)
        obj = model()
        obj.id = obj_id
        obj._load(attributes, serial, token)
        obj._session = self
        return obj

    # --- lookups ---

    def get(self, model: type[M], id: Any) -> M | None:
        """The object stored under ``id``, or None."""
        self._adopt(model)
        raw = self.store.call("HGETALL", model.key_namespace()[id])
        if not raw:
            return None
        return self._build(model, str(id), raw)

    def exists(self, model: type[Model], id: Any) -> bool:
        return bool(self.store.call("EXISTS", model.key_namespace()[id]))

    def fetch(self, model: type[M], ids: Sequence[Any]) -> list[M]:
        """Load many objects in one batch; ids with no stored object are skipped."""
        self._adopt(model)
        ids = [str(i) for i in ids]
        namespace = model.key_namespace()
        results = self.store.commit([("HGETALL", namespace[i]) for i in ids])
        return [self._build(model, i, raw) for i, raw in zip(ids, results) if raw]

    def find(self, model: type[M], **filters: Any) -> Set[M] | MultiSet[M]:
        """Objects whose indexed fields match every filter.

        A list value matches any of its elements:
        ``find(Person, name=["Alice", "Bob"], status="active")``.
        """
        self._adopt(model)
        node = compile_filters(self.synchronizer(model), filters)
        if isinstance(node, SetOperation):
            return MultiSet(node, self, model)
        return Set(node, self, model)

    def all(self, model: type[M]) -> Set[M]:
        """Every object of a type declared with ``index_all=True``."""
        if not model.__schema__.index_all:
            raise IndexNotFoundError(model.__schema__.type_name, "all")
        self._adopt(model)
        return Set(self.synchronizer(model).index_key("all", "all"), self, model)

    # --- writes ---

    def save(self, obj: M) -> M:
        """Persist attributes, then bring the object's index memberships up to date.

        Serial attributes that were read or written since the last load go
        through the compare-and-set routine and may raise CasViolationError.
        """
        model = type(obj)
        schema = model.__schema__
        self._adopt(model)

        if obj._id is None:
            if not schema.auto_id:
                raise MissingIDError(schema.type_name)
            obj.id = self.store.call("INCR", model.key_namespace()[ID_SEQUENCE])
        obj._session = self

        key = obj.key
        attributes = pack(obj.attributes)
        if obj.serial_attributes_changed:
            obj.cas_token = self._guard.atomic_update(
                key, obj.cas_token, pack(obj.serial_attributes), attributes
            )
            obj._serial_touched = False
        else:
            self.store.call("HSET", key, NDATA, attributes)

        self.reindex(obj)
        logger.debug("Saved %s", key)
        return obj

    def reindex(self, obj: Model) -> set[str]:
        """Re-run index synchronisation for a persisted object; return stale keys removed."""
        model = type(obj)

        def persisted() -> dict[str, list[Any]]:
            fresh = self.get(model, obj.id)
            return fresh.index_values() if fresh is not None else {}

        return self.synchronizer(model).synchronize(obj.id, obj.index_values, persisted)

    def create(self, model: type[M], **attributes: Any) -> M:
        return self.save(model(**attributes))

    def update(self, obj: M, **attributes: Any) -> M:
        obj.update_attributes(attributes)
        return self.save(obj)

    def delete(self, obj: M) -> M:
        """Remove the object with its counters, index memberships and owned relations."""
        model = type(obj)
        key = obj.key
        commands: list[Sequence[Any]] = [("DEL", key), ("DEL", key[COUNTERS])]
        commands.extend(self.synchronizer(model).purge_commands(obj.id))
        commands.extend(("DEL", key[name]) for name in model.__schema__.tracked)
        self.store.commit(commands)
        logger.debug("Deleted %s", key)
        return obj

    def reload(self, obj: M) -> M:
        """Replace in-memory state with what the store holds now."""
        raw = self.store.call("HGETALL", obj.key)
        attributes, serial, token = unpack_hash(raw or {})
        obj._load(attributes, serial, token)
        obj._session = self
        return obj

    # --- counters ---

    def _counter_key(self, obj: Model, name: str) -> Key:
        if name not in obj.__schema__.counters:
            raise AttributeError(f"'{obj.__schema__.type_name}' has no counter '{name}'")
        return obj.key[COUNTERS]

    def incr(self, obj: Model, name: str, count: int = 1) -> int:
        return int(self.store.call("HINCRBY", self._counter_key(obj, name), name, count))

    def decr(self, obj: Model, name: str, count: int = 1) -> int:
        return self.incr(obj, name, -count)

    def counter(self, obj: Model, name: str) -> int:
        value = self.store.call("HGET", self._counter_key(obj, name), name)
        return int(value) if value is not None else 0

    def counters(self, obj: Model) -> dict[str, int]:
        """Every declared counter of ``obj``, zero when never incremented."""
        names = obj.__schema__.counters
        if not names:
            return {}
        values = self.store.call("HMGET", obj.key[COUNTERS], *names)
        return {n: int(v) if v is not None else 0 for n, v in zip(names, values)}

    # --- relations ---

    def _relation(self, obj: Model, name: str, container: Container) -> tuple[Key, type[Model]]:
        spec = obj.__schema__.field(name)
        if spec is None or spec.container is not container:
            raise AttributeError(f"'{obj.__schema__.type_name}' has no {container.value} '{name}'")
        self._adopt(type(obj))
        return obj.key[name], self.registry.target(type(obj), name)

    def relation_set(self, obj: Model, name: str) -> MutableSet[Any]:
        key, target = self._relation(obj, name, Container.SET)
        return MutableSet(key, self, target)

    def relation_list(self, obj: Model, name: str) -> List[Any]:
        key, target = self._relation(obj, name, Container.LIST)
        return List(key, self, target)
