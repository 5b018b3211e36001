"""Set-algebra queries over index sets, and the collection types built on them.

A query is a tree of :class:`SetOperation` nodes whose leaves are existing
store keys (index sets or relation sets). Evaluating a tree materialises every
operation node into a temporary key under ``<type>:_tmp`` with the matching
store-side command (SINTERSTORE, SUNIONSTORE, SDIFFSTORE); the root's key is
the result. All temporary keys of one evaluation are deleted when the caller is
done with the result, whether it finished normally or raised.

* :class:`Set` wraps a single existing key and needs no evaluation.
* :class:`MutableSet` is a relation-owned :class:`Set` that accepts add/remove.
* :class:`MultiSet` is a derived, read-only result of chained filters.
* :class:`List` is a relation-owned ordered list of ids.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ContextManager, Generic, TypeVar, Union

from redmodel.codec import text
from redmodel.indices import IndexSynchronizer
from redmodel.keys import Key
from redmodel.store import Command, Store
from redmodel.types import Model

if TYPE_CHECKING:
    from redmodel.session import Session

logger = logging.getLogger(__name__)

M = TypeVar("M", bound="Model")

INTERSECT = "SINTERSTORE"
UNION = "SUNIONSTORE"
DIFFERENCE = "SDIFFSTORE"


@dataclass(frozen=True)
class SetOperation:
    """Store-side set operation over operand keys or nested operations."""

    op: str
    operands: tuple[Operand, ...]

    def keys(self) -> Iterator[str]:
        """Every leaf key referenced by this tree, depth-first."""
        for operand in self.operands:
            if isinstance(operand, SetOperation):
                yield from operand.keys()
            else:
                yield operand


Operand = Union[str, SetOperation]


def operation(op: str, head: Operand, *tail: Operand) -> Operand:
    """Build an operation node; a single operand is returned as-is."""
    if not tail:
        return head
    return SetOperation(op, (head, *tail))


def _check_filters(filters: Mapping[str, Any]) -> None:
    if not isinstance(filters, Mapping):
        raise ValueError(
            "Filters must be field=value pairs. To look up by id use session.get(model, id)."
        )
    if not filters:
        raise ValueError("At least one filter is required")


def _field_keys(sync: IndexSynchronizer, field: str, value: Any) -> list[Key]:
    keys = sync.filter_keys(field, value)
    if not keys:
        raise ValueError(f"Filter on '{field}' has an empty value list")
    return keys


def compile_filters(sync: IndexSynchronizer, filters: Mapping[str, Any]) -> Operand:
    """``field IN values`` for each field, AND-ed across fields.

    One union per field over its values, then an intersection across fields.
    A single field with a single value compiles to the index key itself.
    """
    _check_filters(filters)
    per_field = [operation(UNION, *_field_keys(sync, f, v)) for f, v in filters.items()]
    return operation(INTERSECT, *per_field)


def union_filters(sync: IndexSynchronizer, filters: Mapping[str, Any]) -> Operand:
    """Union of every index key named by ``filters``, across all fields."""
    _check_filters(filters)
    keys = [k for f, v in filters.items() for k in _field_keys(sync, f, v)]
    return operation(UNION, *keys)


class Materializer:
    """Evaluates one query tree into temporary keys and deletes them afterwards."""

    def __init__(self, store: Store, namespace: Key, key_bytes: int = 32) -> None:
        self.store = store
        self.namespace = namespace
        self.key_bytes = key_bytes
        self.created: list[str] = []

    def _plan(self, node: Operand, commands: list[Command]) -> str:
        if not isinstance(node, SetOperation):
            return node
        operands = [self._plan(o, commands) for o in node.operands]
        target = self.namespace[secrets.token_hex(self.key_bytes)]
        # registered before anything is sent so cleanup covers partial failures
        self.created.append(target)
        commands.append((node.op, target, *operands))
        return target

    def evaluate(self, node: Operand) -> str:
        commands: list[Command] = []
        result = self._plan(node, commands)
        self.store.commit(commands)
        return result

    def clean(self) -> None:
        if not self.created:
            return
        created, self.created = self.created, []
        self.store.call("DEL", *created)
        logger.debug("Deleted %d temporary key(s) under %s", len(created), self.namespace)


@contextmanager
def materialize(
    store: Store, namespace: Key, node: Operand, key_bytes: int = 32
) -> Iterator[str]:
    """Yield the key holding the result of ``node``; temporary keys are removed on exit."""
    materializer = Materializer(store, namespace, key_bytes)
    try:
        yield materializer.evaluate(node)
    finally:
        materializer.clean()


class BaseCollection(Generic[M]):
    """Shared read API: iteration, batch fetch, emptiness."""

    def __init__(self, session: Session, model: type[M]) -> None:
        self.session = session
        self.model = model

    @property
    def store(self) -> Store:
        return self.session.store

    def ids(self) -> list[str]:
        raise NotImplementedError

    def size(self) -> int:
        raise NotImplementedError

    def __len__(self) -> int:
        return self.size()

    def is_empty(self) -> bool:
        return self.size() == 0

    def __iter__(self) -> Iterator[M]:
        ids = self.ids()
        batch = self.session.config.fetch_batch_size
        for start in range(0, len(ids), batch):
            yield from self.fetch(ids[start : start + batch])

    def fetch(self, ids: Sequence[str]) -> list[M]:
        """Load the objects for ``ids`` in one pipelined batch."""
        return self.session.fetch(self.model, ids)

    def to_list(self) -> list[M]:
        return self.fetch(self.ids())


class BasicSet(BaseCollection[M]):
    """Read operations common to single-key and derived sets."""

    def _execute(self) -> ContextManager[str]:
        raise NotImplementedError

    def _run(self, fn: Callable[[str], Any]) -> Any:
        with self._execute() as key:
            return fn(key)

    def ids(self) -> list[str]:
        return [text(m) for m in self._run(lambda key: self.store.call("SMEMBERS", key))]

    def size(self) -> int:
        return int(self._run(lambda key: self.store.call("SCARD", key)))

    def exists(self, id: Any) -> bool:
        """True when ``id`` is a member of this set."""
        return bool(self._run(lambda key: self.store.call("SISMEMBER", key, str(id))))

    def __contains__(self, obj: object) -> bool:
        if isinstance(obj, Model):
            return obj._id is not None and self.exists(obj._id)
        return self.exists(obj)

    def sample(self) -> M | None:
        """Any one member, without loading the whole set."""
        member = self._run(lambda key: self.store.call("SRANDMEMBER", key))
        if member is None:
            return None
        return self.session.get(self.model, text(member))

    def get(self, id: Any) -> M | None:
        """The member with ``id``, or None if it is not in this set."""
        if not self.exists(id):
            return None
        return self.session.get(self.model, id)

    def _compile(self, filters: Mapping[str, Any]) -> Operand:
        return compile_filters(self.session.synchronizer(self.model), filters)

    def _unioned(self, filters: Mapping[str, Any]) -> Operand:
        return union_filters(self.session.synchronizer(self.model), filters)


class Set(BasicSet[M]):
    """A set backed by exactly one existing key."""

    def __init__(self, key: str, session: Session, model: type[M]) -> None:
        super().__init__(session, model)
        self.key = key

    def _execute(self) -> ContextManager[str]:
        return nullcontext(self.key)

    def find(self, **filters: Any) -> MultiSet[M]:
        """Narrow this set with more filters.

        ``session.find(User, name="John").find(age=30)``
        """
        return MultiSet(operation(INTERSECT, self.key, self._compile(filters)), self.session, self.model)

    def except_(self, **filters: Any) -> MultiSet[M]:
        """Remove members matching any of ``filters``."""
        return MultiSet(self.key, self.session, self.model).except_(**filters)

    def combine(self, **filters: Any) -> MultiSet[M]:
        """Intersect with the union of ``filters``.

        ``session.find(User, status="active").combine(name=["John", "Jane"])`` is
        every active user named John or Jane.
        """
        return MultiSet(self.key, self.session, self.model).combine(**filters)

    def union(self, **filters: Any) -> MultiSet[M]:
        """Add members matching all of ``filters``."""
        return MultiSet(self.key, self.session, self.model).union(**filters)

    def __repr__(self) -> str:
        return f"Set({self.key!r})"


class MutableSet(Set[M]):
    """A relation set owned by an object; members can be added and removed."""

    def add(self, member: Model | str) -> None:
        self.store.call("SADD", self.key, _member_id(member))

    def remove(self, member: Model | str) -> None:
        self.store.call("SREM", self.key, _member_id(member))


class MultiSet(BasicSet[M]):
    """Read-only result of chained filters, evaluated through temporary keys."""

    def __init__(self, operation: Operand, session: Session, model: type[M]) -> None:
        super().__init__(session, model)
        self.operation = operation

    def _execute(self) -> ContextManager[str]:
        return materialize(
            self.store,
            self.session.tmp_namespace(self.model),
            self.operation,
            self.session.config.tmp_key_bytes,
        )

    def find(self, **filters: Any) -> MultiSet[M]:
        return MultiSet(
            operation(INTERSECT, self.operation, self._compile(filters)), self.session, self.model
        )

    def except_(self, **filters: Any) -> MultiSet[M]:
        return MultiSet(
            operation(DIFFERENCE, self.operation, self._unioned(filters)), self.session, self.model
        )

    def combine(self, **filters: Any) -> MultiSet[M]:
        return MultiSet(
            operation(INTERSECT, self.operation, self._unioned(filters)), self.session, self.model
        )

    def union(self, **filters: Any) -> MultiSet[M]:
        return MultiSet(
            operation(UNION, self.operation, self._compile(filters)), self.session, self.model
        )

    def __repr__(self) -> str:
        return f"MultiSet({self.operation!r})"


class List(BaseCollection[M]):
    """Ordered list of ids stored under one key."""

    def __init__(self, key: str, session: Session, model: type[M]) -> None:
        super().__init__(session, model)
        self.key = key

    def ids(self) -> list[str]:
        return [text(m) for m in self.store.call("LRANGE", self.key, 0, -1)]

    def size(self) -> int:
        return int(self.store.call("LLEN", self.key))

    def _at(self, index: int) -> M | None:
        member = self.store.call("LINDEX", self.key, index)
        if member is None:
            return None
        return self.session.get(self.model, text(member))

    def first(self) -> M | None:
        return self._at(0)

    def last(self) -> M | None:
        return self._at(-1)

    def range(self, start: int, stop: int) -> list[M]:
        """Objects between ``start`` and ``stop`` inclusive (LRANGE semantics)."""
        return self.fetch([text(m) for m in self.store.call("LRANGE", self.key, start, stop)])

    def __contains__(self, obj: object) -> bool:
        # loads the whole list; there is no membership command for lists
        member = obj._id if isinstance(obj, Model) else obj
        return member is not None and str(member) in self.ids()

    def push(self, member: Model | str) -> int:
        """Append to the end (RPUSH)."""
        return int(self.store.call("RPUSH", self.key, _member_id(member)))

    def unshift(self, member: Model | str) -> int:
        """Prepend to the beginning (LPUSH)."""
        return int(self.store.call("LPUSH", self.key, _member_id(member)))

    def remove(self, member: Model | str) -> int:
        """Remove every occurrence of ``member``."""
        return int(self.store.call("LREM", self.key, 0, _member_id(member)))

    def __repr__(self) -> str:
        return f"List({self.key!r})"


def _member_id(member: Any) -> str:
    if isinstance(member, Model):
        return member.id
    return str(member)
