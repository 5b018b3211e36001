"""Explicit per-type schema and the model type registry."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from redmodel.errors import UnknownModelError

if TYPE_CHECKING:
    from redmodel.types import Model


class FieldKind(str, Enum):
    PLAIN = "plain"
    SERIAL = "serial"
    COUNTER = "counter"
    INDEX = "index"
    RELATION = "relation"


class Arity(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


class Container(str, Enum):
    SET = "set"
    LIST = "list"
    REFERENCE = "reference"
    COLLECTION = "collection"


@dataclass(frozen=True)
class FieldSpec:
    """One declared member of a model type.

    ``INDEX`` specs describe computed indices only; an attribute that is also
    indexed is a ``PLAIN`` spec with ``indexed=True``.
    """

    name: str
    kind: FieldKind
    arity: Arity = Arity.SINGLE
    indexed: bool = False
    target: str | None = None
    container: Container | None = None
    reference: str | None = None
    cast: Callable[[Any], Any] | None = None

    @property
    def tracked(self) -> bool:
        """Relation keys owned by the object and removed with it."""
        return self.kind is FieldKind.RELATION and self.container in (Container.SET, Container.LIST)


@dataclass(frozen=True)
class ModelSchema:
    """Everything the mapper and the query compiler need to know about a type."""

    type_name: str
    fields: tuple[FieldSpec, ...]
    auto_id: bool = False
    index_all: bool = False

    def field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def _names(self, kind: FieldKind) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.kind is kind)

    @property
    def attributes(self) -> tuple[str, ...]:
        return self._names(FieldKind.PLAIN)

    @property
    def serial_attributes(self) -> tuple[str, ...]:
        return self._names(FieldKind.SERIAL)

    @property
    def counters(self) -> tuple[str, ...]:
        return self._names(FieldKind.COUNTER)

    @property
    def indices(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.indexed or f.kind is FieldKind.INDEX)

    @property
    def index_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.indices)

    @property
    def relations(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.kind is FieldKind.RELATION)

    @property
    def tracked(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.tracked)


class Registry:
    """Explicit map of type name to model class.

    Relation targets are resolved once, when the registry is frozen, rather
    than on every access. Registration and resolution are serialised so a
    registry can be shared by threads.
    """

    def __init__(self, models: Iterable[type[Model]] = ()) -> None:
        self._lock = threading.RLock()
        self._models: dict[str, type[Model]] = {}
        self._targets: dict[tuple[str, str], type[Model]] = {}
        self._resolved = False
        for model in models:
            self.register(model)

    def register(self, model: type[Model]) -> None:
        with self._lock:
            self._models[model.__schema__.type_name] = model
            self._resolved = False

    def adopt(self, model: type[Model]) -> bool:
        """Register ``model`` unless its type name is already known; True if added."""
        with self._lock:
            if model.__schema__.type_name in self._models:
                return False
            self.register(model)
            return True

    def __contains__(self, name: str) -> bool:
        return name in self._models

    def __iter__(self):
        with self._lock:
            return iter(list(self._models.values()))

    def __len__(self) -> int:
        return len(self._models)

    def get(self, name: str) -> type[Model]:
        try:
            return self._models[name]
        except KeyError:
            raise UnknownModelError(name) from None

    def resolve(self) -> None:
        """Resolve every relation target; raises UnknownModelError on a dangling one."""
        with self._lock:
            targets: dict[tuple[str, str], type[Model]] = {}
            for model in self._models.values():
                schema = model.__schema__
                for spec in schema.relations:
                    assert spec.target is not None
                    targets[(schema.type_name, spec.name)] = self.get(spec.target)
            self._targets = targets
            self._resolved = True

    def target(self, model: type[Model], relation: str) -> type[Model]:
        with self._lock:
            if not self._resolved:
                self.resolve()
            targets = self._targets
        try:
            return targets[(model.__schema__.type_name, relation)]
        except KeyError:
            raise UnknownModelError(f"{model.__schema__.type_name}.{relation}") from None
