"""Model, Field, and relation declarations for redmodel."""

from __future__ import annotations

import inspect
import re
import sys
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar, get_args

from pydantic import TypeAdapter

from redmodel.errors import MissingIDError, RedmodelError
from redmodel.keys import Key, model_key
from redmodel.schema import Arity, Container, FieldKind, FieldSpec, ModelSchema

if TYPE_CHECKING:
    from redmodel.session import Session

T = TypeVar("T")
M = TypeVar("M", bound="Model")

_SENTINEL = object()


class Field(Generic[T]):
    """Persisted attribute descriptor.

    ``serial=True`` places the attribute in the compare-and-set group;
    ``index=True`` maintains an index set per distinct value, and ``multi=True``
    indexes every element of an enumerable value.
    """

    def __init__(
        self,
        default: Any = None,
        *,
        cast: Callable[[Any], Any] | None = None,
        index: bool = False,
        multi: bool = False,
        serial: bool = False,
    ) -> None:
        if multi and not index:
            raise TypeError("Field(multi=True) requires index=True")
        self.default = default
        self.cast = cast
        self.index = index
        self.multi = multi
        self.serial = serial
        self.name: str = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        if self.serial:
            obj._serial_touched = True
        return obj._read(self.name)

    def __set__(self, obj: Any, value: Any) -> None:
        obj._write(self.name, value)

    def spec(self) -> FieldSpec:
        return FieldSpec(
            name=self.name,
            kind=FieldKind.SERIAL if self.serial else FieldKind.PLAIN,
            arity=Arity.MULTI if self.multi else Arity.SINGLE,
            indexed=self.index,
            cast=self.cast,
        )


class ComputedIndex:
    """Index over a value derived from other attributes."""

    def __init__(self, func: Callable[[Any], Any], *, multi: bool = False) -> None:
        self.func = func
        self.multi = multi
        self.name = func.__name__
        self.__doc__ = func.__doc__

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return self.func(obj)

    def spec(self) -> FieldSpec:
        return FieldSpec(
            name=self.name,
            kind=FieldKind.INDEX,
            arity=Arity.MULTI if self.multi else Arity.SINGLE,
        )


def computed_index(
    func: Callable[[Any], Any] | None = None, *, multi: bool = False
) -> Any:
    """Declare a method as an index field.

    Usage::

        @computed_index
        def initial(self):
            return self.name[:1].upper() if self.name else None

        @computed_index(multi=True)
        def tags(self):
            return ["ruby", "python"]
    """
    if func is None:
        return lambda f: ComputedIndex(f, multi=multi)
    return ComputedIndex(func, multi=multi)


class Counter:
    """Atomic integer stored outside the attribute blob (HINCRBY)."""

    def __init__(self) -> None:
        self.name: str = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        if obj._id is None:
            return 0
        return obj.session.counter(obj, self.name)

    def spec(self) -> FieldSpec:
        return FieldSpec(name=self.name, kind=FieldKind.COUNTER)


class _Relation:
    container: ClassVar[Container]

    def __init__(self, target: str) -> None:
        self.target = target
        self.name: str = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def spec(self) -> FieldSpec:
        return FieldSpec(
            name=self.name, kind=FieldKind.RELATION, target=self.target, container=self.container
        )


class SetOf(_Relation):
    """Unordered set of ids owned by the object, stored at ``<type>:<id>:<name>``."""

    container = Container.SET

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return obj.session.relation_set(obj, self.name)


class ListOf(_Relation):
    """Ordered list of ids owned by the object, stored at ``<type>:<id>:<name>``."""

    container = Container.LIST

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return obj.session.relation_list(obj, self.name)


class Reference(_Relation):
    """Pointer to another object by id.

    ``author = Reference("User")`` declares the indexed attribute ``author_id``;
    reading ``obj.author`` looks the target up by id every time.
    """

    container = Container.REFERENCE

    @property
    def attribute(self) -> str:
        return f"{self.name}_id"

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        ref_id = obj._read(self.attribute)
        if ref_id is None:
            return None
        return obj.session.get(obj.session.registry.target(type(obj), self.name), ref_id)

    def __set__(self, obj: Any, value: Any) -> None:
        obj._write(self.attribute, value.id if value is not None else None)

    def spec(self) -> FieldSpec:
        return FieldSpec(
            name=self.name,
            kind=FieldKind.RELATION,
            target=self.target,
            container=self.container,
            reference=self.attribute,
        )


class Collection(_Relation):
    """Objects of another type whose reference points back at this object.

    ``posts = Collection("Post", reference="author")`` is ``find(Post, author_id=obj.id)``.
    The reference defaults to the owner's type name in snake_case.
    """

    container = Container.COLLECTION

    def __init__(self, target: str, reference: str | None = None) -> None:
        super().__init__(target)
        self.reference = reference

    def __set_name__(self, owner: type, name: str) -> None:
        super().__set_name__(owner, name)
        if self.reference is None:
            self.reference = to_reference(owner.__name__)

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        target = obj.session.registry.target(type(obj), self.name)
        return obj.session.find(target, **{f"{self.reference}_id": obj.id})

    def spec(self) -> FieldSpec:
        return FieldSpec(
            name=self.name,
            kind=FieldKind.RELATION,
            target=self.target,
            container=self.container,
            reference=f"{self.reference}_id",
        )


_Declaration = (Field, ComputedIndex, Counter, _Relation)


def to_reference(class_name: str) -> str:
    """``BlogPost`` -> ``blog_post``."""
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", class_name).lower()


def _resolve_annotation(ann: Any, module_name: str) -> Any:
    """Resolve string annotations and extract the inner type from Field[T]."""
    if isinstance(ann, str):
        module = sys.modules.get(module_name, None)
        ns = vars(module) if module else {}
        try:
            ann = eval(ann, ns)  # noqa: S307
        except Exception:
            return Any

    origin = getattr(ann, "__origin__", None)
    if origin is Field:
        args = get_args(ann)
        return args[0] if args else Any
    return Any


def _adapter_cast(annotation: Any) -> Callable[[Any], Any] | None:
    if annotation is Any:
        return None
    return TypeAdapter(annotation).validate_python


def _own_annotations(cls: type) -> dict[str, Any]:
    try:
        return dict(inspect.get_annotations(cls))
    except NameError:
        return {}


def _collect_declarations(cls: type) -> list[Any]:
    """Collect declarations from class annotations and class attributes, in order."""
    declared: dict[str, Any] = {}

    for name, ann in _own_annotations(cls).items():
        is_field_ann = getattr(ann, "__origin__", None) is Field or (
            isinstance(ann, str) and ann.startswith("Field")
        )
        if not is_field_ann:
            continue
        val = cls.__dict__.get(name, _SENTINEL)
        if isinstance(val, Field):
            field_desc = val
        elif val is _SENTINEL:
            field_desc = Field()
        else:
            field_desc = Field(default=val)
        field_desc.name = name
        if field_desc.cast is None:
            field_desc.cast = _adapter_cast(_resolve_annotation(ann, cls.__module__))
        if cls.__dict__.get(name) is not field_desc:
            setattr(cls, name, field_desc)
        declared[name] = field_desc

    for name, val in cls.__dict__.items():
        if isinstance(val, _Declaration) and name not in declared:
            declared[name] = val
    return list(declared.values())


def _index_all(self: Any) -> str:
    return "all"


class Model:
    """Base class for persisted objects.

    Declare a type by subclassing::

        class Person(Model, auto_id=True, index_all=True):
            name: Field[str | None] = Field(index=True)
            score: Field[int | None] = Field(serial=True)
            logins = Counter()
            posts = SetOf("Post")

    Instances hold attribute state in memory until saved through a
    :class:`~redmodel.session.Session`; the store owns everything persisted.
    """

    __schema__: ClassVar[ModelSchema]
    _defaults: ClassVar[dict[str, Any]]

    def __init_subclass__(
        cls,
        name: str | None = None,
        auto_id: bool | None = None,
        index_all: bool | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init_subclass__(**kwargs)

        parent: ModelSchema | None = getattr(cls, "__schema__", None)
        specs: dict[str, FieldSpec] = {s.name: s for s in parent.fields} if parent else {}
        defaults: dict[str, Any] = dict(getattr(cls, "_defaults", {}))

        index_all = index_all if index_all is not None else bool(parent and parent.index_all)
        if index_all and "all" not in specs:
            cls.all = ComputedIndex(_index_all)  # type: ignore[attr-defined]
            cls.all.name = "all"  # type: ignore[attr-defined]

        for decl in _collect_declarations(cls):
            spec = decl.spec()
            previous = specs.get(spec.name)
            if (
                previous is not None
                and {previous.kind, spec.kind} == {FieldKind.PLAIN, FieldKind.SERIAL}
            ):
                other = "serial" if previous.kind is FieldKind.SERIAL else "normal"
                raise TypeError(f"{spec.name} is already used as a {other} attribute.")
            specs[spec.name] = spec
            if isinstance(decl, Field) and decl.default is not None:
                defaults[spec.name] = decl.default
            if isinstance(decl, Reference):
                ref = Field(index=True)
                ref.name = decl.attribute
                setattr(cls, decl.attribute, ref)
                specs[decl.attribute] = ref.spec()

        cls.__schema__ = ModelSchema(
            type_name=name or cls.__name__,
            fields=tuple(specs.values()),
            auto_id=auto_id if auto_id is not None else bool(parent and parent.auto_id),
            index_all=index_all,
        )
        cls._defaults = defaults

    def __init__(self, **attributes: Any) -> None:
        self._attributes: dict[str, Any] = {}
        self._serial_attributes: dict[str, Any] = {}
        self._serial_touched = False
        self._id: str | None = None
        self._session: Session | None = None
        self.cas_token: int | None = None
        self.update_attributes({**self._defaults, **attributes})

    # --- identity ---

    @classmethod
    def key_namespace(cls) -> Key:
        return model_key(cls.__schema__.type_name)

    @property
    def id(self) -> str:
        if self._id is None:
            raise MissingIDError(self.__schema__.type_name)
        return self._id

    @id.setter
    def id(self, value: Any) -> None:
        self._id = None if value is None else str(value)

    @property
    def key(self) -> Key:
        return self.key_namespace()[self.id]

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RedmodelError(
                f"'{self.__schema__.type_name}' instance is not bound to a session; "
                "save or load it through a Session first"
            )
        return self._session

    def is_new(self) -> bool:
        """True until the object exists in the store under its id."""
        if self._id is None:
            return True
        if self._session is None:
            return False
        return not self._session.exists(type(self), self._id)

    # --- attribute state ---

    def _spec(self, name: str) -> FieldSpec:
        spec = self.__schema__.field(name)
        if spec is None or spec.kind not in (FieldKind.PLAIN, FieldKind.SERIAL):
            raise AttributeError(f"'{self.__schema__.type_name}' has no attribute '{name}'")
        return spec

    def _read(self, name: str) -> Any:
        spec = self._spec(name)
        store = self._serial_attributes if spec.kind is FieldKind.SERIAL else self._attributes
        value = store.get(name)
        if value is None or spec.cast is None:
            return value
        # Cast values replace the raw ones so containers edited in place are saved.
        value = spec.cast(value)
        store[name] = value
        return value

    def _write(self, name: str, value: Any) -> None:
        spec = self._spec(name)
        if spec.kind is FieldKind.SERIAL:
            self._serial_touched = True
            self._serial_attributes[name] = value
        else:
            self._attributes[name] = value

    @property
    def attributes(self) -> dict[str, Any]:
        return self._attributes

    @property
    def serial_attributes(self) -> dict[str, Any]:
        return self._serial_attributes

    @property
    def serial_attributes_changed(self) -> bool:
        return self._serial_touched

    def update_attributes(self, attributes: Mapping[str, Any]) -> None:
        """Write a dictionary of values to the object (``id`` and ``cas_token`` included)."""
        for name, value in attributes.items():
            if name == "id":
                self.id = value
            elif name == "cas_token":
                self.cas_token = None if value is None else int(value)
            else:
                spec = self.__schema__.field(name)
                if spec is None or not (
                    spec.kind in (FieldKind.PLAIN, FieldKind.SERIAL)
                    or spec.container is Container.REFERENCE
                ):
                    raise AttributeError(
                        f"'{self.__schema__.type_name}' has no attribute '{name}'"
                    )
                setattr(self, name, value)

    def _load(
        self, attributes: dict[str, Any], serial: dict[str, Any], cas_token: int | None
    ) -> None:
        """Replace in-memory state with persisted state."""
        self._attributes = attributes
        self._serial_attributes = serial
        self.cas_token = cas_token
        self._serial_touched = False

    def index_values(self) -> dict[str, list[Any]]:
        """Current value list of every declared index field."""
        values: dict[str, list[Any]] = {}
        for spec in self.__schema__.indices:
            if spec.kind is FieldKind.INDEX:
                raw = getattr(self, spec.name)
            else:
                raw = self._read(spec.name)
            values[spec.name] = _as_list(raw, spec.arity)
        return values

    # --- session passthroughs ---

    def save(self: M) -> M:
        return self.session.save(self)

    def update(self: M, **attributes: Any) -> M:
        return self.session.update(self, **attributes)

    def delete(self: M) -> M:
        return self.session.delete(self)

    def reload(self: M) -> M:
        return self.session.reload(self)

    def incr(self, counter: str, count: int = 1) -> int:
        return self.session.incr(self, counter, count)

    def decr(self, counter: str, count: int = 1) -> int:
        return self.session.decr(self, counter, count)

    @property
    def counters(self) -> dict[str, int]:
        if self._id is None or self._session is None:
            return {name: 0 for name in self.__schema__.counters}
        return self._session.counters(self)

    def to_dict(self) -> dict[str, Any]:
        """Exported view of the object; only the id unless overridden."""
        data: dict[str, Any] = {}
        if not self.is_new():
            data["id"] = self.id
        return data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        if self is other:
            return True
        if type(other) is not type(self) or self._id is None or other._id is None:
            return False
        return self.key == other.key

    def __hash__(self) -> int:
        """Hash by key once an id is set, by identity before.

        The hash changes when ``save`` assigns an id, so add new objects to
        sets or dict keys only after saving them.
        """
        if self._id is None:
            return object.__hash__(self)
        return hash(self.key)

    def __repr__(self) -> str:
        values = {**self._attributes, **self._serial_attributes}
        fields = "".join(f", {k}={v!r}" for k, v in values.items())
        return f"{self.__class__.__name__}(id={self._id!r}{fields})"


def _as_list(raw: Any, arity: Arity) -> list[Any]:
    if raw is None:
        return []
    if arity is Arity.MULTI and isinstance(raw, Iterable) and not isinstance(raw, (str, bytes)):
        return [v for v in raw if v is not None]
    return [raw]

