"""Tests for model declarations: fields, schema, identity, casting."""

from __future__ import annotations

import pytest

from redmodel import Counter, Field, ListOf, Model, Reference, SetOf, computed_index
from redmodel.errors import MissingIDError, RedmodelError, UnknownModelError
from redmodel.schema import Arity, Container, FieldKind, Registry
from redmodel.types import to_reference
from tests.models import Account, Event, Post, User


class TestField:
    def test_multi_requires_index(self):
        with pytest.raises(TypeError, match="multi"):
            Field(multi=True)

    def test_class_access_returns_descriptor(self):
        assert isinstance(User.name, Field)

    def test_default_applied(self):
        assert User().status == "active"

    def test_explicit_value_overrides_default(self):
        assert User(status="banned").status == "banned"

    def test_unknown_attribute_rejected(self):
        with pytest.raises(AttributeError, match="nickname"):
            User(nickname="x")

    def test_cast_from_annotation(self):
        class Reading(Model):
            value: Field[int | None]

        r = Reading()
        r._attributes["value"] = "42"
        assert r.value == 42

    def test_explicit_cast(self):
        class Tagged(Model):
            label = Field(cast=str.upper)

        assert Tagged(label="abc").label == "ABC"

    def test_none_is_never_cast(self):
        class Reading(Model):
            value: Field[int | None] = Field(cast=int)

        assert Reading().value is None

    def test_annotation_without_field_is_ignored(self):
        class Plain(Model):
            note: str = "x"
            title: Field[str | None]

        assert Plain.__schema__.field("note") is None
        assert Plain.__schema__.field("title") is not None


class TestSchema:
    def test_kinds(self):
        schema = User.__schema__
        assert schema.field("name").kind is FieldKind.PLAIN
        assert schema.field("logins").kind is FieldKind.COUNTER
        assert schema.field("posts").kind is FieldKind.RELATION
        assert schema.field("initial").kind is FieldKind.INDEX

    def test_index_names(self):
        assert set(User.__schema__.index_names) == {"name", "email", "status", "tags", "initial", "all"}

    def test_multi_arity(self):
        assert User.__schema__.field("tags").arity is Arity.MULTI

    def test_tracked_relations(self):
        assert set(User.__schema__.tracked) == {"posts", "friends", "history"}

    def test_serial_attributes(self):
        assert Account.__schema__.serial_attributes == ("balance", "currency")

    def test_auto_id_and_index_all_flags(self):
        assert Event.__schema__.auto_id
        assert Event.__schema__.index_all
        assert not Account.__schema__.auto_id

    def test_custom_type_name(self):
        class Thing(Model, name="Gadget"):
            pass

        assert Thing.key_namespace() == "Gadget"

    def test_reference_declares_indexed_attribute(self):
        spec = Post.__schema__.field("author_id")
        assert spec.kind is FieldKind.PLAIN
        assert spec.indexed
        assert Post.__schema__.field("author").container is Container.REFERENCE

    def test_collection_reference_defaults_to_owner(self):
        from redmodel import Collection

        class Blog(Model):
            entries = Collection("BlogEntry")

        assert Blog.__schema__.field("entries").reference == "blog_id"

    def test_plain_and_serial_name_conflict(self):
        with pytest.raises(TypeError, match="already used"):

            class Broken(Account):
                balance: Field[int | None]

    def test_redefining_a_counter_is_allowed(self):
        class Base(Model):
            votes = Counter()

        class Child(Base):
            votes = Counter()

        assert Child.__schema__.counters == ("votes",)

    def test_subclass_inherits_fields(self):
        class Admin(User):
            level: Field[int | None]

        assert {"name", "level", "posts"} <= {f.name for f in Admin.__schema__.fields}
        assert Admin.__schema__.auto_id

    def test_to_reference(self):
        assert to_reference("BlogPost") == "blog_post"
        assert to_reference("User") == "user"


class TestComputedIndex:
    def test_bare_decorator(self):
        assert User(name="alice").initial == "A"

    def test_multi_decorator(self):
        class Doc(Model):
            words_src: Field[str | None]

            @computed_index(multi=True)
            def words(self):
                return (self.words_src or "").split()

        assert Doc.__schema__.field("words").arity is Arity.MULTI
        assert Doc(words_src="a b").index_values()["words"] == ["a", "b"]


class TestIdentity:
    def test_id_missing(self):
        with pytest.raises(MissingIDError):
            _ = User().id

    def test_id_stringified(self):
        assert User(id=5).id == "5"

    def test_key(self):
        assert Account(id="acc").key == "Account:acc"

    def test_unbound_session(self):
        with pytest.raises(RedmodelError, match="not bound"):
            _ = Account(id="acc").session

    def test_is_new_without_session(self):
        assert User().is_new()
        assert not User(id=1).is_new()

    def test_equality_by_key(self):
        assert User(id=1) == User(id=1)
        assert User(id=1) != User(id=2)
        assert User(id=1) != Post(id=1)
        assert User() != User()

    def test_hash_by_key(self):
        assert len({User(id=1), User(id=1), User(id=2)}) == 2

    def test_hash_follows_assigned_id(self):
        user = User(name="a")
        assert hash(user) == object.__hash__(user)
        user.id = 7
        assert hash(user) == hash(user.key)
        assert user in {User(id=7)}

    def test_repr(self):
        assert repr(Account(id="a", owner="x", balance=None)).startswith("Account(id='a'")


class TestIndexValues:
    def test_values_are_lists(self):
        u = User(name="bob", email=None, tags=["x", "y"])
        values = u.index_values()
        assert values["name"] == ["bob"]
        assert values["email"] == []
        assert values["tags"] == ["x", "y"]
        assert values["initial"] == ["B"]
        assert values["all"] == ["all"]

    def test_single_arity_keeps_value_whole(self):
        class Pair(Model):
            coords: Field[list[int] | None] = Field(index=True)

        assert Pair(coords=[1, 2]).index_values()["coords"] == [[1, 2]]


class TestUpdateAttributes:
    def test_sets_id_and_token(self):
        a = Account()
        a.update_attributes({"id": "x", "cas_token": "3", "owner": "o"})
        assert a.id == "x"
        assert a.cas_token == 3
        assert a.owner == "o"

    def test_writing_serial_marks_changed(self):
        a = Account(id="a")
        a._serial_touched = False
        a.balance = 5
        assert a.serial_attributes_changed

    def test_reading_serial_marks_changed(self):
        a = Account(id="a")
        a._serial_touched = False
        _ = a.balance
        assert a.serial_attributes_changed

    def test_reference_assignment(self):
        p = Post()
        p.update_attributes({"author": User(id=9)})
        assert p.author_id == "9"


class TestRegistry:
    def test_dangling_target(self):
        class Orphan(Model):
            things = SetOf("Missing")

        registry = Registry([Orphan])
        with pytest.raises(UnknownModelError, match="Missing"):
            registry.resolve()

    def test_target_resolution(self):
        registry = Registry([User, Post])
        assert registry.target(User, "posts") is Post
        assert registry.target(Post, "author") is User

    def test_get_unknown(self):
        with pytest.raises(UnknownModelError):
            Registry().get("Nope")

    def test_register_invalidates(self):
        class Box(Model):
            items = ListOf("Item")

        class Item(Model):
            box = Reference("Box")

        registry = Registry([Box])
        with pytest.raises(UnknownModelError):
            registry.resolve()
        registry.register(Item)
        assert registry.target(Box, "items") is Item

    def test_adopt_only_new_names(self):
        registry = Registry([User])
        assert registry.adopt(Post)
        assert not registry.adopt(Post)
        assert registry.target(User, "posts") is Post
