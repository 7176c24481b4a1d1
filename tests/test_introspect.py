"""Tests for record normalization, analysis and the descriptor cache."""

import threading
from dataclasses import dataclass, field
from typing import Optional

import pytest

from rowmap import (
    Composite,
    DescriptorRegistry,
    Introspector,
    Invalid,
    InvalidTypeError,
    MapperConfig,
    analyze,
    default_registry,
    resolve_composite,
)


@dataclass
class Foo:
    name: str = ""


@dataclass
class User:
    id: int = 0
    email: str = ""
    password: str = field(default="", metadata={"db": "-"})
    created_at: str = field(default="", metadata={"db": "created_at,ro"})


@dataclass
class Audit:
    created_by: str = ""
    updated_by: str = ""


@dataclass
class Post:
    post_id: int = field(default=0, metadata={"db": "post_id,pk"})
    title: str = ""
    audit: Audit = field(default_factory=Audit)
    author_id: int = field(default=0, metadata={"db": "author_id,fk=users.id"})
    scratch: str = field(default="", metadata={"db": "-"})


@dataclass
class Renamed:
    id: int = 0
    label: str = ""

    @classmethod
    def table_name(cls):
        return "test_table"


@dataclass
class Address:
    street: str = ""


@dataclass
class Customer:
    id: int = 0
    address: Address = field(default_factory=Address, metadata={"db": "address"})
    billing: Optional[Address] = None


class TestResolveComposite:
    """Tests for reducing values to record types."""

    @pytest.mark.parametrize(
        "value",
        [Foo(name="bar"), Foo, [Foo(name="bar")], (Foo(),), list[Foo], Optional[Foo]],
    )
    def test_reduces_to_record(self, value):
        """Test instances, classes, collections and typing aliases."""
        resolved = resolve_composite(value)

        assert isinstance(resolved, Composite)
        assert resolved.cls is Foo

    def test_keeps_instance(self):
        """Test that an instance is kept as the representative value."""
        foo = Foo(name="bar")
        resolved = resolve_composite(foo)

        assert resolved.instance is foo
        assert resolve_composite([foo]).instance is foo
        assert resolve_composite(Foo).instance is None

    def test_nested_collections(self):
        """Test that nested collections reduce recursively."""
        assert resolve_composite([[Foo()]]).cls is Foo
        assert resolve_composite(list[tuple[Foo, ...]]).cls is Foo

    @pytest.mark.parametrize(
        "value",
        [1, "text", b"bytes", [1, 2], [], (), int, list[int], None, {"a": Foo()}],
    )
    def test_invalid(self, value):
        """Test values that are not records."""
        assert isinstance(resolve_composite(value), Invalid)


class TestIntrospector:
    """Tests for field classification during analysis."""

    def test_table_name_from_class(self, registry):
        """Test the normalized class name default."""
        assert analyze(Post, registry).table == "post"

    def test_table_name_override(self, registry):
        """Test the table_name capability."""
        sch = analyze(Renamed(), registry)

        assert sch.table == "test_table"
        assert "test_table" in registry

    def test_table_name_override_short_circuits(self, registry):
        """Test that a cached override is returned without re-analysis."""
        first = analyze(Renamed, registry)

        assert analyze(Renamed(), registry) is first

    def test_instance_method_table_name(self, registry):
        """Test a plain method override with and without an instance."""

        @dataclass
        class Thing:
            id: int = 0

            def table_name(self):
                return "things"

        assert analyze(Thing(), registry).table == "things"
        with pytest.raises(InvalidTypeError):
            analyze(Thing, DescriptorRegistry())

    def test_default_columns(self, registry):
        """Test untagged fields map to their normalized names and id is the pk."""
        sch = analyze(User, registry)
        id_field = sch.fields[0]

        assert id_field.column == "id"
        assert id_field.is_primary_key is True
        assert id_field.is_read_only is True

    def test_excluded_field(self, registry):
        """Test that "-" removes a field but keeps slot numbering."""
        sch = analyze(User, registry)

        assert sch.columns() == ["id", "email", "created_at"]
        assert [f.index for f in sch.fields] == [0, 1, 3]

    def test_read_only_field(self, registry):
        sch = analyze(User, registry)
        created = sch.fields[2]

        assert created.is_read_only is True
        assert created.is_primary_key is False

    def test_embedded_record(self, registry):
        """Test that an untagged record-typed field is embedded."""
        sch = analyze(Post, registry)
        audit = sch.fields[2]

        assert audit.has_schema is True
        assert audit.column is None
        assert audit.index == 2
        assert audit.schema.table == "audit"
        assert sch.columns() == ["post_id", "title", "created_by", "updated_by", "author_id"]

    def test_embedded_records_not_published(self, registry):
        """Test that only the root descriptor enters the cache."""
        analyze(Post, registry)

        assert registry.list_tables() == ["post"]

    def test_leaf_count_counts_nested_leaves(self, registry):
        """Test that the column count equals the non-excluded leaf count."""
        sch = analyze(Post, registry)

        assert len(sch.columns()) == 5
        assert "scratch" not in sch.columns()

    def test_tagged_record_field_is_column(self, registry):
        """Test that a named column keeps a record-typed field a leaf."""
        sch = analyze(Customer, registry)

        assert sch.fields[1].column == "address"
        assert sch.fields[1].schema is None

    def test_optional_record_is_embedded(self, registry):
        sch = analyze(Customer, registry)

        assert sch.fields[2].schema is not None
        assert sch.columns() == ["id", "address", "street"]

    def test_foreign_key(self, registry):
        sch = analyze(Post, registry)
        author = sch.fields[3]

        assert author.foreign_key.table == "users"
        assert author.foreign_key.column == "id"

    def test_self_embedding_rejected(self, registry):
        """Test that a record embedding itself is rejected."""

        @dataclass
        class Node:
            value: int = 0
            next: Optional["Node"] = None

        Node.__dataclass_fields__["next"].type = Node
        with pytest.raises(InvalidTypeError):
            analyze(Node, registry)

    def test_invalid_type(self, registry):
        with pytest.raises(InvalidTypeError):
            analyze(42, registry)
        with pytest.raises(InvalidTypeError):
            analyze([], registry)

    def test_invalid_type_is_type_error(self, registry):
        """Test that InvalidTypeError can be caught as TypeError."""
        with pytest.raises(TypeError):
            analyze("nope", registry)

    def test_malformed_annotation(self, registry):
        """Test that a syntactically invalid annotation is an InvalidTypeError."""

        @dataclass
        class Bad:
            value: str = field(default="", metadata={"db": "a b"})

        with pytest.raises(InvalidTypeError):
            analyze(Bad, registry)

    def test_non_string_annotation(self, registry):
        @dataclass
        class Bad:
            value: str = field(default="", metadata={"db": 5})

        with pytest.raises(InvalidTypeError):
            analyze(Bad, registry)

    def test_custom_tag_key(self, registry):
        """Test reading annotations from a configured metadata key."""

        @dataclass
        class Item:
            sku: str = field(default="", metadata={"column": "sku,pk"})

        sch = Introspector(registry, MapperConfig(tag_key="column")).analyze(Item)

        assert sch.find_primary_key()[0].column == "sku"

    def test_default_registry(self):
        """Test that analysis without a registry uses the process default."""
        sch = analyze(Post)

        assert default_registry.lookup("post") is sch


class TestDescriptorCache:
    """Tests for caching behavior."""

    def test_cached(self, registry):
        """Test that a second analysis returns the cached descriptor."""
        assert analyze(Post, registry) is analyze(Post(), registry)

    def test_idempotent_across_registries(self, registry):
        """Test that fresh analyses agree on columns and pk path."""
        first = analyze(Post, registry)
        second = analyze(Post, DescriptorRegistry())

        assert first is not second
        assert first == second
        assert first.columns() == second.columns()
        assert first.find_primary_key()[1] == second.find_primary_key()[1]

    def test_clear(self, registry):
        """Test that clearing forces re-analysis."""
        first = analyze(Post, registry)
        registry.clear()

        assert len(registry) == 0
        assert analyze(Post, registry) is not first

    def test_same_table_other_class(self, registry):
        """Test that a different class mapping to a cached table is re-analyzed."""

        @dataclass
        class Post:
            body: str = ""

        local = analyze(Post, registry)
        assert local.columns() == ["body"]

        module_level = analyze(globals()["Post"], registry)
        assert module_level.columns()[0] == "post_id"

    def test_concurrent_first_analysis(self, registry):
        """Test that racing threads leave a complete descriptor in the cache."""
        barrier = threading.Barrier(8)
        results = []
        errors = []

        def work():
            try:
                barrier.wait()
                results.append(analyze(Post, registry))
            except Exception as exc:  # pragma: no cover - reported below
                errors.append(exc)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        cached = registry.lookup("post")
        assert cached is not None
        assert cached.columns() == ["post_id", "title", "created_by", "updated_by", "author_id"]
        assert all(r == cached for r in results)


class TestStringAnnotations:
    """Tests for records whose annotations are strings, as under postponed evaluation."""

    def test_class_and_instance_agree(self):
        """Test that an unresolvable local annotation maps the same from a class or an instance."""

        @dataclass
        class Stamp:
            created_by: str = ""

        @dataclass
        class Memo:
            id: "int" = 0
            stamp: "Stamp" = field(default_factory=Stamp)
            body: "str" = ""

        from_class = analyze(Memo, DescriptorRegistry())
        from_instance = analyze(Memo(), DescriptorRegistry())

        assert from_class.columns() == ["id", "created_by", "body"]
        assert from_instance == from_class
        assert from_instance.find_primary_key()[1] == from_class.find_primary_key()[1]

    def test_resolved_against_defining_module(self, registry):
        """Test that one bad annotation does not hide the resolvable ones."""

        @dataclass
        class Entry:
            id: "int" = 0
            audit: "Optional[Audit]" = None
            note: "Unknown" = ""

        sch = analyze(Entry, registry)

        assert sch.columns() == ["id", "created_by", "updated_by", "note"]

    def test_unresolvable_without_default(self, registry):
        """Test that a field that cannot be classified is an error, not a column."""

        @dataclass
        class Entry:
            id: "int" = 0
            owner: "Optional[Missing]" = None

        with pytest.raises(InvalidTypeError):
            analyze(Entry, registry)

    def test_tagged_field_needs_no_resolution(self, registry):
        @dataclass
        class Entry:
            owner: "Missing" = field(default=None, metadata={"db": "owner_id"})

        assert analyze(Entry, registry).columns() == ["owner_id"]

    def test_punctuated_column(self, registry):
        """Test that column names may contain characters other than the separators."""

        @dataclass
        class Entry:
            ref: str = field(default="", metadata={"db": "ext-ref"})

        assert analyze(Entry, registry).columns() == ["ext-ref"]
