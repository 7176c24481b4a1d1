"""Descriptor types describing how a record class maps onto a table."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from rowmap.columns import Columns
from rowmap.errors import FieldNotFoundError, NoPrimaryKeyError

# Ordered slot indices from a root record down to a leaf field
IndexPath = tuple[int, ...]


@dataclass(frozen=True)
class ForeignKey:
    """Declared reference from a column to a column of another table."""

    table: str
    column: str


@dataclass
class FieldDescriptor:
    """Mapping for one declared field of a record class.

    A field is either a leaf mapped to ``column`` or a structural branch whose
    ``schema`` describes an embedded record, never both.
    """

    name: str
    index: int
    column: str | None = None
    is_primary_key: bool = False
    is_read_only: bool = False
    foreign_key: ForeignKey | None = None
    schema: TypeDescriptor | None = None

    def __post_init__(self) -> None:
        if (self.schema is None) == (self.column is None):
            raise ValueError(
                f"Field '{self.name}' must have exactly one of a column or an embedded schema"
            )

    @property
    def has_schema(self) -> bool:
        """Return whether this field embeds another record."""
        return self.schema is not None

    @property
    def is_writable(self) -> bool:
        """Return whether the field belongs in INSERT and UPDATE value lists."""
        return not self.is_read_only and not self.is_primary_key


@dataclass
class TypeDescriptor:
    """Mapping between a record class and a database table."""

    table: str
    record_type: type
    fields: list[FieldDescriptor] = field(default_factory=list)
    parent: TypeDescriptor | None = field(default=None, compare=False, repr=False)

    @property
    def is_root(self) -> bool:
        """Return whether this descriptor is not embedded in another."""
        return self.parent is None

    def find(
        self, predicate: Callable[[FieldDescriptor], bool]
    ) -> tuple[FieldDescriptor, IndexPath]:
        """Find the first leaf field matching ``predicate``, depth first.

        Embedded records are searched at the position where they are declared,
        before any later sibling.

        Returns:
            The field and its index path from this descriptor.

        Raises:
            FieldNotFoundError: If no leaf matches anywhere in the tree.
        """
        found = self._find(predicate)
        if found is None:
            raise FieldNotFoundError(f"No matching field in '{self.table}'")
        return found

    def _find(
        self, predicate: Callable[[FieldDescriptor], bool]
    ) -> tuple[FieldDescriptor, IndexPath] | None:
        for f in self.fields:
            if f.schema is not None:
                nested = f.schema._find(predicate)
                if nested is not None:
                    return nested[0], (f.index,) + nested[1]
            elif predicate(f):
                return f, (f.index,)
        return None

    def find_primary_key(self) -> tuple[FieldDescriptor, IndexPath]:
        """Find the primary key field.

        Raises:
            NoPrimaryKeyError: If the record declares no primary key.
        """
        found = self._find(lambda f: f.is_primary_key)
        if found is None:
            raise NoPrimaryKeyError(f"Table '{self.table}' has no primary key field")
        return found

    def find_by_column(self, column: str) -> tuple[FieldDescriptor, IndexPath]:
        """Find the leaf field mapped to ``column``."""
        found = self._find(lambda f: f.column == column)
        if found is None:
            raise FieldNotFoundError(f"Column '{column}' not found in '{self.table}'")
        return found

    def leaves(self) -> Iterator[FieldDescriptor]:
        """Yield every leaf field, depth first in declaration order."""
        for f in self.fields:
            if f.schema is not None:
                yield from f.schema.leaves()
            else:
                yield f

    def writable_fields(self) -> list[FieldDescriptor]:
        """Return leaves that are neither primary key nor read-only."""
        return [f for f in self.leaves() if f.is_writable]

    def foreign_keys(self) -> list[FieldDescriptor]:
        """Return leaves that declare a foreign key."""
        return [f for f in self.leaves() if f.foreign_key is not None]

    def foreign_key_for(self, table: str) -> FieldDescriptor:
        """Return the foreign key field referencing ``table``.

        When several fields reference the same table the last one declared wins.

        Raises:
            FieldNotFoundError: If no foreign key references ``table``.
        """
        match: FieldDescriptor | None = None
        for f in self.foreign_keys():
            if f.foreign_key is not None and f.foreign_key.table == table:
                match = f
        if match is None:
            raise FieldNotFoundError(
                f"No foreign key in '{self.table}' references '{table}'"
            )
        return match

    def columns(self, fields: list[FieldDescriptor] | None = None) -> Columns:
        """Return the column names of ``fields`` (all leaves by default) in order."""
        if fields is None:
            fields = list(self.leaves())
        return Columns(f.column for f in fields if f.column is not None)


class ID(int):
    """A serial row identifier."""

    @classmethod
    def parse(cls, text: str) -> ID:
        """Parse a decimal string into an ID.

        Raises:
            ValueError: If ``text`` is not a base-10 integer.
        """
        return cls(int(text, 10))
