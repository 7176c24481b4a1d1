"""Reading values out of records and addressing fields for assignment."""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from typing import Any

from rowmap.config import MapperConfig
from rowmap.errors import InvalidTypeError, ScanError
from rowmap.introspect import analyze
from rowmap.registry import DescriptorRegistry
from rowmap.types import FieldDescriptor, IndexPath, TypeDescriptor


class Slot:
    """Assignable reference to one attribute of a record."""

    __slots__ = ("owner", "name")

    def __init__(self, owner: Any, name: str) -> None:
        self.owner = owner
        self.name = name

    def get(self) -> Any:
        return getattr(self.owner, self.name, None)

    def set(self, value: Any) -> None:
        setattr(self.owner, self.name, value)

    def __repr__(self) -> str:
        return f"Slot({type(self.owner).__name__}.{self.name})"


def _instance(record: Any) -> Any:
    """Return ``record`` if it is a dataclass instance."""
    if isinstance(record, type) or not dataclasses.is_dataclass(record):
        raise InvalidTypeError(f"invalid type: expected a record instance, got {type(record).__name__}")
    return record


def addressable(record: Any) -> Any:
    """Return ``record`` if its fields can be assigned."""
    record = _instance(record)
    if type(record).__dataclass_params__.frozen:  # type: ignore[attr-defined]
        raise InvalidTypeError(f"invalid type: {type(record).__name__} is frozen")
    return record


def _field_at(descriptor: TypeDescriptor, index: int) -> FieldDescriptor:
    for f in descriptor.fields:
        if f.index == index:
            return f
    raise InvalidTypeError(f"'{descriptor.table}' has no mapped field at slot {index}")


def allocate(descriptor: TypeDescriptor) -> Any:
    """Create a fresh record for ``descriptor`` without calling its constructor.

    Every field gets its declared default, the result of its default factory,
    a freshly allocated record for embedded fields, or None.
    """
    cls = descriptor.record_type
    record = cls.__new__(cls)
    for f in dataclasses.fields(cls):
        if f.default is not dataclasses.MISSING:
            value = f.default
        elif f.default_factory is not dataclasses.MISSING:
            value = f.default_factory()
        else:
            value = None
        object.__setattr__(record, f.name, value)

    for f in descriptor.fields:
        if f.schema is not None and getattr(record, f.name) is None:
            object.__setattr__(record, f.name, allocate(f.schema))
    return record


def targets_for(descriptor: TypeDescriptor, record: Any) -> list[Slot]:
    """Return one slot per leaf of ``descriptor``, in column order."""
    record = addressable(record)
    slots: list[Slot] = []
    for f in descriptor.fields:
        if f.schema is None:
            slots.append(Slot(record, f.name))
            continue

        nested = getattr(record, f.name, None)
        if nested is None:
            nested = allocate(f.schema)
            setattr(record, f.name, nested)
        slots.extend(targets_for(f.schema, nested))
    return slots


def values_for(descriptor: TypeDescriptor, record: Any) -> list[Any]:
    """Return the current values of the writable leaves of ``descriptor``.

    ``record`` may be None for an absent embedded record; each of its writable
    leaves then contributes a NULL.
    """
    values: list[Any] = []
    for f in descriptor.fields:
        current = None if record is None else getattr(record, f.name, None)
        if f.schema is not None:
            values.extend(values_for(f.schema, current))
        elif f.is_writable:
            values.append(current)
    return values


def scan_targets(
    record: Any,
    registry: DescriptorRegistry | None = None,
    config: MapperConfig | None = None,
) -> list[Slot]:
    """Return assignable slots for every mapped column of ``record``.

    The order matches the SELECT column list of the record's table. Embedded
    records are addressed in place so assignments reach ``record`` itself.

    Raises:
        InvalidTypeError: If ``record`` is not a mutable dataclass instance.
    """
    descriptor = analyze(addressable(record), registry, config)
    return targets_for(descriptor, record)


def writable_values(
    record: Any,
    registry: DescriptorRegistry | None = None,
    config: MapperConfig | None = None,
) -> list[Any]:
    """Return the values to write for ``record``, in writable column order.

    Raises:
        InvalidTypeError: If ``record`` is not a dataclass instance.
    """
    descriptor = analyze(_instance(record), registry, config)
    return values_for(descriptor, record)


def value_at(descriptor: TypeDescriptor, record: Any, path: IndexPath) -> Any:
    """Return the value at ``path``, or None if an embedded record on the way is absent."""
    current = _instance(record)
    for index in path:
        if current is None:
            return None
        f = _field_at(descriptor, index)
        current = getattr(current, f.name, None)
        if f.schema is not None:
            descriptor = f.schema
    return current


def slot_at(descriptor: TypeDescriptor, record: Any, path: IndexPath) -> Slot:
    """Return the slot at ``path``, allocating absent embedded records on the way."""
    if not path:
        raise InvalidTypeError("empty index path")

    owner = addressable(record)
    for index in path[:-1]:
        f = _field_at(descriptor, index)
        if f.schema is None:
            raise InvalidTypeError(f"'{f.name}' is not an embedded record")
        nested = getattr(owner, f.name, None)
        if nested is None:
            nested = allocate(f.schema)
            setattr(owner, f.name, nested)
        owner, descriptor = addressable(nested), f.schema

    return Slot(owner, _field_at(descriptor, path[-1]).name)


def bind(row: Sequence[Any], slots: list[Slot]) -> None:
    """Assign the columns of ``row`` to ``slots`` positionally.

    Raises:
        ScanError: If the row width does not match the number of slots.
    """
    if len(row) != len(slots):
        raise ScanError(f"row has {len(row)} columns, expected {len(slots)}")
    for slot, value in zip(slots, row):
        slot.set(value)
