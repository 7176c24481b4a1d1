"""SQL statement generation from record descriptors."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from rowmap.config import PlaceholderStyle
from rowmap.errors import FieldNotFoundError, NoPrimaryKeyError
from rowmap.types import TypeDescriptor


@dataclass
class Statement:
    """A SQL string and its positional arguments."""

    sql: str
    args: list[Any] = field(default_factory=list)


def _append(sql: str, clause: str) -> str:
    """Append a caller supplied clause, skipping it when blank."""
    clause = clause.strip()
    return f"{sql} {clause}" if clause else sql


def _assignments(descriptor: TypeDescriptor, start: int, style: PlaceholderStyle) -> str:
    cols = descriptor.columns(descriptor.writable_fields())
    if not cols:
        raise FieldNotFoundError(f"Table '{descriptor.table}' has no writable columns")
    return cols.assignment_list(start, style)


def select_sql(
    descriptor: TypeDescriptor,
    suffix: str = "",
    args: Sequence[Any] = (),
) -> Statement:
    """``SELECT <all columns> FROM <table> <suffix>``."""
    sql = f"SELECT {descriptor.columns().as_list()} FROM {descriptor.table}"
    return Statement(_append(sql, suffix), list(args))


def insert_sql(
    descriptor: TypeDescriptor,
    values: Sequence[Any],
    style: PlaceholderStyle = PlaceholderStyle.DOLLAR,
) -> Statement:
    """``INSERT INTO <table> (<writable columns>) VALUES (...)``.

    A ``RETURNING <primary key>`` clause is added when the table has a primary key.
    """
    cols = descriptor.columns(descriptor.writable_fields())
    if cols:
        sql = (
            f"INSERT INTO {descriptor.table} ({cols.as_list()}) "
            f"VALUES ({cols.value_list(1, style)})"
        )
    else:
        sql = f"INSERT INTO {descriptor.table} DEFAULT VALUES"

    try:
        pk, _ = descriptor.find_primary_key()
    except NoPrimaryKeyError:
        return Statement(sql, list(values))
    return Statement(f"{sql} RETURNING {pk.column}", list(values))


def insert_many_sql(
    descriptor: TypeDescriptor,
    rows: Sequence[Sequence[Any]],
    style: PlaceholderStyle = PlaceholderStyle.DOLLAR,
) -> Statement:
    """One multi-row ``INSERT`` for several records of the same table."""
    if not rows:
        raise ValueError("insert_many_sql needs at least one row")

    cols = descriptor.columns(descriptor.writable_fields())
    if not cols:
        raise FieldNotFoundError(f"Table '{descriptor.table}' has no writable columns")

    groups = []
    args: list[Any] = []
    for values in rows:
        groups.append(f"({cols.value_list(len(args) + 1, style)})")
        args.extend(values)

    sql = f"INSERT INTO {descriptor.table} ({cols.as_list()}) VALUES {', '.join(groups)}"
    return Statement(sql, args)


def update_sql(
    descriptor: TypeDescriptor,
    values: Sequence[Any],
    predicate: str = "",
    args: Sequence[Any] = (),
    style: PlaceholderStyle = PlaceholderStyle.DOLLAR,
) -> Statement:
    """``UPDATE <table> SET ... <predicate>``.

    Predicate arguments come first so the caller's ``$1..$n`` stay valid; the
    assignments are numbered after them.
    """
    assignments = _assignments(descriptor, len(args) + 1, style)
    sql = _append(f"UPDATE {descriptor.table} SET {assignments}", predicate)
    return Statement(sql, list(args) + list(values))


def update_by_column_sql(
    descriptor: TypeDescriptor,
    values: Sequence[Any],
    column: str,
    key: Any,
    style: PlaceholderStyle = PlaceholderStyle.DOLLAR,
) -> Statement:
    """``UPDATE <table> SET ... WHERE <column> = $n`` with the key as last argument."""
    assignments = _assignments(descriptor, 1, style)
    where = f"WHERE {column} = {style.format(len(values) + 1)}"
    return Statement(
        f"UPDATE {descriptor.table} SET {assignments} {where}", list(values) + [key]
    )


def update_by_id_sql(
    descriptor: TypeDescriptor,
    values: Sequence[Any],
    key: Any,
    style: PlaceholderStyle = PlaceholderStyle.DOLLAR,
) -> Statement:
    """Update statement matching the primary key column."""
    pk, _ = descriptor.find_primary_key()
    return update_by_column_sql(descriptor, values, pk.column, key, style)  # type: ignore[arg-type]


def delete_sql(
    descriptor: TypeDescriptor,
    predicate: str = "",
    args: Sequence[Any] = (),
) -> Statement:
    """``DELETE FROM <table> <predicate>``."""
    return Statement(_append(f"DELETE FROM {descriptor.table}", predicate), list(args))


def delete_by_column_sql(
    descriptor: TypeDescriptor,
    column: str,
    key: Any,
    style: PlaceholderStyle = PlaceholderStyle.DOLLAR,
) -> Statement:
    """``DELETE FROM <table> WHERE <column> = $1``."""
    return Statement(
        f"DELETE FROM {descriptor.table} WHERE {column} = {style.format(1)}", [key]
    )


def delete_by_id_sql(
    descriptor: TypeDescriptor,
    key: Any,
    style: PlaceholderStyle = PlaceholderStyle.DOLLAR,
) -> Statement:
    """Delete statement matching the primary key column."""
    pk, _ = descriptor.find_primary_key()
    return delete_by_column_sql(descriptor, pk.column, key, style)  # type: ignore[arg-type]
