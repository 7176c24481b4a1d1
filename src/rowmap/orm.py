"""Record level CRUD operations against a caller supplied executor.

The executor is anything implementing :class:`Executor`; transactions,
timeouts and connection handling stay with it. Every operation returns
errors to the caller and performs no retries or rollback.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any, Protocol, TypeVar

from rowmap.config import DEFAULT_CONFIG, MapperConfig
from rowmap.errors import InvalidTypeError, NoPrimaryKeyError, NotFoundError
from rowmap.introspect import Introspector
from rowmap.query import (
    Statement,
    delete_by_id_sql,
    delete_sql,
    insert_many_sql,
    insert_sql,
    select_sql,
    update_by_column_sql,
    update_by_id_sql,
    update_sql,
)
from rowmap.registry import DescriptorRegistry
from rowmap.types import ID, TypeDescriptor
from rowmap.values import addressable, allocate, bind, slot_at, targets_for, value_at, values_for

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Executor(Protocol):
    """Database access needed by :class:`Mapper`."""

    def execute(self, sql: str, args: Sequence[Any]) -> int:
        """Run a command and return the number of affected rows."""
        ...

    def query(self, sql: str, args: Sequence[Any]) -> Iterable[Sequence[Any]]:
        """Run a query and return a cursor over its rows."""
        ...

    def query_row(self, sql: str, args: Sequence[Any]) -> Sequence[Any] | None:
        """Run a query and return its first row, or None if there is none."""
        ...


def _close(cursor: Any) -> None:
    close = getattr(cursor, "close", None)
    if close is not None:
        close()


def _first_column(cursor: Iterable[Sequence[Any]], convert: Any) -> list[Any]:
    try:
        items = [convert(row[0]) for row in cursor]
    finally:
        _close(cursor)
    if not items:
        raise NotFoundError("no rows in result set")
    return items


def collect_strings(cursor: Iterable[Sequence[Any]]) -> list[str]:
    """Return the first column of every row as a string.

    Raises:
        NotFoundError: If the cursor yields no rows.
    """
    return _first_column(cursor, str)


def collect_ids(cursor: Iterable[Sequence[Any]]) -> list[ID]:
    """Return the first column of every row as an :class:`ID`.

    Raises:
        NotFoundError: If the cursor yields no rows.
    """
    return _first_column(cursor, ID)


def _collect(cursor: Iterable[Sequence[Any]], descriptor: TypeDescriptor) -> list[Any]:
    items = []
    try:
        for row in cursor:
            record = allocate(descriptor)
            bind(row, targets_for(descriptor, record))
            items.append(record)
    finally:
        _close(cursor)
    return items


def collect_rows(
    cursor: Iterable[Sequence[Any]],
    cls: type[T],
    registry: DescriptorRegistry | None = None,
    config: MapperConfig | None = None,
) -> list[T]:
    """Scan every row of an open cursor into a new ``cls`` record.

    A row that fails to scan aborts the whole collection.

    Raises:
        NotFoundError: If the cursor yields no rows.
    """
    descriptor = Introspector(registry, config).analyze(cls)
    items = _collect(cursor, descriptor)
    if not items:
        raise NotFoundError(f"no rows in {descriptor.table}")
    return items


class Mapper:
    """Maps records to rows of the tables they describe."""

    def __init__(
        self,
        db: Executor,
        registry: DescriptorRegistry | None = None,
        config: MapperConfig | None = None,
    ) -> None:
        """Initialize a mapper.

        Args:
            db: Executor that runs the generated statements.
            registry: Descriptor cache, the process default when omitted.
            config: Annotation key and placeholder style.
        """
        self.db = db
        self.config = DEFAULT_CONFIG if config is None else config
        self.introspector = Introspector(registry, self.config)

    @property
    def registry(self) -> DescriptorRegistry:
        return self.introspector.registry

    def describe(self, value: Any) -> TypeDescriptor:
        """Return the descriptor of a record, record class or collection of records."""
        return self.introspector.analyze(value)

    # Raw statements

    def exec(self, sql: str, *args: Any) -> int:
        """Execute a command and return the affected row count."""
        logger.debug("exec: %s (%d args)", sql, len(args))
        return self.db.execute(sql, list(args))

    def query(self, cls: type[T], sql: str, *args: Any) -> list[T]:
        """Run ``sql`` and scan each row into a new ``cls`` record.

        The result columns must follow the record's column order. An empty
        result is returned as an empty list.
        """
        descriptor = self.describe(cls)
        logger.debug("query: %s (%d args)", sql, len(args))
        return _collect(self.db.query(sql, list(args)), descriptor)

    def query_row(self, record: T, sql: str, *args: Any) -> T:
        """Run ``sql`` and scan its first row into ``record``.

        Raises:
            NotFoundError: If the query returns no row.
        """
        descriptor = self.describe(addressable(record))
        logger.debug("query_row: %s (%d args)", sql, len(args))
        return self._scan_one(Statement(sql, list(args)), descriptor, record)

    def collect_rows(self, cursor: Iterable[Sequence[Any]], cls: type[T]) -> list[T]:
        """Scan every row of an open cursor into a new ``cls`` record.

        Raises:
            NotFoundError: If the cursor yields no rows.
        """
        return collect_rows(cursor, cls, self.registry, self.config)

    def _scan_one(self, stmt: Statement, descriptor: TypeDescriptor, record: Any) -> Any:
        row = self.db.query_row(stmt.sql, stmt.args)
        if row is None:
            raise NotFoundError(f"no rows in {descriptor.table}")
        bind(row, targets_for(descriptor, record))
        return record

    # Selects

    def many(self, cls: type[T], suffix: str = "", *args: Any) -> list[T]:
        """Select every row matching ``suffix`` (e.g. ``"WHERE age > $1"``).

        Raises:
            NotFoundError: If no row matches.
        """
        descriptor = self.describe(cls)
        stmt = select_sql(descriptor, suffix, args)
        logger.debug("many: %s (%d args)", stmt.sql, len(stmt.args))
        items = _collect(self.db.query(stmt.sql, stmt.args), descriptor)
        if not items:
            raise NotFoundError(f"no rows in {descriptor.table}")
        return items

    def all(self, cls: type[T]) -> list[T]:
        """Select every row of the table. See :meth:`many`."""
        return self.many(cls)

    def one(self, record: T, suffix: str = "", *args: Any) -> T:
        """Select the first row matching ``suffix`` into ``record``.

        Raises:
            NotFoundError: If no row matches.
        """
        descriptor = self.describe(addressable(record))
        stmt = select_sql(descriptor, suffix, args)
        logger.debug("one: %s (%d args)", stmt.sql, len(stmt.args))
        return self._scan_one(stmt, descriptor, record)

    def first(self, record: T) -> T:
        """Select the first row of the table into ``record``."""
        return self.one(record)

    def by_id(self, record: T) -> T:
        """Reload ``record`` by the current value of its primary key.

        Raises:
            NoPrimaryKeyError: If the record has no primary key field.
            NotFoundError: If no row has that key.
        """
        descriptor = self.describe(addressable(record))
        pk, path = descriptor.find_primary_key()
        key = value_at(descriptor, record, path)
        return self.one(record, f"WHERE {pk.column} = {self.config.placeholder.format(1)}", key)

    def get(self, cls: type[T], key: Any) -> T:
        """Fetch the ``cls`` record whose primary key equals ``key``."""
        descriptor = self.describe(cls)
        record = allocate(descriptor)
        _, path = descriptor.find_primary_key()
        slot_at(descriptor, record, path).set(key)
        return self.by_id(record)

    # Writes

    def insert(self, record: T) -> T:
        """Insert ``record`` into its table.

        When the table has a primary key the generated key is read back with
        ``RETURNING`` and stored on ``record``. Nothing on ``record`` changes
        if the statement or the read back fails.
        """
        descriptor = self.describe(record)
        stmt = insert_sql(descriptor, values_for(descriptor, record), self.config.placeholder)

        try:
            _, path = descriptor.find_primary_key()
        except NoPrimaryKeyError:
            logger.debug("insert: %s (%d args)", stmt.sql, len(stmt.args))
            self.db.execute(stmt.sql, stmt.args)
            return record

        addressable(record)
        logger.debug("insert returning: %s (%d args)", stmt.sql, len(stmt.args))
        row = self.db.query_row(stmt.sql, stmt.args)
        if not row:
            raise NotFoundError(f"insert into {descriptor.table} returned no key")
        slot_at(descriptor, record, path).set(row[0])
        return record

    def insert_many(self, records: Sequence[Any]) -> int:
        """Insert several records of one type with a single statement.

        Generated keys are not read back.
        """
        if not records:
            return 0

        descriptor = self.describe(records[0])
        for record in records:
            if type(record) is not descriptor.record_type:
                raise InvalidTypeError(
                    f"insert_many expects {descriptor.record_type.__name__} records, "
                    f"got {type(record).__name__}"
                )

        stmt = insert_many_sql(
            descriptor, [values_for(descriptor, r) for r in records], self.config.placeholder
        )
        logger.debug("insert_many: %s (%d args)", stmt.sql, len(stmt.args))
        return self.db.execute(stmt.sql, stmt.args)

    def update(self, record: Any, predicate: str = "", *args: Any) -> int:
        """Write the writable fields of ``record`` to rows matching ``predicate``.

        ``predicate`` uses ``$1..$n`` for ``args``; the assignments are
        numbered after them.
        """
        descriptor = self.describe(record)
        stmt = update_sql(
            descriptor, values_for(descriptor, record), predicate, args, self.config.placeholder
        )
        return self.exec(stmt.sql, *stmt.args)

    def update_by_id(self, record: Any) -> int:
        """Write ``record`` to the row with its primary key."""
        descriptor = self.describe(record)
        _, path = descriptor.find_primary_key()
        stmt = update_by_id_sql(
            descriptor,
            values_for(descriptor, record),
            value_at(descriptor, record, path),
            self.config.placeholder,
        )
        return self.exec(stmt.sql, *stmt.args)

    def update_by(self, record: Any, column: str) -> int:
        """Write ``record`` to rows whose ``column`` equals the record's value for it."""
        descriptor = self.describe(record)
        _, path = descriptor.find_by_column(column)
        stmt = update_by_column_sql(
            descriptor,
            values_for(descriptor, record),
            column,
            value_at(descriptor, record, path),
            self.config.placeholder,
        )
        return self.exec(stmt.sql, *stmt.args)

    def delete(self, value: Any, predicate: str = "", *args: Any) -> int:
        """Delete rows matching ``predicate`` from the table of ``value``."""
        stmt = delete_sql(self.describe(value), predicate, args)
        return self.exec(stmt.sql, *stmt.args)

    def delete_by_id(self, record: Any) -> int:
        """Delete the row with ``record``'s primary key."""
        descriptor = self.describe(record)
        _, path = descriptor.find_primary_key()
        stmt = delete_by_id_sql(
            descriptor, value_at(descriptor, record, path), self.config.placeholder
        )
        return self.exec(stmt.sql, *stmt.args)


# Module level shortcuts using the default registry and configuration


def query(db: Executor, cls: type[T], sql: str, *args: Any) -> list[T]:
    return Mapper(db).query(cls, sql, *args)


def query_row(db: Executor, record: T, sql: str, *args: Any) -> T:
    return Mapper(db).query_row(record, sql, *args)


def many(db: Executor, cls: type[T], suffix: str = "", *args: Any) -> list[T]:
    return Mapper(db).many(cls, suffix, *args)


def one(db: Executor, record: T, suffix: str = "", *args: Any) -> T:
    return Mapper(db).one(record, suffix, *args)


def first(db: Executor, record: T) -> T:
    return Mapper(db).first(record)


def by_id(db: Executor, record: T) -> T:
    return Mapper(db).by_id(record)


def insert(db: Executor, record: T) -> T:
    return Mapper(db).insert(record)


def insert_many(db: Executor, records: Sequence[Any]) -> int:
    return Mapper(db).insert_many(records)


def update(db: Executor, record: Any, predicate: str = "", *args: Any) -> int:
    return Mapper(db).update(record, predicate, *args)


def update_by_id(db: Executor, record: Any) -> int:
    return Mapper(db).update_by_id(record)


def update_by(db: Executor, record: Any, column: str) -> int:
    return Mapper(db).update_by(record, column)


def delete(db: Executor, value: Any, predicate: str = "", *args: Any) -> int:
    return Mapper(db).delete(value, predicate, *args)


def delete_by_id(db: Executor, record: Any) -> int:
    return Mapper(db).delete_by_id(record)
