"""Exceptions raised by the rowmap library."""

from __future__ import annotations


class MappingError(Exception):
    """Base class for all rowmap errors."""


class InvalidTypeError(MappingError, TypeError):
    """A value cannot be reduced to an introspectable dataclass record."""


class FieldNotFoundError(MappingError, LookupError):
    """No leaf field in a descriptor tree matched a lookup."""


class NoPrimaryKeyError(FieldNotFoundError):
    """The record type declares no primary key field."""


class NotFoundError(MappingError, LookupError):
    """A fetch produced zero rows."""


class ScanError(MappingError, ValueError):
    """A result row does not line up with the record's scan targets."""
