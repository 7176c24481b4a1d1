"""rowmap - Map dataclass records to relational table rows and generate their SQL."""

from rowmap.columns import Columns
from rowmap.config import DEFAULT_CONFIG, MapperConfig, PlaceholderStyle
from rowmap.errors import (
    FieldNotFoundError,
    InvalidTypeError,
    MappingError,
    NoPrimaryKeyError,
    NotFoundError,
    ScanError,
)
from rowmap.introspect import Composite, Introspector, Invalid, analyze, resolve_composite
from rowmap.naming import snakecase
from rowmap.orm import Executor, Mapper, collect_ids, collect_rows, collect_strings
from rowmap.query import Statement
from rowmap.registry import DescriptorRegistry, default_registry
from rowmap.types import ID, FieldDescriptor, ForeignKey, IndexPath, TypeDescriptor
from rowmap.values import Slot, allocate, scan_targets, writable_values

__all__ = [
    # Main API
    "Mapper",
    "Executor",
    "analyze",
    "Introspector",
    "scan_targets",
    "writable_values",
    "allocate",
    "collect_rows",
    "collect_strings",
    "collect_ids",
    # Descriptors
    "TypeDescriptor",
    "FieldDescriptor",
    "ForeignKey",
    "IndexPath",
    "Columns",
    "Slot",
    "Statement",
    "ID",
    "Composite",
    "Invalid",
    "resolve_composite",
    "snakecase",
    # Registry and configuration
    "DescriptorRegistry",
    "default_registry",
    "MapperConfig",
    "PlaceholderStyle",
    "DEFAULT_CONFIG",
    # Errors
    "MappingError",
    "InvalidTypeError",
    "FieldNotFoundError",
    "NoPrimaryKeyError",
    "NotFoundError",
    "ScanError",
]

__version__ = "0.1.0"
