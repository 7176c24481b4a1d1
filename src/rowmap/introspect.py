"""Record type introspection.

Turns a dataclass record (or something that reduces to one) into a
:class:`~rowmap.types.TypeDescriptor` and caches the result by table name.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import sys
import types
import typing
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from rowmap.config import DEFAULT_CONFIG, MapperConfig
from rowmap.errors import InvalidTypeError
from rowmap.naming import snakecase
from rowmap.parsing import parse_tag
from rowmap.registry import DescriptorRegistry, default_registry
from rowmap.types import FieldDescriptor, TypeDescriptor

logger = logging.getLogger(__name__)

# Annotation value that removes a field from the mapping
EXCLUDE_TAG = "-"

_UNION_ORIGINS = (typing.Union, types.UnionType)

# Marker for an annotation that could not be evaluated
_UNRESOLVED = object()


@dataclass(frozen=True)
class Composite:
    """A value that reduced to a dataclass record.

    ``instance`` is None when only the class was available.
    """

    cls: type
    instance: Any = None


@dataclass(frozen=True)
class Invalid:
    """A value that cannot be reduced to a dataclass record."""

    reason: str


def resolve_composite(value: Any) -> Composite | Invalid:
    """Reduce ``value`` to the dataclass record it describes.

    Accepts a record instance, a record class, a non-empty collection of
    records, or a typing alias such as ``list[User]`` or ``Optional[User]``.
    Anything raised while reducing is reported as :class:`Invalid`.
    """
    try:
        return _resolve(value)
    except Exception as exc:
        return Invalid(f"{type(exc).__name__}: {exc}")


def _resolve(value: Any) -> Composite | Invalid:
    if isinstance(value, type):
        if dataclasses.is_dataclass(value):
            return Composite(cls=value)
        return Invalid(f"{value.__name__} is not a dataclass")

    if dataclasses.is_dataclass(value):
        return Composite(cls=type(value), instance=value)

    origin = typing.get_origin(value)
    if origin is not None:
        args = [a for a in typing.get_args(value) if a is not type(None)]
        if origin is typing.Annotated or origin in _UNION_ORIGINS:
            if len(args) != 1:
                return Invalid(f"{value!r} does not name a single record type")
            return _resolve(args[0])
        if isinstance(origin, type) and issubclass(origin, Iterable) and args:
            return _resolve(args[0])
        return Invalid(f"{value!r} is not a collection of records")

    if isinstance(value, (str, bytes, bytearray)):
        return Invalid(f"{type(value).__name__} is not a dataclass record")

    if isinstance(value, (list, tuple, set, frozenset)):
        if not value:
            return Invalid(f"empty {type(value).__name__} has no element type")
        return _resolve(next(iter(value)))

    return Invalid(f"{type(value).__name__} is not a dataclass record")


def _table_name_override(cls: type, instance: Any) -> str | None:
    """Return the table name a record class declares for itself, if any."""
    attr = inspect.getattr_static(cls, "table_name", None)
    if attr is None:
        return None

    try:
        if isinstance(attr, (classmethod, staticmethod)):
            name = cls.table_name()  # type: ignore[attr-defined]
        elif instance is not None:
            name = instance.table_name()
        else:
            raise InvalidTypeError(
                f"{cls.__name__}.table_name() needs an instance; declare it as a classmethod"
            )
    except InvalidTypeError:
        raise
    except Exception as exc:
        raise InvalidTypeError(f"{cls.__name__}.table_name() failed: {exc}") from exc

    if not isinstance(name, str) or not name:
        raise InvalidTypeError(f"{cls.__name__}.table_name() must return a non-empty string")
    return name


def table_name_of(cls: type, instance: Any = None) -> str:
    """Return the table name for a record class."""
    override = _table_name_override(cls, instance)
    if override is not None:
        return override
    return snakecase(cls.__name__)


def _type_hints(cls: type) -> dict[str, Any]:
    """Resolve a class's annotations in one go, or return {} if any of them fails."""
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except Exception as exc:
        logger.debug("could not resolve all annotations of %s: %s", cls.__name__, exc)
        return {}


def _field_hint(cls: type, f: dataclasses.Field, hints: dict[str, Any]) -> Any:
    """Return the resolved annotation of ``f``, or ``_UNRESOLVED``.

    String annotations are evaluated one at a time against the namespace of
    the module that defines ``cls``, so one bad annotation does not hide the
    others.
    """
    if f.name in hints:
        return hints[f.name]
    if not isinstance(f.type, str):
        return f.type

    module = sys.modules.get(cls.__module__)
    namespace = dict(vars(module)) if module is not None else {}
    try:
        return eval(f.type, namespace, dict(vars(cls)))
    except Exception as exc:
        logger.debug("could not resolve %s.%s: %r (%s)", cls.__name__, f.name, f.type, exc)
        return _UNRESOLVED


def _embedded_class(hint: Any) -> Any:
    """Return the record class a field embeds, None for a scalar field, or ``_UNRESOLVED``."""
    origin = typing.get_origin(hint)
    if origin is typing.Annotated:
        return _embedded_class(typing.get_args(hint)[0])
    if origin in _UNION_ORIGINS:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1:
            return _embedded_class(args[0])
        return None
    if isinstance(hint, type):
        return hint if dataclasses.is_dataclass(hint) else None
    if hint is _UNRESOLVED or isinstance(hint, (str, typing.ForwardRef)):
        return _UNRESOLVED
    return None


def _default_of(f: dataclasses.Field) -> Any:
    if f.default is not dataclasses.MISSING:
        return f.default
    if f.default_factory is not dataclasses.MISSING:
        return f.default_factory()
    return None


def _field_embeds(cls: type, f: dataclasses.Field, hints: dict[str, Any]) -> type | None:
    """Decide from the class alone whether an untagged field embeds a record.

    An annotation that cannot be resolved is judged by the field's default.

    Raises:
        InvalidTypeError: If neither the annotation nor the default tells.
    """
    found = _embedded_class(_field_hint(cls, f, hints))
    if found is not _UNRESOLVED:
        return found

    try:
        sample = _default_of(f)
    except Exception as exc:
        raise InvalidTypeError(
            f"{cls.__name__}.{f.name}: default factory failed: {exc}"
        ) from exc
    if dataclasses.is_dataclass(sample) and not isinstance(sample, type):
        return type(sample)
    if sample is not None:
        return None

    raise InvalidTypeError(
        f"{cls.__name__}.{f.name}: cannot resolve annotation {f.type!r}; "
        "define the referenced type at module level or name the column in the annotation"
    )


class Introspector:
    """Builds descriptors for record classes and caches them in a registry."""

    def __init__(
        self,
        registry: DescriptorRegistry | None = None,
        config: MapperConfig | None = None,
    ) -> None:
        self.registry = default_registry if registry is None else registry
        self.config = DEFAULT_CONFIG if config is None else config

    def analyze(self, value: Any) -> TypeDescriptor:
        """Return the descriptor for the record ``value`` reduces to.

        Args:
            value: A record instance, record class, collection of records or
                typing alias naming a record type.

        Returns:
            The cached or freshly built descriptor.

        Raises:
            InvalidTypeError: If ``value`` does not reduce to a dataclass, or
                the record's annotations are malformed.
        """
        resolved = resolve_composite(value)
        if isinstance(resolved, Invalid):
            raise InvalidTypeError(f"invalid type: {resolved.reason}")

        cls, instance = resolved.cls, resolved.instance
        table = table_name_of(cls, instance)

        cached = self.registry.lookup(table)
        if cached is not None and cached.record_type is cls:
            return cached
        if cached is not None:
            logger.debug(
                "table %r was mapped from %s, re-analyzing for %s",
                table, cached.record_type.__name__, cls.__name__,
            )

        logger.debug("analyzing %s as table %r", cls.__name__, table)
        descriptor = self._build(cls, instance, table, parent=None, seen=())
        self.registry.publish(descriptor)
        return descriptor

    def _build(
        self,
        cls: type,
        instance: Any,
        table: str,
        parent: TypeDescriptor | None,
        seen: tuple[type, ...],
    ) -> TypeDescriptor:
        """Build the descriptor tree for ``cls`` without touching the registry."""
        if cls in seen:
            raise InvalidTypeError(f"{cls.__name__} embeds itself")
        seen = seen + (cls,)

        descriptor = TypeDescriptor(table=table, record_type=cls, parent=parent)
        hints = _type_hints(cls)

        for index, f in enumerate(dataclasses.fields(cls)):
            tag = f.metadata.get(self.config.tag_key)
            if tag is not None and not isinstance(tag, str):
                raise InvalidTypeError(
                    f"{cls.__name__}.{f.name}: annotation must be a string, got {tag!r}"
                )
            tag = (tag or "").strip()
            if tag == EXCLUDE_TAG:
                continue

            current = getattr(instance, f.name, None) if instance is not None else None

            # A named column turns a record-typed field into a plain column
            nested_cls = None if tag else _field_embeds(cls, f, hints)
            if nested_cls is not None:
                nested = self._build(
                    nested_cls, current, table_name_of(nested_cls, current), descriptor, seen
                )
                descriptor.fields.append(FieldDescriptor(name=f.name, index=index, schema=nested))
                continue

            descriptor.fields.append(self._leaf(cls, f.name, index, tag))

        return descriptor

    def _leaf(self, cls: type, name: str, index: int, tag: str) -> FieldDescriptor:
        """Build a leaf field from its name and annotation."""
        if not tag:
            column = snakecase(name)
            is_id = column == "id"
            return FieldDescriptor(
                name=name, index=index, column=column, is_primary_key=is_id, is_read_only=is_id
            )

        try:
            spec = parse_tag(tag)
        except SyntaxError as exc:
            raise InvalidTypeError(
                f"{cls.__name__}.{name}: invalid annotation {tag!r}: {exc}"
            ) from exc

        return FieldDescriptor(
            name=name,
            index=index,
            column=spec.column or snakecase(name),
            is_primary_key=spec.primary_key,
            is_read_only=spec.read_only,
            foreign_key=spec.foreign_key,
        )


def analyze(
    value: Any,
    registry: DescriptorRegistry | None = None,
    config: MapperConfig | None = None,
) -> TypeDescriptor:
    """Analyze ``value`` with a one-off :class:`Introspector`. See :meth:`Introspector.analyze`."""
    return Introspector(registry, config).analyze(value)
