"""Configuration for the rowmap library."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum


class PlaceholderStyle(Enum):
    """Numbered positional placeholder syntaxes."""

    DOLLAR = "$"  # PostgreSQL: $1, $2, ...
    QMARK = "?"  # SQLite numbered: ?1, ?2, ...

    def format(self, position: int) -> str:
        """Return the placeholder for a 1-based argument position."""
        return f"{self.value}{position}"


@dataclass(frozen=True)
class MapperConfig:
    """Settings shared by introspection and SQL generation."""

    tag_key: str = "db"
    placeholder: PlaceholderStyle = PlaceholderStyle.DOLLAR

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> MapperConfig:
        """Build a config from ``ROWMAP_TAG_KEY`` and ``ROWMAP_PLACEHOLDER``.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ValueError: If ``ROWMAP_PLACEHOLDER`` is not ``$`` or ``?``.
        """
        env = os.environ if environ is None else environ
        tag_key = env.get("ROWMAP_TAG_KEY") or cls.tag_key
        placeholder = env.get("ROWMAP_PLACEHOLDER")
        if placeholder:
            return cls(tag_key=tag_key, placeholder=PlaceholderStyle(placeholder))
        return cls(tag_key=tag_key)


DEFAULT_CONFIG = MapperConfig()
