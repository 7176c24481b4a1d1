"""Column list formatting for generated SQL."""

from __future__ import annotations

from rowmap.config import PlaceholderStyle


class Columns(list[str]):
    """An ordered list of column names with SQL formatting helpers."""

    def as_list(self) -> str:
        """Return the columns comma separated: ``a, b, c``."""
        return ", ".join(self)

    def value_list(self, start: int = 1, style: PlaceholderStyle = PlaceholderStyle.DOLLAR) -> str:
        """Return one placeholder per column, numbered from ``start``: ``$1, $2``."""
        return ", ".join(style.format(start + i) for i in range(len(self)))

    def assignment_list(
        self, start: int = 1, style: PlaceholderStyle = PlaceholderStyle.DOLLAR
    ) -> str:
        """Return ``a = $1, b = $2`` with numbering from ``start``."""
        return ", ".join(
            f"{col} = {style.format(start + i)}" for i, col in enumerate(self)
        )

    def prefixed_list(self, prefix: str) -> str:
        """Return the columns qualified by ``prefix``: ``t.a, t.b``."""
        return ", ".join(f"{prefix}.{col}" for col in self)
