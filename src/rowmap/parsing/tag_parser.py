"""Parser for the column annotation mini-language.

An annotation has the form ``<column>[,modifier]*`` where a modifier is one of
``pk``, ``ro``, ``readonly`` or ``fk=<table>.<column>``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import ply.yacc as yacc

from rowmap.parsing.tag_lexer import TagLexer
from rowmap.types import ForeignKey

logger = logging.getLogger(__name__)

# First-segment values that designate the primary key column
PRIMARY_KEY_COLUMNS = frozenset({"id", "pk"})

READ_ONLY_MODIFIERS = frozenset({"ro", "readonly"})


@dataclass
class ModifierSpec:
    """A modifier before interpretation."""

    name: str
    value: list[str] | None = None  # dotted name parts for key=value modifiers


@dataclass
class TagSpec:
    """Interpreted field annotation."""

    column: str
    primary_key: bool = False
    read_only: bool = False
    foreign_key: ForeignKey | None = None
    ignored: list[str] = field(default_factory=list)


class TagParser:
    """Parser for ``db`` field annotations."""

    tokens = TagLexer.tokens

    def __init__(self) -> None:
        self.lexer = TagLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_tag_column(self, p: yacc.YaccProduction) -> None:
        """tag : column"""
        p[0] = (p[1], [])

    def p_tag_modifiers(self, p: yacc.YaccProduction) -> None:
        """tag : column COMMA modifier_list"""
        p[0] = (p[1], p[3])

    def p_column(self, p: yacc.YaccProduction) -> None:
        """column : IDENTIFIER
                  | empty"""
        p[0] = p[1] or ""

    def p_modifier_list_single(self, p: yacc.YaccProduction) -> None:
        """modifier_list : modifier"""
        p[0] = [p[1]] if p[1] is not None else []

    def p_modifier_list_multiple(self, p: yacc.YaccProduction) -> None:
        """modifier_list : modifier_list COMMA modifier"""
        p[0] = p[1]
        if p[3] is not None:
            p[0].append(p[3])

    def p_modifier_flag(self, p: yacc.YaccProduction) -> None:
        """modifier : IDENTIFIER"""
        p[0] = ModifierSpec(name=p[1])

    def p_modifier_value(self, p: yacc.YaccProduction) -> None:
        """modifier : IDENTIFIER EQUALS dotted_name"""
        p[0] = ModifierSpec(name=p[1], value=p[3])

    def p_modifier_empty(self, p: yacc.YaccProduction) -> None:
        """modifier : empty"""
        p[0] = None

    def p_dotted_name_single(self, p: yacc.YaccProduction) -> None:
        """dotted_name : IDENTIFIER"""
        p[0] = [p[1]]

    def p_dotted_name_multiple(self, p: yacc.YaccProduction) -> None:
        """dotted_name : dotted_name DOT IDENTIFIER"""
        p[0] = p[1] + [p[3]]

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        p[0] = None

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of annotation")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse(self, data: str) -> TagSpec:
        """Parse an annotation and interpret its modifiers."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        column, modifiers = self.parser.parse(data, lexer=self.lexer.lexer)
        return self._interpret(data, column, modifiers)

    def _interpret(
        self, data: str, column: str, modifiers: list[ModifierSpec]
    ) -> TagSpec:
        """Turn parsed modifiers into column flags."""
        spec = TagSpec(column=column)
        if column in PRIMARY_KEY_COLUMNS:
            spec.primary_key = True
            spec.read_only = True

        for mod in modifiers:
            if mod.value is None and mod.name == "pk":
                spec.primary_key = True
                spec.read_only = True
            elif mod.value is None and mod.name in READ_ONLY_MODIFIERS:
                spec.read_only = True
            elif mod.name == "fk" and mod.value is not None and len(mod.value) == 2:
                spec.foreign_key = ForeignKey(table=mod.value[0], column=mod.value[1])
            else:
                text = mod.name if mod.value is None else f"{mod.name}={'.'.join(mod.value)}"
                logger.warning("ignoring unsupported modifier %r in annotation %r", text, data)
                spec.ignored.append(text)

        return spec


_parser = TagParser()
_parser_lock = threading.Lock()


@lru_cache(maxsize=1024)
def parse_tag(data: str) -> TagSpec:
    """Parse an annotation with the shared parser.

    Results are memoized; callers must treat the returned spec as read-only.

    Raises:
        SyntaxError: If the annotation is malformed.
    """
    with _parser_lock:
        return _parser.parse(data)
