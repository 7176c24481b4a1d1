"""Parsing module for the column annotation mini-language."""

from rowmap.parsing.tag_parser import TagParser, TagSpec, parse_tag

__all__ = [
    "TagParser",
    "TagSpec",
    "parse_tag",
]
