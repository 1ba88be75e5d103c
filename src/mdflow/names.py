"""Textual patterns recognized by the compiler.

This module defines the regular expressions used to recognize include
directives, markdown headings, locator path segments and validator
messages. They form part of the document format contract.
"""

from re import ASCII, Pattern
from re import compile as regexp
from re import escape

#: Include directive: `@include path`, `@include? path`, `@include path#Section`.
INCLUDE_PATTERN = regexp(r'^@include(?P<optional>\?)?\s+(?P<path>.+)$')

#: Marker token checked between expansion passes.
INCLUDE_TOKEN = '@include'

#: Section separator inside an include path.
SECTION_SEPARATOR = '#'

#: Markdown heading of level 1 to 3.
HEADING_PATTERN = regexp(r'^(?P<level>#{1,3})[ \t]+')

#: Locator path segment: a bare key or a bracketed index.
LOCATOR_SEGMENT_PATTERN = regexp(r'([^.\[\]]+)|\[([^\]]+)\]')

#: Non-negative integer as used in JSON pointers and locator indices.
INDEX_PATTERN = regexp(r'^[0-9]+$', flags=ASCII)

#: Validator message listing properties rejected by the schema.
ADDITIONAL_PROPERTIES_PATTERN = regexp(
    r"additional propert(?:y|ies) ((?:'[^']+'(?:,\s*)?)+) not allowed",
)

#: Single-quoted name inside a validator message.
QUOTED_NAME_PATTERN = regexp(r"'([^']+)'")


def heading_pattern(title: str) -> Pattern[str]:
    """Compile a pattern matching a level 1-3 heading with given text.

    Args:
        title: Exact heading text.

    Returns:
        Compiled pattern with a `level` group.
    """
    return regexp(rf'^(?P<level>#{{1,3}})[ \t]+{escape(title)}[ \t]*$')


def key_pattern(key: str) -> Pattern[str]:
    """Compile a pattern matching a YAML mapping key at line start.

    Plain, single- and double-quoted spellings of the key are accepted.

    Args:
        key: Mapping key.

    Returns:
        Compiled pattern whose match ends right before the colon.
    """
    quoted = escape(key)
    return regexp(rf'^(?:"{quoted}"|\'{quoted}\'|{quoted})\s*(?=:)')
