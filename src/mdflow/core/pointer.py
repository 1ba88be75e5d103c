"""Bridge from schema error pointers to YAML source positions.

Schema validators report failures with JSON pointers (`/on/push/0`).
This module maps such pointers back onto YAML source text with a
line-oriented walk: every segment narrows the current scope to the
block owned by the matched key or list item, so a segment only matches
lines nested under the previous one.

Properties rejected by `additionalProperties` have no pointer of their
own; the validator reports the enclosing object instead, and the
offending names are recovered from the message text.

Nothing here raises for an unresolved pointer: a location with
`found=False` at (1, 1) tells callers to use a coarser position.
"""

from dataclasses import dataclass
from re import compile as regexp
from typing import TYPE_CHECKING

from mdflow.models import JSONPathLocation, PathSegment
from mdflow.names import (
    ADDITIONAL_PROPERTIES_PATTERN,
    INDEX_PATTERN,
    QUOTED_NAME_PATTERN,
    key_pattern,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

#: Key or list item introducing a block scalar (`key: |`, `- >-`).
BLOCK_SCALAR_PATTERN = regexp(r'(?:^-|:)\s*[|>][-+0-9]*\s*(?:#.*)?$')

#: Scope lines owned by a matched segment.
type Scope = Sequence[_Line]


@dataclass(frozen=True, slots=True)
class _Line:
    """Meaningful YAML source line.

    Attributes:
        number: 1-based line number.
        indent: 0-based column of the first content character.
        text: Line content without indentation and trailing spaces.
    """

    number: int
    indent: int
    text: str

    @property
    def is_item(self) -> bool:
        """Whether the line starts a block sequence item."""
        return self.text == '-' or self.text.startswith('- ')

    def item_content(self) -> '_Line | None':
        """Inline content following a list marker, as a virtual line."""
        rest = self.text[1:]
        content = rest.lstrip(' ')
        if not content or content.startswith('#'):
            return None

        return _Line(
            number=self.number,
            indent=self.indent + 1 + len(rest) - len(content),
            text=content,
        )


def _scan(yaml_text: str) -> list[_Line]:
    """Split YAML text into meaningful lines.

    Blank lines, comments and the content of block scalars are dropped.
    """
    lines: list[_Line] = []
    block_indent: int | None = None

    for number, raw in enumerate(yaml_text.splitlines(), start=1):
        text = raw.strip()
        if not text or text.startswith('#'):
            continue

        indent = len(raw) - len(raw.lstrip(' '))
        if block_indent is not None:
            if indent > block_indent:
                continue
            block_indent = None

        lines.append(_Line(number=number, indent=indent, text=text))
        if BLOCK_SCALAR_PATTERN.search(text):
            block_indent = indent

    return lines


def _key_block(scope: 'Scope', position: int) -> list[_Line]:
    """Lines owned by the mapping key at `position`.

    A block sequence may sit at the same indentation as its key.
    """
    owner = scope[position]
    block = []
    for line in scope[position + 1:]:
        if line.indent > owner.indent or (line.indent == owner.indent and line.is_item):
            block.append(line)
        else:
            break
    return block


def _item_block(scope: 'Scope', position: int) -> list[_Line]:
    """Lines owned by the list item at `position`, inline content first."""
    owner = scope[position]
    block = []
    if (content := owner.item_content()) is not None:
        block.append(content)
    for line in scope[position + 1:]:
        if line.indent > owner.indent:
            block.append(line)
        else:
            break
    return block


def _find_key(scope: 'Scope', key: str) -> tuple[JSONPathLocation, list[_Line]] | None:
    """Find a key among the direct children of a scope."""
    if not scope:
        return None

    pattern = key_pattern(key)
    level = scope[0].indent
    for position, line in enumerate(scope):
        if line.indent != level or line.is_item:
            continue
        if match := pattern.match(line.text):
            location = JSONPathLocation(
                line=line.number,
                column=line.indent + match.end() + 2,
                found=True,
            )
            return location, _key_block(scope, position)

    return None


def _find_item(scope: 'Scope', index: int) -> tuple[JSONPathLocation, list[_Line]] | None:
    """Find the list item with a given running index in a scope."""
    if not scope:
        return None

    level = scope[0].indent
    current = 0
    for position, line in enumerate(scope):
        if line.indent != level or not line.is_item:
            continue
        if current == index:
            location = JSONPathLocation(
                line=line.number,
                column=line.indent + 2,
                found=True,
            )
            return location, _item_block(scope, position)
        current += 1

    return None


def _walk(lines: 'Scope',
          segments: 'Sequence[PathSegment]') -> tuple[JSONPathLocation, 'Scope', int]:
    """Follow pointer segments through nested scopes.

    Args:
        lines: Meaningful source lines.
        segments: Pointer segments.

    Returns:
        Location of the deepest matched segment, the scope it owns,
        and the number of matched segments.
    """
    location = JSONPathLocation()
    scope = lines

    for depth, segment in enumerate(segments):
        match segment.kind:
            case 'index' if segment.index is not None:
                result = _find_item(scope, segment.index) or _find_key(scope, segment.value)
            case _:
                result = _find_key(scope, segment.value)

        if result is None:
            return location, scope, depth

        location, scope = result

    return location, scope, len(segments)


def parse_json_pointer(pointer: str) -> tuple[PathSegment, ...]:
    """Split a JSON pointer into segments.

    Empty segments are skipped, `~1` and `~0` escapes are decoded, and
    non-negative integers become index segments.

    Args:
        pointer: JSON pointer such as `/tools/github/allowed/0`.

    Returns:
        Ordered path segments.
    """
    segments = []
    for part in pointer.removeprefix('/').split('/'):
        if not part:
            continue

        value = part.replace('~1', '/').replace('~0', '~')
        if INDEX_PATTERN.match(value):
            segments.append(PathSegment(kind='index', value=value, index=int(value)))
        else:
            segments.append(PathSegment(kind='key', value=value))

    return tuple(segments)


def locate_json_path(yaml_text: str, pointer: str) -> JSONPathLocation:
    """Find the source position of a JSON pointer in YAML text.

    The returned column is placed just after the colon of a matched key,
    or just after the marker of a matched list item.

    Args:
        yaml_text: YAML source.
        pointer: JSON pointer; empty for the document root.

    Returns:
        Position of the deepest segment when every segment matched,
        (1, 1) found for the root, otherwise (1, 1) not found.
    """
    segments = parse_json_pointer(pointer)
    if not segments:
        return JSONPathLocation(line=1, column=1, found=True)

    location, _, matched = _walk(_scan(yaml_text), segments)
    if matched < len(segments):
        return JSONPathLocation()

    return location


def extract_additional_property_names(message: str) -> list[str]:
    """Extract property names from an "additional properties" message.

    Args:
        message: Validator message, e.g.
            `additional properties 'a', 'b' not allowed`.

    Returns:
        Quoted property names in message order, or an empty list.
    """
    if not (match := ADDITIONAL_PROPERTIES_PATTERN.search(message)):
        return []

    return QUOTED_NAME_PATTERN.findall(match.group(1))


def _candidates(lines: 'Scope') -> 'Iterator[_Line]':
    """Yield lines together with inline list item content."""
    for line in lines:
        yield line
        if line.is_item and (content := line.item_content()) is not None:
            yield content


def _first_key_line(lines: 'Scope', names: 'Sequence[str]',
                    level: int | None = None) -> JSONPathLocation | None:
    """Find the first line declaring any of the given keys."""
    patterns = [key_pattern(name) for name in names]
    for line in _candidates(lines):
        if level is not None and line.indent != level:
            continue
        if any(pattern.match(line.text) for pattern in patterns):
            return JSONPathLocation(line=line.number, column=line.indent + 1, found=True)

    return None


def find_first_additional_property(yaml_text: str,
                                   names: 'Sequence[str]') -> JSONPathLocation:
    """Find the first line declaring any of the given property names.

    Args:
        yaml_text: YAML source.
        names: Candidate property names.

    Returns:
        Start position of the first matching key, or (1, 1) not found.
    """
    if not names:
        return JSONPathLocation()

    return _first_key_line(_scan(yaml_text), names) or JSONPathLocation()


def locate_json_path_with_additional_properties(yaml_text: str, pointer: str,
                                                message: str) -> JSONPathLocation:
    """Find the source position of a validator failure.

    For "additional properties" failures the offending key is searched
    for: first among the children of the object the pointer resolves to,
    then anywhere under its deepest resolvable ancestor, and finally in
    the whole document. Other failures are located by pointer.

    Args:
        yaml_text: YAML source.
        pointer: JSON pointer reported by the validator.
        message: Validator message.

    Returns:
        Best-effort position of the failure.
    """
    names = extract_additional_property_names(message)
    segments = parse_json_pointer(pointer)

    if not names:
        return locate_json_path(yaml_text, pointer)

    if segments:
        _, scope, matched = _walk(_scan(yaml_text), segments)
        if matched and scope:
            if matched == len(segments):
                location = _first_key_line(scope, names, level=scope[0].indent)
                if location is not None:
                    return location
            if (location := _first_key_line(scope, names)) is not None:
                return location

    return find_first_additional_property(yaml_text, names)
