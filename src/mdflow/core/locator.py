"""YAML source locator.

This module resolves locator paths (`on.push.branches[1]`, `$.jobs.build`)
to exact source spans inside a YAML document.

The document is composed once with PyYAML into an immutable tree of
`YAMLNode` values. Each node records its kind and its 1-based start
position; spans are derived on demand with a per-kind computation:

- plain and quoted scalars end at `start + len(value) - 1` on the start
  line;
- literal block scalars (`|`) span one line per content line, ending at
  the length of the last content line;
- folded block scalars (`>`) collapse line breaks when decoded, so only
  their start position is reported;
- non-empty mappings and sequences end where their last child ends,
  empty ones span only their opening token.

Only the first document of a multi-document stream is considered.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from yaml import SafeLoader, YAMLError, compose_all
from yaml.nodes import MappingNode, ScalarNode, SequenceNode

from mdflow.errors import (
    EmptyInputError,
    ErrorContext,
    IndexRangeError,
    LocatorError,
    MdflowError,
    NodeTypeError,
    PathNotFoundError,
    YAMLParseError,
)
from mdflow.models import PathSegment, SourceSpan
from mdflow.names import INDEX_PATTERN, LOCATOR_SEGMENT_PATTERN

if TYPE_CHECKING:
    from yaml.nodes import Node

__all__ = (
    'FrontmatterLocator',
    'NodeKind',
    'YAMLNode',
    'locate_frontmatter_path',
    'locate_frontmatter_path_span',
    'parse_locator_path',
)


class NodeKind(StrEnum):
    """Closed set of YAML node variants."""

    DOCUMENT = 'document'
    MAPPING = 'mapping'
    SEQUENCE = 'sequence'
    PLAIN = 'plain'
    QUOTED = 'quoted'
    LITERAL = 'literal'
    FOLDED = 'folded'


#: Scalar kinds keyed by PyYAML scalar style.
SCALAR_STYLES = {
    None: NodeKind.PLAIN,
    '': NodeKind.PLAIN,
    "'": NodeKind.QUOTED,
    '"': NodeKind.QUOTED,
    '|': NodeKind.LITERAL,
    '>': NodeKind.FOLDED,
}


@dataclass(frozen=True, slots=True)
class YAMLNode:
    """Immutable YAML syntax tree node.

    Attributes:
        kind: Node variant.
        line: 1-based line of the node's first token.
        column: 1-based column of the node's first token.
        value: Decoded scalar value (scalars only).
        entries: Ordered key/value pairs (mappings only).
        items: Ordered children (sequences and documents).
    """

    kind: NodeKind
    line: int
    column: int
    value: str = ''
    entries: tuple[tuple[str, 'YAMLNode'], ...] = ()
    items: tuple['YAMLNode', ...] = ()

    @classmethod
    def from_yaml_node(cls, node: 'Node') -> 'YAMLNode':
        """Convert a composed PyYAML node into an immutable tree.

        Args:
            node: Node produced by `yaml.compose`.

        Returns:
            Converted node.
        """
        line = node.start_mark.line + 1
        column = node.start_mark.column + 1

        match node:
            case MappingNode():
                return cls(
                    kind=NodeKind.MAPPING,
                    line=line,
                    column=column,
                    entries=tuple(
                        (cls._key_text(key), cls.from_yaml_node(value))
                        for key, value in node.value
                    ),
                )
            case SequenceNode():
                return cls(
                    kind=NodeKind.SEQUENCE,
                    line=line,
                    column=column,
                    items=tuple(cls.from_yaml_node(item) for item in node.value),
                )
            case ScalarNode():
                return cls(
                    kind=SCALAR_STYLES.get(node.style, NodeKind.PLAIN),
                    line=line,
                    column=column,
                    value=node.value,
                )

        raise TypeError(f'{node!r} has unsupported type')

    @staticmethod
    def _key_text(node: 'Node') -> str:
        """Mapping key as text; complex keys use their tag."""
        if isinstance(node, ScalarNode):
            return node.value
        return node.tag

    @property
    def span(self) -> SourceSpan:
        """Source span of the node."""
        end_line, end_column = self.line, self.column

        match self.kind:
            case NodeKind.PLAIN | NodeKind.QUOTED:
                if self.value:
                    end_column = self.column + len(self.value) - 1

            case NodeKind.LITERAL:
                lines = self.value.split('\n')
                if lines and lines[-1] == '':
                    lines.pop()
                if len(lines) > 1:
                    end_line = self.line + len(lines) - 1
                    end_column = len(lines[-1]) or 1

            case NodeKind.FOLDED:
                pass

            case NodeKind.MAPPING:
                if self.entries:
                    _, last = self.entries[-1]
                    end_line, end_column = last.end

            case NodeKind.SEQUENCE | NodeKind.DOCUMENT:
                if self.items:
                    end_line, end_column = self.items[-1].end

        return SourceSpan(
            start_line=self.line,
            start_column=self.column,
            end_line=end_line,
            end_column=end_column,
        )

    @property
    def end(self) -> tuple[int, int]:
        """End line and column of the node span."""
        span = self.span
        return span.end_line, span.end_column

    @property
    def root(self) -> 'YAMLNode':
        """Content node of a document, or the node itself."""
        if self.kind == NodeKind.DOCUMENT and self.items:
            return self.items[0]
        return self

    def child(self, segment: PathSegment) -> 'YAMLNode':
        """Follow a single path segment.

        Args:
            segment: Key or index segment.

        Returns:
            The child node reached by the segment.

        Raises:
            NodeTypeError: If the node kind does not support the segment.
            PathNotFoundError: If a mapping has no such key.
            IndexRangeError: If an index is invalid or out of range.
        """
        node = self.root

        match segment.kind:
            case 'key':
                if node.kind != NodeKind.MAPPING:
                    raise NodeTypeError(
                        f"cannot access key '{segment.value}' "
                        f'on a {node.kind} node',
                    )
                for key, value in node.entries:
                    if key == segment.value:
                        return value
                raise PathNotFoundError(f"path not found: key '{segment.value}' does not exist")

            case 'index':
                if segment.index is None:
                    raise IndexRangeError(f"invalid array index '{segment.value}'")
                if node.kind != NodeKind.SEQUENCE:
                    raise NodeTypeError(
                        f'cannot access index {segment.index} '
                        f'on a {node.kind} node',
                    )
                if segment.index >= len(node.items):
                    raise IndexRangeError(
                        f'array index {segment.index} out of range '
                        f'(length {len(node.items)})',
                    )
                return node.items[segment.index]

        raise TypeError(f'{segment!r} has unsupported kind')


def parse_locator_path(path: str) -> tuple[PathSegment, ...]:
    """Split a locator path into segments.

    Keys are separated by dots, sequence indices are bracketed, and an
    optional `$.` prefix is ignored: `$.jobs.build.steps[0].run`.

    Args:
        path: Locator path.

    Returns:
        Ordered path segments. Bracketed values that are not
        non-negative integers produce index segments without `index`.
    """
    path = path.strip()
    if path == '$':
        path = ''
    elif path.startswith('$.'):
        path = path[2:]

    segments = []
    for match in LOCATOR_SEGMENT_PATTERN.finditer(path):
        key, index = match.groups()
        if key is not None:
            segments.append(PathSegment(kind='key', value=key))
            continue

        index = index.strip()
        segments.append(PathSegment(
            kind='index',
            value=index,
            index=int(index) if INDEX_PATTERN.match(index) else None,
        ))

    return tuple(segments)


class FrontmatterLocator:
    """Parse-once, query-many locator over YAML text.

    The text is composed on construction. Parse failures are kept and
    raised again by every query, so a locator is always safe to build.
    The syntax tree is immutable and may be queried concurrently.

    Example:
        >>> locator = FrontmatterLocator('on:\\n  push: {}\\n')
        >>> locator.locate('on.push')
        (2, 9)
    """

    def __init__(self, yaml_text: str, *, filename: str | None = None) -> None:
        """Compose the first YAML document of the text.

        Args:
            yaml_text: YAML source.
            filename: Optional source name used in error messages.
        """
        self.yaml_text = yaml_text
        self.filename = filename

        self._document: YAMLNode | None = None
        self._error: MdflowError | None = None

        if not yaml_text.strip():
            self._error = EmptyInputError('frontmatter YAML is empty')
            return

        try:
            root = next(compose_all(yaml_text, Loader=SafeLoader), None)
        except YAMLError as error:
            self._error = YAMLParseError.from_yaml_error(error, filename=filename)
            return

        if root is None:
            self._error = EmptyInputError('frontmatter YAML is empty')
            return

        body = YAMLNode.from_yaml_node(root)
        self._document = YAMLNode(
            kind=NodeKind.DOCUMENT,
            line=body.line,
            column=body.column,
            items=(body,),
        )

    @property
    def document(self) -> YAMLNode:
        """Parsed document node.

        Raises:
            EmptyInputError: If the text holds no document.
            YAMLParseError: If the text is not valid YAML.
        """
        if self._error is not None:
            raise self._error
        if self._document is None:
            raise EmptyInputError('frontmatter YAML is empty')
        return self._document

    def node(self, path: str) -> YAMLNode:
        """Resolve a locator path to a syntax tree node.

        Args:
            path: Locator path.

        Returns:
            Node reached by the path.

        Raises:
            EmptyInputError: If the text or the path is empty.
            YAMLParseError: If the text is not valid YAML.
            LocatorError: If the path cannot be followed.
        """
        node = self.document

        segments = parse_locator_path(path)
        if not segments:
            raise EmptyInputError('locator path is empty')

        for segment in segments:
            try:
                node = node.child(segment)
            except LocatorError as error:
                error.message = f"{error.message} (path '{path}')"
                error.context = ErrorContext(filename=self.filename, path=path)
                raise

        return node

    def locate_span(self, path: str) -> SourceSpan:
        """Resolve a locator path to a source span.

        Args:
            path: Locator path.

        Returns:
            Span of the node reached by the path.

        Raises:
            EmptyInputError: If the text or the path is empty.
            YAMLParseError: If the text is not valid YAML.
            LocatorError: If the path cannot be followed.
        """
        return self.node(path).span

    def locate(self, path: str) -> tuple[int, int]:
        """Resolve a locator path to its start line and column.

        Raises:
            EmptyInputError: If the text or the path is empty.
            YAMLParseError: If the text is not valid YAML.
            LocatorError: If the path cannot be followed.
        """
        span = self.locate_span(path)
        return span.start_line, span.start_column

    def find_span(self, path: str) -> SourceSpan:
        """Resolve a locator path, returning a zero span on failure.

        Args:
            path: Locator path.

        Returns:
            Span of the node, or an unresolved `SourceSpan()`.
        """
        try:
            return self.locate_span(path)
        except (LocatorError, YAMLParseError):
            return SourceSpan()


def locate_frontmatter_path_span(yaml_text: str, path: str) -> SourceSpan:
    """Resolve a single locator path in YAML text.

    Raises:
        EmptyInputError: If the text or the path is empty.
        YAMLParseError: If the text is not valid YAML.
        LocatorError: If the path cannot be followed.
    """
    return FrontmatterLocator(yaml_text).locate_span(path)


def locate_frontmatter_path(yaml_text: str, path: str) -> tuple[int, int]:
    """Resolve a single locator path to its start line and column.

    Raises:
        EmptyInputError: If the text or the path is empty.
        YAMLParseError: If the text is not valid YAML.
        LocatorError: If the path cannot be followed.
    """
    return FrontmatterLocator(yaml_text).locate(path)
