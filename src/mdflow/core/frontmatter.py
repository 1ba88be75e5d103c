"""Frontmatter extraction and markdown slicing.

A workflow document optionally starts with a YAML block fenced by two
`---` lines, followed by a markdown body:

    ---
    on: push
    engine: claude
    ---
    # Triage issues

Extraction keeps the raw frontmatter lines and the file line of the
first frontmatter line, so positions reported inside the frontmatter
can be translated into whole-file positions.
"""

from pathlib import Path
from typing import TYPE_CHECKING

from yaml import YAMLError

from mdflow.errors import (
    FrontmatterError,
    SectionNotFoundError,
    UnclosedFrontmatterError,
    YAMLParseError,
)
from mdflow.models import FrontmatterResult
from mdflow.names import HEADING_PATTERN, heading_pattern, key_pattern
from mdflow.values import canonical_key

from .loader import dump_yaml, load_yaml

if TYPE_CHECKING:
    from os import PathLike

FENCE = '---'

#: File line of the first frontmatter line when the document opens with a fence.
FRONTMATTER_START = 2


def extract_frontmatter(content: str, *,
                        filename: str | None = None) -> FrontmatterResult:
    """Split a document into frontmatter and markdown body.

    Args:
        content: Document text.
        filename: Optional source name used in error messages.

    Returns:
        Extraction result. Documents that do not start with a fence have
        an empty frontmatter and the whole text as body.

    Raises:
        UnclosedFrontmatterError: If the opening fence is never closed.
        YAMLParseError: If the frontmatter is not valid YAML.
        FrontmatterError: If the frontmatter is not a mapping.
    """
    lines = content.split('\n')

    if not lines or lines[0].strip() != FENCE:
        return FrontmatterResult(markdown=content)

    end = next(
        (
            index
            for index, line in enumerate(lines[1:], start=1)
            if line.strip() == FENCE
        ),
        None,
    )
    if end is None:
        raise UnclosedFrontmatterError(
            'frontmatter not properly closed',
            context={'filename': filename, 'line_num': 1, 'column_num': 1},
        )

    frontmatter_lines = lines[1:end]

    try:
        frontmatter = load_yaml('\n'.join(frontmatter_lines))
    except YAMLError as error:
        raise locate_yaml_error(error, filename=filename) from error

    if frontmatter is None:
        frontmatter = {}

    if not isinstance(frontmatter, dict):
        raise FrontmatterError(
            f'frontmatter must be a mapping, got {type(frontmatter).__name__}',
            context={'filename': filename, 'line_num': FRONTMATTER_START},
        )

    return FrontmatterResult(
        frontmatter={canonical_key(key): value for key, value in frontmatter.items()},
        markdown='\n'.join(lines[end + 1:]).strip(),
        frontmatter_lines=tuple(frontmatter_lines),
        frontmatter_start=FRONTMATTER_START,
    )


def locate_yaml_error(error: YAMLError, *,
                      start_line: int = FRONTMATTER_START,
                      filename: str | None = None) -> YAMLParseError:
    """Translate a frontmatter parse error into whole-file coordinates.

    Args:
        error: PyYAML error raised for the frontmatter text.
        start_line: File line of the first frontmatter line.
        filename: Optional source name.

    Returns:
        Parse error positioned in the document.
    """
    parse_error = YAMLParseError.from_yaml_error(
        error,
        line_offset=start_line - 1,
        filename=filename,
    )
    parse_error.message = parse_error.message.replace(
        'failed to parse YAML',
        'failed to parse frontmatter',
        1,
    )
    return parse_error


def extract_frontmatter_string(content: str) -> str:
    """Extract the frontmatter re-serialized as YAML.

    Returns:
        YAML text, or an empty string when there is no frontmatter.
    """
    result = extract_frontmatter(content)
    if not result.frontmatter:
        return ''

    return dump_yaml(result.frontmatter).strip()


def extract_markdown_content(content: str) -> str:
    """Extract the markdown body of a document."""
    return extract_frontmatter(content).markdown


def read_document(path: 'str | PathLike[str]') -> str:
    """Read a document as UTF-8 text.

    Raises:
        FrontmatterError: If the file cannot be read.
    """
    try:
        return Path(path).read_text(encoding='utf-8')
    except OSError as error:
        raise FrontmatterError(f'failed to read file {path}: {error}') from error


def extract_markdown(path: 'str | PathLike[str]') -> str:
    """Extract the markdown body of a document file."""
    return extract_frontmatter(read_document(path), filename=str(path)).markdown


def extract_yaml_chunk(yaml_text: str, key: str) -> str:
    """Extract the YAML block of a single key.

    The block starts at the first line declaring the key and continues
    while lines are indented deeper than the key. A key with an inline
    value yields only its own line.

    Args:
        yaml_text: YAML source.
        key: Key to extract.

    Returns:
        The key's block, or an empty string when the key is absent.
    """
    if not yaml_text or not key:
        return ''

    pattern = key_pattern(key)
    block: list[str] = []
    key_indent = 0

    for line in yaml_text.split('\n'):
        stripped = line.strip()
        indent = len(line) - len(line.lstrip(' '))

        if not block:
            if stripped and (match := pattern.match(line.lstrip(' '))):
                block.append(line)
                key_indent = indent
                if line.lstrip(' ')[match.end() + 1:].strip():
                    break
            continue

        if not stripped:
            continue
        if indent <= key_indent:
            break
        block.append(line)

    return '\n'.join(block)


def extract_markdown_section(content: str, section: str) -> str:
    """Extract a markdown section by heading text.

    The section starts at a level 1-3 heading with exactly the given
    text and ends before the next heading of the same or a higher level.

    Args:
        content: Markdown text.
        section: Heading text.

    Returns:
        The section including its heading, stripped.

    Raises:
        SectionNotFoundError: If no such heading exists.
    """
    pattern = heading_pattern(section)
    selected: list[str] = []
    level: int | None = None

    for line in content.split('\n'):
        if level is None:
            if match := pattern.match(line):
                level = len(match.group('level'))
                selected.append(line)
            continue

        if (match := HEADING_PATTERN.match(line)) and len(match.group('level')) <= level:
            break
        selected.append(line)

    if level is None:
        raise SectionNotFoundError(f"section '{section}' not found")

    return '\n'.join(selected).strip()


def default_workflow_name(path: 'str | PathLike[str]') -> str:
    """Derive a human-readable title from a file name.

    Example:
        >>> default_workflow_name('.github/workflows/daily-issue-triage.md')
        'Daily Issue Triage'
    """
    words = Path(path).stem.replace('-', ' ').split()
    return ' '.join(word[:1].upper() + word[1:] for word in words)


def extract_workflow_name(path: 'str | PathLike[str]') -> str:
    """Extract a workflow title from the first H1 heading of a file.

    Falls back to `default_workflow_name` when the body has no H1.
    """
    for line in extract_markdown(path).split('\n'):
        line = line.strip()  # noqa: PLW2901
        if line.startswith('# '):
            return line[2:].strip()

    return default_workflow_name(path)
