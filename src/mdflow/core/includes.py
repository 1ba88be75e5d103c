"""Include directive expansion.

A document composes other files with directive lines:

    @include shared/tools.md
    @include? local/overrides.md
    @include shared/prompts.md#Triage

A `?` marks the include optional: a missing target is skipped with an
`IncludeNotice`. A missing required target aborts the expansion.

Expansion runs in one of two modes:

- body mode substitutes the markdown body (or a named section) of each
  target, repeating until no directive remains;
- extract mode replaces each directive with the target's `tools`
  section as a JSON line and finally merges all lines, in directive
  order, into one configuration.

Both modes run at most `MAX_DEPTH` passes. Mutually referencing files
are not detected as cycles; they stop at the cap with an
`IncludeDepthWarning`.

Targets under the workflows directory must pass strict included-file
validation. Targets elsewhere are validated permissively: problems are
reported as `IncludeWarning` and expansion continues.
"""

from json import JSONDecodeError, loads
from pathlib import Path
from typing import TYPE_CHECKING
from warnings import warn

from mdflow.errors import (
    FrontmatterError,
    IncludeDepthWarning,
    IncludeError,
    IncludeNotice,
    IncludeWarning,
    SchemaViolationError,
    YAMLParseError,
)
from mdflow.names import INCLUDE_PATTERN, INCLUDE_TOKEN, SECTION_SEPARATOR
from mdflow.settings import get_settings
from mdflow.values import canonical_dumps

from .frontmatter import extract_frontmatter, extract_markdown_section, read_document
from .merge import merge_tools
from .schema import validate_included_file_frontmatter

if TYPE_CHECKING:
    from os import PathLike

    from mdflow.values import Config

#: Maximum number of expansion passes.
MAX_DEPTH = 10

#: Top-level keys an included file may declare.
INCLUDED_KEYS = ('tools', 'engine')

EMPTY_TOOLS = '{}'


def is_under_workflows_directory(path: 'str | PathLike[str]') -> bool:
    """Whether a path lies under the workflows directory.

    Args:
        path: File path in any platform spelling.

    Returns:
        True if the slash-normalized path contains the configured
        workflows directory fragment.
    """
    return get_settings().workflows_dir in Path(path).as_posix()


def resolve_include_path(file_path: str, base_dir: 'str | PathLike[str]') -> Path:
    """Resolve an include target relative to a base directory.

    Raises:
        IncludeError: If the target does not exist.
    """
    full_path = Path(base_dir, file_path)
    if not full_path.exists():
        raise IncludeError(f'file not found: {full_path}')

    return full_path


def _split_target(target: str) -> tuple[str, str]:
    """Split `path#Section` into a path and a section name."""
    path, _, section = target.strip().partition(SECTION_SEPARATOR)
    return path, section


def _validate_included(frontmatter: 'Config', path: Path) -> None:
    """Validate included frontmatter by location policy.

    Raises:
        IncludeError: If a file under the workflows directory is invalid.
    """
    try:
        validate_included_file_frontmatter(frontmatter, path)
    except SchemaViolationError as error:
        if is_under_workflows_directory(path):
            raise IncludeError(
                f'invalid frontmatter in included file {path}: {error}',
            ) from error
    else:
        return

    if not frontmatter:
        return

    if unexpected := [key for key in frontmatter if key not in INCLUDED_KEYS]:
        warn(
            f"Ignoring unexpected frontmatter fields in {path}: {', '.join(unexpected)}",
            category=IncludeWarning,
            stacklevel=3,
        )

    subset = {key: frontmatter[key] for key in INCLUDED_KEYS if key in frontmatter}
    if subset:
        try:
            validate_included_file_frontmatter(subset, path)
        except SchemaViolationError as error:
            warn(
                f'Invalid configuration in {path}: {error}',
                category=IncludeWarning,
                stacklevel=3,
            )


def _tools_json(frontmatter: 'Config') -> str:
    """Serialize the tools section of a frontmatter tree."""
    if 'tools' not in frontmatter:
        return EMPTY_TOOLS

    try:
        return canonical_dumps(frontmatter['tools'])
    except (TypeError, ValueError):
        return EMPTY_TOOLS


def process_included_file(path: Path, section: str, extract_tools: bool) -> str:
    """Render a single include target.

    Args:
        path: Resolved target path.
        section: Optional markdown section name.
        extract_tools: Whether to render the tools section instead of
            the markdown body.

    Returns:
        Tools JSON in extract mode, otherwise the body (or section)
        with a single trailing newline.

    Raises:
        IncludeError: If the target is unreadable or invalid.
    """
    try:
        content = read_document(path)
    except FrontmatterError as error:
        raise IncludeError(f'failed to read included file {path}: {error}') from error

    try:
        result = extract_frontmatter(content, filename=str(path))
    except (FrontmatterError, YAMLParseError) as error:
        raise IncludeError(
            f'failed to extract frontmatter from included file {path}: {error.message}',
        ) from error

    _validate_included(result.frontmatter, path)

    if extract_tools:
        return _tools_json(result.frontmatter)

    body = result.markdown
    if section:
        try:
            body = extract_markdown_section(body, section)
        except FrontmatterError as error:
            raise IncludeError(
                f"failed to extract section '{section}' from {path}: {error}",
            ) from error

    return body.strip('\n') + '\n'


def process_includes(content: str, base_dir: 'str | PathLike[str]',
                     extract_tools: bool = False, *,
                     keep_extracted: bool = False) -> str:
    """Run a single expansion pass over a document.

    In body mode every directive is replaced by the target body and
    other lines pass through. In extract mode every directive becomes a
    JSON line with the target's tools and other lines are dropped.

    Args:
        content: Document text.
        base_dir: Directory include paths are relative to.
        extract_tools: Whether to run in extract mode.
        keep_extracted: In extract mode, keep JSON lines produced by an
            earlier pass. Only valid when `content` is the output of
            such a pass.

    Returns:
        Text after one pass.

    Raises:
        IncludeError: If a required target is missing or any target is
            invalid.
    """
    output = []

    for line in content.splitlines():
        if not (match := INCLUDE_PATTERN.match(line)):
            if not extract_tools or (keep_extracted and line.startswith('{')):
                output.append(line + '\n')
            continue

        file_path, section = _split_target(match.group('path'))

        try:
            full_path = resolve_include_path(file_path, base_dir)
        except IncludeError as error:
            if match.group('optional'):
                if not extract_tools:
                    warn(
                        f'Optional include file not found: {file_path}. '
                        'You can create this file to configure the workflow.',
                        category=IncludeNotice,
                        stacklevel=2,
                    )
                continue
            raise IncludeError(
                f"failed to resolve required include '{file_path}': {error.message}",
            ) from error

        try:
            rendered = process_included_file(full_path, section, extract_tools)
        except IncludeError as error:
            raise IncludeError(
                f"failed to process included file '{full_path}': {error.message}",
            ) from error

        output.append(rendered + '\n' if extract_tools else rendered)

    return ''.join(output)


def expand_includes(content: str, base_dir: 'str | PathLike[str]',
                    extract_tools: bool = False) -> str:
    """Expand include directives recursively.

    Args:
        content: Document text.
        base_dir: Directory include paths are relative to.
        extract_tools: Whether to extract merged tools instead of
            expanding the body.

    Returns:
        Expanded body, or merged tools as compact JSON in extract mode.

    Raises:
        IncludeError: If a required target is missing or any target is
            invalid.
        MergeConflictError: If included MCP definitions conflict.
    """
    current = content

    for depth in range(MAX_DEPTH):
        processed = process_includes(
            current,
            base_dir,
            extract_tools,
            keep_extracted=depth > 0,
        )
        settled = processed == current
        if not extract_tools:
            settled = settled or INCLUDE_TOKEN not in processed

        current = processed
        if settled:
            break
    else:
        warn(
            f'Include expansion stopped after {MAX_DEPTH} passes; '
            'the included files may reference each other',
            category=IncludeDepthWarning,
            stacklevel=2,
        )

    if extract_tools:
        return merge_tools_from_json(current)

    return current


def expand_included_tools(content: str, base_dir: 'str | PathLike[str]') -> 'Config':
    """Expand include directives and return the merged tools.

    Raises:
        IncludeError: If a required target is missing or any target is
            invalid.
        MergeConflictError: If included MCP definitions conflict.
    """
    return loads(expand_includes(content, base_dir, extract_tools=True))


def merge_tools_from_json(content: str) -> str:
    """Merge tools JSON objects, one per line, in order.

    Text that is a single JSON object is returned re-serialized. Blank,
    empty and malformed lines are skipped.

    Args:
        content: JSON text.

    Returns:
        Merged tools as compact JSON, `{}` when there is nothing.

    Raises:
        MergeConflictError: If MCP definitions conflict.
    """
    content = content.strip()

    try:
        single = loads(content)
    except JSONDecodeError:
        single = None

    if isinstance(single, dict) and single:
        return canonical_dumps(single)

    merged: 'Config' = {}
    for line in content.splitlines():
        line = line.strip()  # noqa: PLW2901
        if not line or line == EMPTY_TOOLS:
            continue

        try:
            tools = loads(line)
        except JSONDecodeError:
            continue

        if isinstance(tools, dict) and tools:
            merged = merge_tools(merged, tools)

    return canonical_dumps(merged)


def _engine_json(path: Path) -> str:
    """Serialize the engine section of an included file."""
    try:
        result = extract_frontmatter(read_document(path), filename=str(path))
    except FrontmatterError as error:
        raise IncludeError(f"failed to read included file '{path}': {error.message}") from error
    except YAMLParseError:
        return ''

    if 'engine' not in result.frontmatter:
        return ''

    try:
        return canonical_dumps(result.frontmatter['engine'])
    except (TypeError, ValueError):
        return ''


def process_includes_for_engines(content: str,
                                 base_dir: 'str | PathLike[str]') -> tuple[list[str], str]:
    """Collect engine configurations of included files in one pass.

    Section references are ignored. Directive lines are removed from the
    returned text and other lines pass through.

    Args:
        content: Document text.
        base_dir: Directory include paths are relative to.

    Returns:
        Engine JSON strings in directive order and the remaining text.

    Raises:
        IncludeError: If a required target is missing or unreadable.
    """
    engines = []
    output = []

    for line in content.splitlines():
        if not (match := INCLUDE_PATTERN.match(line)):
            output.append(line + '\n')
            continue

        file_path, _ = _split_target(match.group('path'))

        try:
            full_path = resolve_include_path(file_path, base_dir)
        except IncludeError as error:
            if match.group('optional'):
                continue
            raise IncludeError(
                f"failed to resolve required include '{file_path}': {error.message}",
            ) from error

        if engine := _engine_json(full_path):
            engines.append(engine)

    return engines, ''.join(output)


def expand_includes_for_engines(content: str,
                                base_dir: 'str | PathLike[str]') -> list[str]:
    """Collect engine configurations of all included files.

    Returns:
        Engine JSON strings in directive order.

    Raises:
        IncludeError: If a required target is missing or unreadable.
    """
    engines: list[str] = []
    current = content

    for _ in range(MAX_DEPTH):
        found, processed = process_includes_for_engines(current, base_dir)
        engines.extend(found)
        if processed == current:
            break
        current = processed

    return engines


