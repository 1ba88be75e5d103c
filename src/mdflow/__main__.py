"""Command-line utilities for mdflow workflow documents.

Commands validate frontmatter, resolve locator paths to source spans,
expand includes and list MCP servers. Failures are printed to standard
error as diagnostics and end the command with exit status 1.
"""

from contextlib import contextmanager
from json import dumps
from pathlib import Path
from typing import TYPE_CHECKING
from warnings import catch_warnings, simplefilter

from click import Choice, argument, echo, group, option
from click import Path as PathParam

from mdflow.core import (
    FrontmatterLocator,
    expand_included_tools,
    expand_includes,
    extract_frontmatter,
    extract_mcp_configurations,
    merge_tools,
    validate_included_file_frontmatter,
    validate_main_workflow_frontmatter,
    validate_mcp_config,
)
from mdflow.core.frontmatter import read_document
from mdflow.core.schema import (
    INCLUDED_FILE_SCHEMA,
    MAIN_WORKFLOW_SCHEMA,
    MCP_CONFIG_SCHEMA,
    get_schema_text,
)
from mdflow.errors import ErrorFormatter, IncludeNotice, MdflowError
from mdflow.models import FrontmatterResult

if TYPE_CHECKING:
    from collections.abc import Iterator
    from warnings import WarningMessage

SCHEMAS = {
    'main': MAIN_WORKFLOW_SCHEMA,
    'included': INCLUDED_FILE_SCHEMA,
    'mcp': MCP_CONFIG_SCHEMA,
}

DocumentPath = PathParam(
    exists=True,
    dir_okay=False,
    readable=True,
    path_type=Path,
)


@contextmanager
def _reporting() -> 'Iterator[None]':
    """Print warnings and compiler errors raised by a command.

    Raises:
        SystemExit: With status 1 when a compiler error was raised.
    """
    with catch_warnings(record=True) as caught:
        simplefilter('always')
        try:
            yield
        except MdflowError as error:
            _echo_warnings(caught)
            echo(str(error), err=True)
            raise SystemExit(1) from error

    _echo_warnings(caught)


def _echo_warnings(caught: 'list[WarningMessage]') -> None:
    """Print recorded warnings with their severity icons."""
    for item in caught:
        severity = 'info' if issubclass(item.category, IncludeNotice) else 'warning'
        echo(ErrorFormatter.format_message(str(item.message), severity), err=True)


def _load(file: Path) -> FrontmatterResult:
    """Read and split a workflow document."""
    return extract_frontmatter(read_document(file), filename=str(file))


def _tools(file: Path, result: FrontmatterResult) -> dict:
    """Merge the document's own tools with the tools of its includes."""
    tools = result.frontmatter.get('tools')
    if not isinstance(tools, dict):
        tools = {}

    return merge_tools(tools, expand_included_tools(result.markdown, file.parent))


@group(help='Command-line utilities for mdflow workflow documents.')
def cli() -> None:
    """Root CLI group for mdflow tools."""
    return None


@cli.command(
    name='validate',
    help='Validate the frontmatter of a workflow document.',
)
@option(
    '--included',
    is_flag=True,
    help='Validate as an included file instead of a main workflow.',
)
@argument('file', type=DocumentPath)
def validate(file: Path, included: bool) -> None:
    """Validate frontmatter and report the first violation.

    Args:
        file: Workflow document.
        included: Whether to use the included file schema.
    """
    with _reporting():
        result = _load(file)
        if included:
            validate_included_file_frontmatter(result.frontmatter, file)
        else:
            validate_main_workflow_frontmatter(result.frontmatter, file)

    echo(ErrorFormatter.format_message(f'{file} is valid'))


@cli.command(
    name='locate',
    help='Print the source span of a frontmatter path, e.g. "on.push".',
)
@argument('file', type=DocumentPath)
@argument('path')
def locate(file: Path, path: str) -> None:
    """Resolve a locator path to a span in the document.

    Args:
        file: Workflow document.
        path: Locator path.
    """
    with _reporting():
        result = _load(file)
        locator = FrontmatterLocator(
            '\n'.join(result.frontmatter_lines),
            filename=str(file),
        )
        span = locator.locate_span(path)

    offset = result.frontmatter_start - 1
    echo(
        f'{file}:{span.start_line + offset}:{span.start_column}'
        f'-{span.end_line + offset}:{span.end_column}',
    )


@cli.command(
    name='expand',
    help='Expand @include directives of a workflow document.',
)
@option(
    '--tools',
    is_flag=True,
    help='Print the merged tools configuration instead of the body.',
)
@argument('file', type=DocumentPath)
def expand(file: Path, tools: bool) -> None:
    """Expand includes relative to the document directory.

    Args:
        file: Workflow document.
        tools: Whether to print merged tools as JSON.
    """
    with _reporting():
        result = _load(file)
        if tools:
            output = dumps(_tools(file, result), ensure_ascii=False, indent=2)
        else:
            output = expand_includes(result.markdown, file.parent).rstrip('\n')

    echo(output)


@cli.command(
    name='mcp',
    help='List the MCP servers configured by a workflow document as JSON.',
)
@option(
    '-s', '--server',
    default='',
    help='Only list servers whose name contains this text.',
)
@argument('file', type=DocumentPath)
def list_servers(file: Path, server: str) -> None:
    """Print MCP server definitions, includes merged.

    Args:
        file: Workflow document.
        server: Server name filter.
    """
    with _reporting():
        tools = _tools(file, _load(file))
        for name, config in tools.items():
            if isinstance(config, dict) and isinstance(config.get('mcp'), dict):
                validate_mcp_config(config['mcp'], name)

        servers = extract_mcp_configurations({'tools': tools}, server)

    echo(dumps(
        [config.model_dump(mode='json') for config in servers],
        ensure_ascii=False,
        indent=2,
    ))


@cli.command(
    name='schema',
    help='Print an embedded JSON Schema.',
)
@argument('name', type=Choice(sorted(SCHEMAS)))
def print_schema(name: str) -> None:
    """Print the schema document.

    Args:
        name: Schema name.
    """
    echo(get_schema_text(SCHEMAS[name]).rstrip('\n'))


if __name__ == '__main__':
    cli()
