"""MCP server definitions declared in frontmatter tools.

The `github` tool always maps to the containerized GitHub MCP server.
Any other tool is an MCP server only when it carries an `mcp` section,
given either as a mapping or as a JSON string:

    tools:
      notion:
        mcp:
          type: stdio
          container: mcp/notion
          env:
            NOTION_TOKEN: ${{ secrets.NOTION_TOKEN }}
        allowed: [search_pages]
"""

from json import JSONDecodeError, loads
from typing import TYPE_CHECKING, Any

from mdflow.errors import CredentialsError, MCPConfigError
from mdflow.models import MCPServerConfig
from mdflow.settings import get_settings

from .credentials import get_github_token
from .merge import merge_allowed_arrays

if TYPE_CHECKING:
    from mdflow.values import Config

GITHUB_TOOL = 'github'
GITHUB_TOKEN_ENV = 'GITHUB_PERSONAL_ACCESS_TOKEN'


def _strings(value: Any) -> tuple[str, ...]:  # noqa: ANN401
    """String items of a list, other values yield nothing."""
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _allowed(tool_config: 'Config') -> tuple[str, ...]:
    """Allowed tool names in first-seen order without duplicates."""
    return tuple(merge_allowed_arrays(tool_config.get('allowed'), []))


def _string_map(value: Any) -> dict[str, str]:  # noqa: ANN401
    """String entries of a mapping, other values yield nothing."""
    if not isinstance(value, dict):
        return {}
    return {
        str(key): item
        for key, item in value.items()
        if isinstance(item, str)
    }


def github_server_config(tool_config: Any = None) -> MCPServerConfig:  # noqa: ANN401
    """Build the GitHub MCP server definition.

    The server runs in Docker. Its token comes from the credential
    provider and falls back to a placeholder that is resolved when the
    server is started.

    Args:
        tool_config: Optional `github` tool configuration honoring
            `allowed` and `docker_image_version`.

    Returns:
        Docker-backed server definition.
    """
    settings = get_settings()
    config = tool_config if isinstance(tool_config, dict) else {}

    version = config.get('docker_image_version')
    if not isinstance(version, str):
        version = settings.github_mcp_version

    try:
        token = get_github_token()
    except CredentialsError:
        token = settings.token_placeholder

    return MCPServerConfig(
        name=GITHUB_TOOL,
        type='docker',
        command='docker',
        args=(
            'run', '-i', '--rm', '-e', GITHUB_TOKEN_ENV,
            f'{settings.github_mcp_image}:{version}',
        ),
        env={GITHUB_TOKEN_ENV: token},
        allowed=_allowed(config),
    )


def _load_section(mcp_section: Any) -> 'Config':  # noqa: ANN401
    """Decode an `mcp` section given as a mapping or JSON text."""
    match mcp_section:
        case dict():
            return mcp_section
        case str():
            try:
                section = loads(mcp_section)
            except JSONDecodeError as error:
                raise MCPConfigError(f'invalid JSON in mcp configuration: {error}') from error
            if not isinstance(section, dict):
                raise MCPConfigError('invalid mcp configuration format')
            return section

    raise MCPConfigError('invalid mcp configuration format')


def parse_mcp_config(tool_name: str, mcp_section: Any,  # noqa: ANN401
                     tool_config: 'Config') -> MCPServerConfig:
    """Parse the `mcp` section of a tool.

    Args:
        tool_name: Tool name.
        mcp_section: Section as a mapping or JSON text.
        tool_config: Whole tool configuration, read for `allowed`.

    Returns:
        Server definition. A `stdio` server with a `container` runs via
        `docker run`, passing each environment variable through.

    Raises:
        MCPConfigError: If the section is malformed.
    """
    section = _load_section(mcp_section)

    if 'type' not in section:
        raise MCPConfigError("missing required 'type' field")

    server_type = section['type']
    if not isinstance(server_type, str):
        raise MCPConfigError('type must be a string')

    allowed = _allowed(tool_config)
    env = _string_map(section.get('env'))

    match server_type:
        case 'stdio' if isinstance(container := section.get('container'), str):
            args = ['run', '--rm', '-i']
            for key in env:
                args.extend(('-e', key))
            args.append(container)

            return MCPServerConfig(
                name=tool_name,
                type='stdio',
                command='docker',
                args=tuple(args),
                container=container,
                env=env,
                allowed=allowed,
            )

        case 'stdio':
            if 'command' not in section:
                raise MCPConfigError("stdio type requires 'command' or 'container' field")
            if not isinstance(command := section['command'], str):
                raise MCPConfigError('command must be a string')

            return MCPServerConfig(
                name=tool_name,
                type='stdio',
                command=command,
                args=_strings(section.get('args')),
                env=env,
                allowed=allowed,
            )

        case 'http':
            if 'url' not in section:
                raise MCPConfigError("http type requires 'url' field")
            if not isinstance(url := section['url'], str):
                raise MCPConfigError('url must be a string')

            return MCPServerConfig(
                name=tool_name,
                type='http',
                url=url,
                headers=_string_map(section.get('headers')),
                allowed=allowed,
            )

    raise MCPConfigError(f'unsupported MCP type: {server_type}')


def extract_mcp_configurations(frontmatter: 'Config',
                               server_filter: str = '') -> list[MCPServerConfig]:
    """Collect MCP server definitions from frontmatter tools.

    Args:
        frontmatter: Parsed frontmatter.
        server_filter: Case-insensitive substring a tool name must
            contain; empty keeps every server.

    Returns:
        Server definitions in tool declaration order.

    Raises:
        MCPConfigError: If the tools section is not a mapping or an
            `mcp` section is malformed.
    """
    if 'tools' not in frontmatter:
        return []

    tools = frontmatter['tools']
    if not isinstance(tools, dict):
        raise MCPConfigError('tools section is not a valid map')

    needle = server_filter.lower()
    configs = []

    for name, tool_config in tools.items():
        if name == GITHUB_TOOL:
            if needle in GITHUB_TOOL:
                configs.append(github_server_config(tool_config))
            continue

        if not isinstance(tool_config, dict) or 'mcp' not in tool_config:
            continue

        try:
            config = parse_mcp_config(name, tool_config['mcp'], tool_config)
        except MCPConfigError as error:
            raise MCPConfigError(
                f'failed to parse MCP config for {name}: {error.message}',
            ) from error

        if needle in name.lower():
            configs.append(config)

    return configs
