"""Deep merge of tool configuration trees.

Included files contribute `tools` sections that are merged, in directive
order, into one configuration. The rules, applied key by key:

- two arrays are unioned, keeping the first occurrence of each string;
- two MCP server definitions are merged with conflict detection: every
  shared key must be structurally equal, except `allowed` (unioned) and
  a nested `mcp` section (merged recursively by the same rule);
- two plain mappings that both carry `allowed` union that array and
  take every other key from the newer mapping;
- two other mappings are merged recursively;
- anything else is replaced by the newer value.

Inputs are never mutated; merged containers are fresh copies.
"""

from typing import TYPE_CHECKING

from mdflow.errors import MergeConflictError
from mdflow.values import canonical_equal

if TYPE_CHECKING:
    from mdflow.values import Config, RuntimeValue

#: Server types that identify an MCP definition.
MCP_TYPES = frozenset({'stdio', 'http'})

ALLOWED_KEY = 'allowed'
MCP_KEY = 'mcp'


def is_mcp_tool(value: 'RuntimeValue') -> bool:
    """Whether a tool configuration is an MCP server definition.

    The `type` field is looked up directly and then one level down under
    an `mcp` section.

    Args:
        value: Tool configuration.

    Returns:
        True if the type is one of the MCP server types.
    """
    if not isinstance(value, dict):
        return False

    server_type = value.get('type')
    if server_type is None and isinstance(section := value.get(MCP_KEY), dict):
        server_type = section.get('type')

    return isinstance(server_type, str) and server_type in MCP_TYPES


def merge_allowed_arrays(existing: 'RuntimeValue',
                         new: 'RuntimeValue') -> list[str]:
    """Union two arrays of strings in first-seen order.

    Non-string items and non-list arguments are ignored.

    Args:
        existing: Array already merged.
        new: Incoming array.

    Returns:
        Deduplicated strings of both arrays.
    """
    result: list[str] = []
    for items in (existing, new):
        if not isinstance(items, list):
            continue
        for item in items:
            if isinstance(item, str) and item not in result:
                result.append(item)

    return result


def merge_mcp_tools(existing: 'Config', new: 'Config', *,
                    tool: str = '', prefix: str = '') -> 'Config':
    """Merge two MCP server definitions of the same tool.

    Args:
        existing: Definition already merged.
        new: Incoming definition.
        tool: Tool name reported on conflict.
        prefix: Dotted path of the merged section, for nested `mcp`.

    Returns:
        Merged definition.

    Raises:
        MergeConflictError: If a shared key holds different values.
    """
    result = dict(existing)

    for key, value in new.items():
        if key not in result:
            result[key] = value
            continue

        current = result[key]
        if key == ALLOWED_KEY and isinstance(current, list) and isinstance(value, list):
            result[key] = merge_allowed_arrays(current, value)
            continue

        if key == MCP_KEY and isinstance(current, dict) and isinstance(value, dict):
            result[key] = merge_mcp_tools(current, value, tool=tool, prefix=f'{prefix}{key}.')
            continue

        if not canonical_equal(current, value):
            raise MergeConflictError(tool, f'{prefix}{key}', current, value)

    return result


def merge_tools(base: 'Config', additional: 'Config') -> 'Config':
    """Deep-merge two tool configurations.

    Args:
        base: Configuration merged so far.
        additional: Configuration of the next included file.

    Returns:
        Merged configuration; `additional` wins on plain conflicts.

    Raises:
        MergeConflictError: If two MCP definitions of a tool disagree.
    """
    result = dict(base)

    for key, value in additional.items():
        if key not in result:
            result[key] = value
            continue

        current = result[key]
        match current, value:
            case list(), list():
                result[key] = merge_allowed_arrays(current, value)

            case dict(), dict() if is_mcp_tool(current) and is_mcp_tool(value):
                result[key] = merge_mcp_tools(current, value, tool=key)

            case dict(), dict() if ALLOWED_KEY in current and ALLOWED_KEY in value:
                merged = {**current, **value}
                merged[ALLOWED_KEY] = merge_allowed_arrays(
                    current[ALLOWED_KEY],
                    value[ALLOWED_KEY],
                )
                result[key] = merged

            case dict(), dict():
                result[key] = merge_tools(current, value)

            case _:
                result[key] = value

    return result
