"""Tests for tool configuration merging."""

from copy import deepcopy
from typing import Any

import pytest

from mdflow.core.merge import is_mcp_tool, merge_allowed_arrays, merge_mcp_tools, merge_tools
from mdflow.errors import MergeConflictError


@pytest.mark.parametrize('base, additional, expected', (
    pytest.param(
        {'bash': ['ls', 'cat']},
        {'bash': ['cat', 'grep']},
        {'bash': ['ls', 'cat', 'grep']},
        id='arrays are unioned',
    ),
    pytest.param(
        {'edit': {'mode': 'safe'}},
        {'web-fetch': {}},
        {'edit': {'mode': 'safe'}, 'web-fetch': {}},
        id='new keys are added',
    ),
    pytest.param(
        {'edit': {'a': 1, 'nested': {'x': 1}}},
        {'edit': {'b': 2, 'nested': {'y': 2}}},
        {'edit': {'a': 1, 'b': 2, 'nested': {'x': 1, 'y': 2}}},
        id='maps are merged recursively',
    ),
    pytest.param(
        {'github': {'allowed': ['get_issue'], 'read_only': True}},
        {'github': {'allowed': ['create_issue', 'get_issue'], 'read_only': False}},
        {'github': {'allowed': ['get_issue', 'create_issue'], 'read_only': False}},
        id='allowed union with shallow overwrite',
    ),
    pytest.param(
        {'bash': ['ls']},
        {'bash': None},
        {'bash': None},
        id='type mismatch overwrites',
    ),
    pytest.param(
        {'web-search': {}},
        {'web-search': ['query']},
        {'web-search': ['query']},
        id='map replaced by array',
    ),
))
def test_merge_tools(base: dict[str, Any], additional: dict[str, Any],
                     expected: dict[str, Any]) -> None:
    """Merge tool configurations key by key."""
    assert merge_tools(base, additional) == expected


def test_merge_tools_does_not_mutate_inputs() -> None:
    """Leave both inputs untouched."""
    base = {'bash': ['ls'], 'edit': {'a': 1}}
    additional = {'bash': ['cat'], 'edit': {'b': 2}}
    base_copy, additional_copy = deepcopy(base), deepcopy(additional)

    merge_tools(base, additional)

    assert base == base_copy
    assert additional == additional_copy


def test_merge_tools_is_idempotent() -> None:
    """Merging a configuration with itself yields the same configuration."""
    tools = {
        'bash': ['ls', 'cat'],
        'github': {'allowed': ['get_issue']},
        'notion': {'mcp': {'type': 'stdio', 'command': 'node'}, 'allowed': ['search']},
    }

    assert merge_tools(tools, tools) == tools


@pytest.mark.parametrize('value, expected', (
    pytest.param({'type': 'stdio', 'command': 'node'}, True, id='direct stdio'),
    pytest.param({'type': 'http', 'url': 'https://x'}, True, id='direct http'),
    pytest.param({'mcp': {'type': 'stdio'}}, True, id='nested under mcp'),
    pytest.param({'mcp': {'type': 'docker'}}, False, id='unsupported type'),
    pytest.param({'mcp': 'not a map'}, False, id='mcp not a map'),
    pytest.param({'allowed': ['x']}, False, id='plain tool'),
    pytest.param(['stdio'], False, id='not a map'),
))
def test_is_mcp_tool(value: Any, expected: bool) -> None:
    """Recognize MCP server definitions by their type."""
    assert is_mcp_tool(value) is expected


def test_merge_allowed_arrays() -> None:
    """Keep first occurrences and drop non-string items."""
    assert merge_allowed_arrays(['a', 'b', 1], ['b', 'c', None, 'a']) == ['a', 'b', 'c']
    assert merge_allowed_arrays(None, ['a']) == ['a']


def test_mcp_tools_merge_allowed() -> None:
    """Union `allowed` of MCP definitions agreeing on everything else."""
    base = {'notion': {'mcp': {'type': 'stdio', 'command': 'node'}, 'allowed': ['search']}}
    additional = {'notion': {'mcp': {'type': 'stdio', 'command': 'node'}, 'allowed': ['create']}}

    assert merge_tools(base, additional) == {
        'notion': {'mcp': {'type': 'stdio', 'command': 'node'}, 'allowed': ['search', 'create']},
    }


def test_mcp_tools_conflict() -> None:
    """Fail on MCP definitions disagreeing on a shared key."""
    base = {'notion': {'mcp': {'type': 'stdio', 'command': 'node'}}}
    additional = {'notion': {'mcp': {'type': 'stdio', 'command': 'python'}}}

    with pytest.raises(MergeConflictError, match=r"^MCP tool conflict for 'notion'") as info:
        merge_tools(base, additional)

    assert info.value.tool == 'notion'
    assert info.value.key == 'mcp.command'
    assert (info.value.existing, info.value.new) == ('node', 'python')


def test_mcp_tools_structural_equality() -> None:
    """Compare MCP values structurally, ignoring mapping order."""
    existing = {'type': 'stdio', 'command': 'node', 'env': {'A': '1', 'B': '2'}}
    new = {'env': {'B': '2', 'A': '1'}, 'command': 'node', 'type': 'stdio', 'args': ['-y']}

    assert merge_mcp_tools(existing, new, tool='notion') == {
        'type': 'stdio',
        'command': 'node',
        'env': {'A': '1', 'B': '2'},
        'args': ['-y'],
    }


def test_mcp_tools_allowed_must_be_arrays() -> None:
    """Compare `allowed` by value when it is not an array on both sides."""
    with pytest.raises(MergeConflictError, match=r"for 'allowed'"):
        merge_mcp_tools(
            {'type': 'http', 'allowed': 'all'},
            {'type': 'http', 'allowed': ['search']},
            tool='search',
        )
