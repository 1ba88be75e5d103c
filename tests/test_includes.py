"""Tests for include directive expansion."""

from typing import TYPE_CHECKING

import pytest

from mdflow.core.includes import (
    MAX_DEPTH,
    expand_included_tools,
    expand_includes,
    expand_includes_for_engines,
    is_under_workflows_directory,
    merge_tools_from_json,
    process_includes,
    resolve_include_path,
)
from mdflow.errors import (
    IncludeDepthWarning,
    IncludeError,
    IncludeNotice,
    IncludeWarning,
    MergeConflictError,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from pyfakefs.fake_filesystem import FakeFilesystem

SHARED_TOOLS = '''\
---
tools:
  bash: [ls]
  github:
    allowed: [get_issue]
---

# Shared

Shared body.
'''

EXTRA_TOOLS = '''\
---
tools:
  bash: [cat, ls]
  github:
    allowed: [create_issue]
  edit: {}
---
Extra body.
'''

SECTIONS = '''\
# Guide

## Setup

Install.

## Usage

Run it.
'''


@pytest.fixture
def repo(write_document: 'Callable[..., Path]') -> str:
    """Create a small document tree and return its root."""
    write_document('/repo/shared/tools.md', SHARED_TOOLS)
    write_document('/repo/shared/extra.md', EXTRA_TOOLS)
    write_document('/repo/shared/guide.md', SECTIONS)
    write_document('/repo/shared/outer.md', 'Outer.\n@include shared/guide.md#Usage\n')
    return '/repo'


def test_expand_body(repo: str) -> None:
    """Replace directives with the body of the target."""
    content = '# Main\n@include shared/tools.md\nDone.\n'

    assert expand_includes(content, repo) == '# Main\n# Shared\n\nShared body.\nDone.\n'


def test_expand_section(repo: str) -> None:
    """Replace a directive with a single section of the target."""
    content = '@include shared/guide.md#Setup\n'

    assert expand_includes(content, repo) == '## Setup\n\nInstall.\n'


def test_expand_nested(repo: str) -> None:
    """Expand directives brought in by included files."""
    content = '@include shared/outer.md\n'

    assert expand_includes(content, repo) == 'Outer.\n## Usage\n\nRun it.\n'


def test_missing_section(repo: str) -> None:
    """Fail when the referenced section does not exist."""
    with pytest.raises(IncludeError, match=r"section 'Deploy'"):
        expand_includes('@include shared/guide.md#Deploy\n', repo)


def test_optional_include_missing(repo: str) -> None:
    """Skip a missing optional include with an informational note."""
    content = 'Before.\n@include? local/missing.md\nAfter.\n'

    with pytest.warns(IncludeNotice, match=r'^Optional include file not found: local/missing.md\.'):
        result = expand_includes(content, repo)

    assert result == 'Before.\nAfter.\n'


def test_required_include_missing(repo: str) -> None:
    """Fail on a missing required include, naming the path."""
    with pytest.raises(
        IncludeError,
        match=r"^failed to resolve required include 'missing.md': file not found: /repo/missing.md",
    ):
        expand_includes('@include missing.md\n', repo)


def test_include_depth_cap(write_document: 'Callable[..., Path]') -> None:
    """Stop a growing self-reference at the depth cap."""
    write_document('/repo/loop.md', 'x\n@include loop.md\n')

    with pytest.warns(IncludeDepthWarning, match=r'stopped after 10 passes'):
        result = expand_includes('@include loop.md\n', '/repo')

    assert result.count('x\n') == MAX_DEPTH
    assert result.endswith('@include loop.md\n')


def test_stable_self_reference(write_document: 'Callable[..., Path]') -> None:
    """Stop without a warning once a pass changes nothing."""
    write_document('/repo/same.md', '@include same.md\n')

    assert expand_includes('@include same.md\n', '/repo') == '@include same.md\n'


def test_strict_validation_in_workflows(write_document: 'Callable[..., Path]') -> None:
    """Fail on invalid frontmatter in files under the workflows directory."""
    write_document('/repo/.github/workflows/shared/bad.md', '---\non: push\n---\nBody\n')

    with pytest.raises(
        IncludeError,
        match=r"^failed to process included file '.*bad\.md': invalid frontmatter in included file",
    ):
        expand_includes('@include shared/bad.md\n', '/repo/.github/workflows')


def test_permissive_validation_elsewhere(write_document: 'Callable[..., Path]') -> None:
    """Warn about unexpected keys in files outside the workflows directory."""
    write_document('/docs/shared.md', '---\ntitle: Shared\ntools:\n  bash: [ls]\n---\nBody\n')

    message = r'^Ignoring unexpected frontmatter fields in .*shared\.md: title$'
    with pytest.warns(IncludeWarning, match=message):
        result = expand_includes('@include shared.md\n', '/docs')

    assert result == 'Body\n'


def test_permissive_invalid_subset(write_document: 'Callable[..., Path]') -> None:
    """Warn about an invalid tools or engine subset outside the workflows directory."""
    write_document('/docs/shared.md', '---\nname: x\nengine: gpt\n---\nBody\n')

    with pytest.warns(IncludeWarning) as records:
        expand_includes('@include shared.md\n', '/docs')

    messages = [str(record.message) for record in records]
    assert any(message.startswith('Invalid configuration in ') for message in messages)


def test_extract_tools(repo: str) -> None:
    """Merge tools of all includes in directive order."""
    content = '@include shared/tools.md\nSome text.\n@include shared/extra.md\n'

    assert expand_included_tools(content, repo) == {
        'bash': ['ls', 'cat'],
        'github': {'allowed': ['get_issue', 'create_issue']},
        'edit': {},
    }


def test_extract_tools_without_includes(repo: str) -> None:
    """Yield an empty configuration when nothing is included."""
    assert expand_includes('Just text.\n', repo, extract_tools=True) == '{}'


def test_extract_tools_ignores_body_json(repo: str) -> None:
    """Merge only tools of included files, not JSON written in the body."""
    content = '{"rm": {"allowed": ["rm"]}}\n@include shared/tools.md\n{"edit": {}}\n'

    assert expand_included_tools(content, repo) == {
        'bash': ['ls'],
        'github': {'allowed': ['get_issue']},
    }
    assert process_includes(content, repo, extract_tools=True) == (
        '{"bash":["ls"],"github":{"allowed":["get_issue"]}}\n'
    )


def test_extract_tools_skips_missing_optional(repo: str) -> None:
    """Skip missing optional includes quietly in extract mode."""
    content = '@include? missing.md\n@include shared/tools.md\n'

    assert expand_included_tools(content, repo) == {
        'bash': ['ls'],
        'github': {'allowed': ['get_issue']},
    }


def test_extract_tools_conflict(write_document: 'Callable[..., Path]') -> None:
    """Fail when included MCP definitions disagree."""
    template = '---\ntools:\n  notion:\n    mcp: {{type: stdio, command: {}}}\n---\n'
    write_document('/repo/a.md', template.format('node'))
    write_document('/repo/b.md', template.format('deno'))

    with pytest.raises(MergeConflictError, match=r"^MCP tool conflict for 'notion'"):
        expand_includes('@include a.md\n@include b.md\n', '/repo', extract_tools=True)


def test_process_includes_single_pass(repo: str) -> None:
    """Expand only the directives present in the input."""
    content = '@include shared/outer.md\n'

    assert process_includes(content, repo) == 'Outer.\n@include shared/guide.md#Usage\n'
    assert process_includes(content, repo, extract_tools=True) == '{}\n'


@pytest.mark.parametrize('content, expected', (
    pytest.param('{"bash": ["ls"]}', '{"bash":["ls"]}', id='single object'),
    pytest.param(
        '{"bash": ["ls"]}\n{}\n\nnot json\n{"bash": ["cat"]}\n',
        '{"bash":["ls","cat"]}',
        id='one object per line',
    ),
    pytest.param('', '{}', id='empty'),
    pytest.param('{}\n{}\n', '{}', id='only empty objects'),
))
def test_merge_tools_from_json(content: str, expected: str) -> None:
    """Merge JSON tool objects line by line."""
    assert merge_tools_from_json(content) == expected


def test_expand_includes_for_engines(write_document: 'Callable[..., Path]') -> None:
    """Collect engine configurations in directive order."""
    write_document('/repo/a.md', '---\nengine: claude\n---\n')
    write_document('/repo/b.md', '---\nengine:\n  id: codex\n  model: o3\n---\n')
    write_document('/repo/c.md', '---\ntools: {}\n---\n')

    content = '@include a.md\n@include c.md\n@include? none.md\n@include b.md#Section\n'

    assert expand_includes_for_engines(content, '/repo') == [
        '"claude"',
        '{"id":"codex","model":"o3"}',
    ]


def test_expand_includes_for_engines_missing(workspace: 'FakeFilesystem') -> None:
    """Fail on a missing required include when collecting engines."""
    with pytest.raises(IncludeError, match=r"^failed to resolve required include 'none.md'"):
        expand_includes_for_engines('@include none.md\n', '/repo')


@pytest.mark.parametrize('path, expected', (
    pytest.param('.github/workflows/shared/a.md', True, id='relative workflows path'),
    pytest.param('/repo/.github/workflows/a.md', True, id='absolute workflows path'),
    pytest.param('/repo/docs/a.md', False, id='elsewhere'),
    pytest.param('/repo/.github/a.md', False, id='github but not workflows'),
))
def test_is_under_workflows_directory(path: str, expected: bool) -> None:
    """Detect files that require strict validation."""
    assert is_under_workflows_directory(path) is expected


def test_resolve_include_path(repo: str) -> None:
    """Resolve paths relative to the base directory."""
    assert resolve_include_path('shared/tools.md', repo).as_posix() == '/repo/shared/tools.md'

    with pytest.raises(IncludeError, match=r'^file not found: /repo/nothing.md'):
        resolve_include_path('nothing.md', repo)
