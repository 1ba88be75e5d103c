"""Tests for error formatting."""

from os import linesep

import pytest
import yaml

from mdflow.errors import ErrorContext, ErrorFormatter, MergeConflictError, YAMLParseError
from mdflow.models import Diagnostic


def test_format_diagnostic_centered_context() -> None:
    """Center context lines on the diagnostic line when no start is given."""
    diagnostic = Diagnostic(
        file='workflow.md',
        line=10,
        column=3,
        message='bad value',
        context=('a: 1', 'b: 2', 'c: 3'),
        hint='fix it',
    )

    assert ErrorFormatter.format_diagnostic(diagnostic).split(linesep) == [
        'workflow.md:10:3: error: bad value',
        ' 9 | a: 1',
        '10 | b: 2',
        '       ^',
        '11 | c: 3',
        '',
        'hint: fix it',
        '',
    ]


def test_format_diagnostic_without_context() -> None:
    """Render a single line without file, context or hint."""
    diagnostic = Diagnostic(file='', severity='warning', message='careful')

    assert ErrorFormatter.format_diagnostic(diagnostic) == f'warning: careful{linesep}'


@pytest.mark.parametrize('severity, expected', (
    pytest.param('info', 'ℹ done', id='info'),
    pytest.param('warning', '⚠ done', id='warning'),
    pytest.param('error', '✗ done', id='error'),
    pytest.param('debug', 'done', id='unknown severity'),
))
def test_format_message(severity: str, expected: str) -> None:
    """Prefix console messages with a severity icon."""
    assert ErrorFormatter.format_message('done', severity) == expected


def test_yaml_parse_error_offset() -> None:
    """Translate parser positions into whole-file positions."""
    with pytest.raises(yaml.YAMLError) as info:
        yaml.safe_load('key: [value')

    error = YAMLParseError.from_yaml_error(info.value, line_offset=1, filename='a.md')

    assert error.message.startswith('failed to parse YAML')
    assert error.context is not None
    assert error.context['filename'] == 'a.md'
    assert error.context['line_num'] == info.value.problem_mark.line + 2
    lines = str(error).split(linesep)
    assert lines[1] == f'    at a.md:{error.context["line_num"]}:{error.context["column_num"]}'
    assert lines[-1].strip() == '^'


@pytest.mark.parametrize('context, expected', (
    pytest.param(
        ErrorContext(filename='a.md', line_num=3, column_num=7, path='on.push'),
        '    at a.md:3:7 (on.push)',
        id='full position',
    ),
    pytest.param(ErrorContext(line_num=3), '    at <string>:3', id='line only'),
    pytest.param(ErrorContext(column_num=7), '    at <string>', id='column without line'),
))
def test_format_position(context: ErrorContext, expected: str) -> None:
    """Append a compiler-style position to the message."""
    assert ErrorFormatter.format('boom', context).split(linesep) == ['boom', expected]


def test_format_without_context() -> None:
    """Keep messages without a context unchanged."""
    assert ErrorFormatter.format('boom') == 'boom'


def test_merge_conflict_message() -> None:
    """Name the tool, the key and both values."""
    error = MergeConflictError('notion', 'mcp.command', 'node', 'deno')

    assert str(error) == (
        "MCP tool conflict for 'notion': conflicting values "
        "for 'mcp.command': existing='node', new='deno'"
    )
