"""Tests for configuration value normalization."""

from datetime import date
from typing import Any

import pytest

from mdflow.values import canonical_dumps, canonical_equal, canonical_key, normalize


def test_normalize() -> None:
    """Collapse loader-specific values into JSON-compatible ones."""
    value = {
        'on': ('push', 'issues'),
        1: date(2030, 1, 31),
        'nested': {'flags': {True}},
    }

    assert normalize(value) == {
        'on': ['push', 'issues'],
        '1': '2030-01-31',
        'nested': {'flags': [True]},
    }


def test_normalize_unsupported() -> None:
    """Reject objects without a JSON counterpart."""
    with pytest.raises(TypeError, match=r'unsupported type$'):
        normalize({'value': object()})


def test_canonical_dumps() -> None:
    """Serialize compactly with sorted keys."""
    assert canonical_dumps({'b': [1, 2], 'a': 'ü'}) == '{"a":"ü","b":[1,2]}'


@pytest.mark.parametrize('left, right, expected', (
    pytest.param({'a': 1, 'b': 2}, {'b': 2, 'a': 1}, True, id='key order ignored'),
    pytest.param(['a', 'b'], ['b', 'a'], False, id='item order kept'),
    pytest.param({'a': 1}, {'a': '1'}, False, id='types differ'),
    pytest.param(object(), object(), False, id='unsupported values'),
))
def test_canonical_equal(left: Any, right: Any, expected: bool) -> None:
    """Compare values structurally."""
    assert canonical_equal(left, right) is expected


@pytest.mark.parametrize('key, expected', (
    pytest.param('on', 'on', id='string'),
    pytest.param(1, '1', id='integer'),
    pytest.param(True, 'true', id='boolean'),
    pytest.param(None, 'null', id='null'),
    pytest.param(date(2024, 1, 1), '2024-01-01', id='date'),
))
def test_canonical_key(key: Any, expected: str) -> None:
    """Spell mapping keys as the JSON encoder does."""
    assert canonical_key(key) == expected
