"""Core type definitions for configuration trees.

This module defines the value types shared by the extractor, the schema
validator and the tool merger. Frontmatter decoded by a YAML loader may
contain native containers and scalars (dates, tuples, non-string keys)
that a JSON schema engine does not understand, so trees are normalized
into canonical JSON-compatible values before validation or comparison.
"""

from datetime import date, datetime
from json import dumps, loads
from typing import Any

#: Scalars that can appear in a canonical configuration tree.
type Scalar = str | int | float | bool

#: A canonical configuration value: JSON-compatible and fully resolved.
type Value = Scalar | list['Value'] | dict[str, 'Value'] | None

#: A configuration mapping keyed by name (frontmatter, tools section).
type Config = dict[str, Value]

#: Any Python object produced by a YAML loader prior to normalization.
type RuntimeValue = Any

SEQUENCES = (list, tuple, set)


def _default(value: RuntimeValue) -> RuntimeValue:
    """Encode values the JSON encoder does not support natively.

    Args:
        value: Object rejected by the JSON encoder.

    Returns:
        A JSON-compatible substitute.

    Raises:
        TypeError: If the value type is unsupported.
    """
    if isinstance(value, (date, datetime)):
        return value.isoformat()

    if isinstance(value, SEQUENCES):
        return list(value)

    raise TypeError(f'{value!r} has unsupported type')


def canonical_key(key: RuntimeValue) -> str:
    """Spell a mapping key the way the JSON encoder would.

    Example:
        >>> [canonical_key(key) for key in ('on', 1, True, None, date(2024, 1, 1))]
        ['on', '1', 'true', 'null', '2024-01-01']
    """
    match key:
        case str():
            return key
        case date():
            return key.isoformat()
        case bool() | int() | float() | None:
            return dumps(key)

    return str(key)


def canonical_dumps(value: RuntimeValue) -> str:
    """Serialize a value into canonical ordering-independent JSON text.

    Args:
        value: Runtime value to serialize.

    Returns:
        Compact JSON text with sorted mapping keys.
    """
    return dumps(
        value,
        default=_default,
        ensure_ascii=False,
        separators=(',', ':'),
        sort_keys=True,
    )


def normalize(value: RuntimeValue) -> Value:
    """Normalize a runtime value into a canonical configuration `Value`.

    The value is round-tripped through a JSON encode/decode cycle so that
    loader-specific containers collapse into plain lists and dicts, and
    mapping keys become strings. Mapping order is preserved.

    Args:
        value: Runtime value to normalize.

    Returns:
        A JSON-compatible value.

    Raises:
        TypeError: If the value contains unsupported objects.
    """
    return loads(dumps(value, default=_default, ensure_ascii=False))


def canonical_equal(left: RuntimeValue, right: RuntimeValue) -> bool:
    """Compare two values structurally, ignoring mapping key order.

    Args:
        left: First value.
        right: Second value.

    Returns:
        True if both values serialize to the same canonical JSON.
    """
    try:
        return canonical_dumps(left) == canonical_dumps(right)
    except TypeError:
        return False
