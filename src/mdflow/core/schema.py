"""Frontmatter validation against embedded JSON schemas.

Three schemas ship with the package: main workflow frontmatter,
included file frontmatter and MCP server configuration. Each is compiled
once per process into a `jsonschema` validator.

Validation failures are reported as `SchemaViolationError` with one
`ValidationCause` per violation. Messages follow a compact style:

    additional properties 'invalid_key' not allowed
    missing property 'id'
    value must be one of 'claude', 'codex'
    got string, want integer

When a source file is supplied, the first cause is mapped back to a
line and column in that file and rendered as a compiler diagnostic.

Rules that the schemas cannot express are checked afterwards by
`validate_engine_rules`.
"""

from functools import cache
from importlib.resources import files
from json import JSONDecodeError, dumps, loads
from os import linesep
from pathlib import Path
from re import search
from typing import TYPE_CHECKING, Any

from jsonschema.exceptions import SchemaError
from jsonschema.validators import Draft7Validator, validator_for

from mdflow.errors import EngineRuleError, SchemaCompileError, SchemaViolationError
from mdflow.models import Diagnostic, ValidationCause
from mdflow.values import normalize

from .engines import get_engine_registry
from .pointer import locate_json_path_with_additional_properties

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from os import PathLike

    from jsonschema.exceptions import ValidationError
    from jsonschema.protocols import Validator

MAIN_WORKFLOW_SCHEMA = 'main_workflow_schema.json'
INCLUDED_FILE_SCHEMA = 'included_file_schema.json'
MCP_CONFIG_SCHEMA = 'mcp_config_schema.json'

MAIN_WORKFLOW_CONTEXT = 'main workflow file'
INCLUDED_FILE_CONTEXT = 'included file'

REPORT_BANNER = 'jsonschema validation failed'
ROOT_CAUSE_PREFIX = "- at '': "
GENERIC_MESSAGE = 'schema validation failed'

DEFAULT_HINT = 'Check the YAML frontmatter against the schema requirements'

#: Context shown when the frontmatter block cannot be read from the file.
FALLBACK_CONTEXT = ('---', '# (frontmatter validation failed)', '---')

#: JSON type names keyed by Python type, `bool` before `int`.
JSON_TYPES = (
    (bool, 'boolean'),
    (int, 'integer'),
    (float, 'number'),
    (str, 'string'),
    (list, 'array'),
    (dict, 'object'),
    (type(None), 'null'),
)


@cache
def get_schema_text(name: str) -> str:
    """Read an embedded schema document.

    Args:
        name: File name inside the `mdflow.schemas` package.

    Returns:
        Schema JSON text.
    """
    return files('mdflow.schemas').joinpath(name).read_text(encoding='utf-8')


@cache
def compile_schema(schema_text: str, context: str) -> 'Validator':
    """Compile schema text into a validator.

    Compiled validators are cached by schema text.

    Args:
        schema_text: JSON schema document.
        context: Human-readable name of the validated object.

    Returns:
        Validator for the schema's declared draft (Draft 7 by default).

    Raises:
        SchemaCompileError: If the text is not JSON or not a valid schema.
    """
    try:
        schema = loads(schema_text)
    except JSONDecodeError as error:
        raise SchemaCompileError(
            f'schema validation error for {context}: '
            f'failed to parse schema JSON: {error}',
        ) from error

    cls = validator_for(schema, default=Draft7Validator)
    try:
        cls.check_schema(schema)
    except SchemaError as error:
        raise SchemaCompileError(
            f'schema validation error for {context}: {error.message}',
        ) from error

    return cls(schema)


def _json_type(value: Any) -> str:  # noqa: ANN401
    """JSON type name of a normalized value."""
    for python_type, name in JSON_TYPES:
        if isinstance(value, python_type):
            return name
    return type(value).__name__


def _quote(value: Any) -> str:  # noqa: ANN401
    """Render a value for a validator message."""
    if isinstance(value, str):
        return f"'{value}'"
    return dumps(value)


def _pointer(path: 'Iterable[Any]') -> str:
    """Build a JSON pointer from an instance path."""
    return ''.join(
        '/' + str(part).replace('~', '~0').replace('/', '~1')
        for part in path
    )


def _extra_properties(instance: Any, schema: dict[str, Any]) -> list[str]:  # noqa: ANN401
    """Properties of an object not covered by `properties`."""
    if not isinstance(instance, dict):
        return []

    properties = schema.get('properties', {})
    patterns = schema.get('patternProperties', {})

    return [
        name
        for name in instance
        if name not in properties
        and not any(search(pattern, name) for pattern in patterns)
    ]


def _describe(error: 'ValidationError') -> str:
    """Translate a jsonschema error into a compact message."""
    match error.validator:
        case 'additionalProperties':
            extras = _extra_properties(error.instance, error.schema)
            if extras:
                names = ', '.join(_quote(name) for name in extras)
                return f'additional properties {names} not allowed'

        case 'required':
            instance = error.instance if isinstance(error.instance, dict) else {}
            missing = [name for name in error.validator_value if name not in instance]
            if len(missing) == 1:
                return f'missing property {_quote(missing[0])}'
            if missing:
                return f"missing properties {', '.join(map(_quote, missing))}"

        case 'enum':
            options = ', '.join(_quote(option) for option in error.validator_value)
            return f'value must be one of {options}'

        case 'const':
            return f'value must be {_quote(error.validator_value)}'

        case 'type':
            expected = error.validator_value
            if isinstance(expected, list):
                expected = ' or '.join(expected)
            return f'got {_json_type(error.instance)}, want {expected}'

    return error.message


def _is_type_mismatch(error: 'ValidationError') -> bool:
    """Whether an error rejects the whole instance by its type."""
    return error.validator == 'type' and not error.relative_path


def _leaf(error: 'ValidationError') -> 'ValidationError':
    """Descend into `oneOf`/`anyOf` alternatives to the most useful error.

    Alternatives that reject the instance type outright are skipped when
    another alternative accepts it; among the remaining errors the
    deepest non-type error wins, the first one on ties.
    """
    while error.context:
        branches: dict[Any, list[ValidationError]] = {}
        for item in error.context:
            branch = item.relative_schema_path[0] if item.relative_schema_path else None
            branches.setdefault(branch, []).append(item)

        viable = [
            items
            for items in branches.values()
            if not any(_is_type_mismatch(item) for item in items)
        ] or list(branches.values())

        pool = [item for items in viable for item in items]
        candidates = [item for item in pool if item.validator != 'type'] or pool
        error = max(candidates, key=lambda item: len(item.absolute_path))

    return error


def collect_causes(validator: 'Validator',
                   instance: Any) -> tuple[ValidationCause, ...]:  # noqa: ANN401
    """Validate an instance and collect violations in validator order.

    Args:
        validator: Compiled validator.
        instance: Normalized instance.

    Returns:
        One cause per top-level violation.
    """
    causes: list[ValidationCause] = []
    for error in validator.iter_errors(instance):
        leaf = _leaf(error)
        cause = ValidationCause(
            pointer=_pointer(leaf.absolute_path),
            message=_describe(leaf),
        )
        if cause not in causes:
            causes.append(cause)
    return tuple(causes)


def format_report(schema: dict[str, Any], causes: 'Sequence[ValidationCause]') -> str:
    """Render causes as a multi-line validator report."""
    schema_id = schema.get('$id', 'schema.json')
    lines = [f"{REPORT_BANNER} with '{schema_id}#'"]
    lines.extend(f'- {cause}' for cause in causes)
    return linesep.join(lines)


def validate_with_schema(frontmatter: dict[str, Any] | None,
                         schema_text: str, context: str) -> None:
    """Validate a configuration tree against schema text.

    The tree is normalized into JSON-compatible values first; a missing
    tree is validated as an empty object.

    Args:
        frontmatter: Configuration tree.
        schema_text: JSON schema document.
        context: Human-readable name of the validated object.

    Raises:
        SchemaCompileError: If the schema cannot be compiled.
        SchemaViolationError: If the tree violates the schema.
    """
    validator = compile_schema(schema_text, context)

    try:
        instance = normalize(frontmatter) if frontmatter else {}
    except (TypeError, ValueError) as error:
        raise SchemaViolationError(
            f'schema validation error for {context}: '
            f'failed to normalize frontmatter: {error}',
        ) from error

    if causes := collect_causes(validator, instance):
        raise SchemaViolationError(
            format_report(validator.schema, causes),
            causes=causes,
        )


def clean_schema_error_message(message: str) -> str:
    """Remove validator boilerplate from a report.

    The banner line and `- at '': ` prefixes of root-level causes are
    dropped.

    Returns:
        Cleaned message, or `schema validation failed` when nothing
        meaningful remains.
    """
    lines = []
    for line in message.splitlines():
        line = line.strip()  # noqa: PLW2901
        if line.startswith(REPORT_BANNER):
            continue
        line = line.removeprefix(ROOT_CAUSE_PREFIX)  # noqa: PLW2901
        if line:
            lines.append(line)

    return linesep.join(lines) or GENERIC_MESSAGE


def find_frontmatter_bounds(lines: 'Sequence[str]') -> tuple[int, int, str]:
    """Find the frontmatter fences of a file.

    Blank and comment lines may precede the opening fence; any other
    line before it means the file has no frontmatter.

    Args:
        lines: File lines.

    Returns:
        0-based indices of the opening and closing fences and the text
        between them, or `(-1, -1, '')` when there is no complete block.
    """
    start = -1
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped == '---':
            start = index
            break
        if stripped and not stripped.startswith('#'):
            return -1, -1, ''

    if start < 0:
        return -1, -1, ''

    for index in range(start + 1, len(lines)):
        if lines[index].strip() == '---':
            return start, index, '\n'.join(lines[start + 1:index])

    return -1, -1, ''


def _hint(cause: ValidationCause) -> str:
    """Remediation hint for a cause."""
    if cause.segments[:1] == ('engine',):
        engines = ', '.join(get_engine_registry().ids)
        return f'{DEFAULT_HINT}. Valid engines are: {engines}'
    return DEFAULT_HINT


def validate_with_schema_and_location(frontmatter: dict[str, Any] | None,
                                      schema_text: str, context: str,
                                      file_path: 'str | PathLike[str]') -> None:
    """Validate a configuration tree and locate failures in a file.

    Args:
        frontmatter: Configuration tree.
        schema_text: JSON schema document.
        context: Human-readable name of the validated object.
        file_path: Document the tree was extracted from.

    Raises:
        SchemaCompileError: If the schema cannot be compiled.
        SchemaViolationError: If the tree violates the schema; the error
            carries a diagnostic positioned in the file.
    """
    try:
        validate_with_schema(frontmatter, schema_text, context)
    except SchemaViolationError as error:
        if not error.causes:
            raise
        raise _locate_violation(error, str(file_path)) from error


def _locate_violation(error: SchemaViolationError,
                      file_path: str) -> SchemaViolationError:
    """Attach a positioned diagnostic to a schema violation."""
    message = clean_schema_error_message(error.message)

    context_lines: tuple[str, ...] = ()
    context_start: int | None = None
    frontmatter_text = ''
    frontmatter_start = 2

    try:
        lines = Path(file_path).read_text(encoding='utf-8').split('\n')
    except OSError:
        lines = []

    start, end, content = find_frontmatter_bounds(lines)
    if 0 <= start < end:
        frontmatter_text = content
        frontmatter_start = start + 2
        context_lines = tuple(lines[start:end + 1])
        context_start = start + 1

    if not context_lines:
        context_lines = FALLBACK_CONTEXT

    cause = error.causes[0]
    diagnostic = Diagnostic(
        file=file_path,
        line=frontmatter_start,
        column=1,
        message=message,
        context=context_lines,
        context_start=context_start,
        hint=_hint(cause),
    )

    if frontmatter_text:
        location = locate_json_path_with_additional_properties(
            frontmatter_text,
            cause.pointer,
            cause.message,
        )
        if location.found:
            diagnostic = diagnostic.model_copy(update={
                'line': location.line + frontmatter_start - 1,
                'column': location.column,
                'message': cause.message,
            })

    return SchemaViolationError(
        message,
        causes=error.causes,
        diagnostic=diagnostic,
    )


def validate_engine_rules(frontmatter: dict[str, Any] | None) -> None:
    """Check engine rules that the schema cannot express.

    Engines that do not support permissions must not carry a
    `permissions` section in their object configuration.

    Raises:
        EngineRuleError: If a rule is violated.
    """
    engine = (frontmatter or {}).get('engine')
    if not isinstance(engine, dict):
        return

    engine_id = engine.get('id')
    if not isinstance(engine_id, str):
        return

    registry = get_engine_registry()
    if 'permissions' in engine and not registry.supports_permissions(engine_id):
        supported = ' and '.join(
            item.display_name
            for item in registry.permission_engines()
        )
        raise EngineRuleError(
            f'engine permissions are not supported for {engine_id} engine. '
            f'Only {supported} engine supports permissions configuration',
        )


def _validate(frontmatter: dict[str, Any] | None, schema_name: str, context: str,
              file_path: 'str | PathLike[str] | None') -> None:
    """Validate against an embedded schema, located when a file is given."""
    schema_text = get_schema_text(schema_name)
    if file_path:
        validate_with_schema_and_location(frontmatter, schema_text, context, file_path)
    else:
        validate_with_schema(frontmatter, schema_text, context)


def validate_main_workflow_frontmatter(frontmatter: dict[str, Any] | None,
                                       file_path: 'str | PathLike[str] | None' = None) -> None:
    """Validate main workflow frontmatter.

    Args:
        frontmatter: Parsed frontmatter.
        file_path: Optional document path used to locate failures.

    Raises:
        SchemaViolationError: If the frontmatter violates the schema.
        EngineRuleError: If an engine rule is violated.
    """
    _validate(frontmatter, MAIN_WORKFLOW_SCHEMA, MAIN_WORKFLOW_CONTEXT, file_path)
    validate_engine_rules(frontmatter)


def validate_included_file_frontmatter(frontmatter: dict[str, Any] | None,
                                       file_path: 'str | PathLike[str] | None' = None) -> None:
    """Validate included file frontmatter.

    Raises:
        SchemaViolationError: If the frontmatter violates the schema.
    """
    _validate(frontmatter, INCLUDED_FILE_SCHEMA, INCLUDED_FILE_CONTEXT, file_path)


def validate_mcp_config(config: dict[str, Any] | None, tool_name: str) -> None:
    """Validate the MCP server configuration of a tool.

    Raises:
        SchemaViolationError: If the configuration violates the schema.
    """
    validate_with_schema(
        config,
        get_schema_text(MCP_CONFIG_SCHEMA),
        f"MCP configuration for tool '{tool_name}'",
    )
