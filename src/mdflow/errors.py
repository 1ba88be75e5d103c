"""Core exception hierarchy and diagnostic formatting.

This module defines base error and warning types used across the
compiler to report YAML parsing failures, unresolvable source paths,
schema violations, include resolution failures and tool merge
conflicts in a structured way.

It also renders compiler diagnostics in an IDE-parseable form:

    file:line:column: error: message
    2 | on: push
    3 | invalid_key: value
        ^
    hint: remediation text
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml.error import MarkedYAMLError, YAMLError

if TYPE_CHECKING:
    from typing import Self

if TYPE_CHECKING:
    from mdflow.models import Diagnostic, ValidationCause

#: Source name shown for errors in anonymous text.
UNKNOWN_SOURCE = '<string>'

#: Indentation of the lines following the message.
DETAIL_INDENT = ' ' * 4

SEVERITY_ICONS = {
    'error': '✗ ',
    'warning': '⚠ ',
    'info': 'ℹ ',
}


class ErrorContext(TypedDict, total=False):
    """Where an error happened, as far as it is known.

    Every key may be missing. Line and column numbers are 1-based and
    refer to the whole file, not to the frontmatter block.
    """

    filename: str | None
    line_num: int | None
    column_num: int | None

    #: Locator path or JSON pointer that was being resolved.
    path: str | None

    #: Parser error the context was taken from.
    error: Exception | None


class ErrorFormatter:
    """Rendering of compiler errors and diagnostics as plain text."""

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Append the source position to an error message.

        The message stays on the first line. The next line reads
        `at file:line:column`, with the locator path in parentheses, and
        a source excerpt follows for YAML parser errors:

            failed to parse YAML: expected ',' or ']'
                at workflow.md:3:9
                engine: [claude
                        ^

        Args:
            message: Base human-readable error message.
            context: Optional error context with location data.

        Returns:
            The message, followed by position lines when a context is set.
        """
        if not context:
            return message

        output = f'{message}{linesep}{DETAIL_INDENT}at {cls.get_position(context)}'
        if path := context.get('path'):
            output += f' ({path})'

        if excerpt := cls.get_excerpt(context):
            output += f'{linesep}{excerpt}'

        return output

    @staticmethod
    def get_position(context: ErrorContext) -> str:
        """Compiler-style `file:line:column` position of a context.

        Line and column are left out when unknown, the column also when
        the line is unknown.
        """
        parts = [context.get('filename') or UNKNOWN_SOURCE]
        for key in ('line_num', 'column_num'):
            if (value := context.get(key)) is None:
                break
            parts.append(str(value))

        return ':'.join(parts)

    @staticmethod
    def get_excerpt(context: ErrorContext) -> str:
        """Source excerpt with a caret, taken from a YAML parser error."""
        error = context.get('error')
        if not isinstance(error, MarkedYAMLError) or error.problem_mark is None:
            return ''

        snippet = error.problem_mark.get_snippet(indent=len(DETAIL_INDENT)) or ''
        return linesep.join(line for line in snippet.splitlines() if line.strip())

    @classmethod
    def format_message(cls, message: str, severity: str = 'info') -> str:
        """Prefix a one-line console message with its severity icon.

        Args:
            message: Message text.
            severity: One of `error`, `warning` or `info`.

        Returns:
            The decorated message.
        """
        return SEVERITY_ICONS.get(severity, '') + message

    @classmethod
    def format_diagnostic(cls, diagnostic: 'Diagnostic') -> str:
        """Render a compiler diagnostic.

        The first line is `file:line:column: severity: message`. Context
        lines follow, numbered and with a caret under the reported column
        on the reported line, then an optional hint.

        Args:
            diagnostic: Diagnostic to render. Context lines are numbered
                from `context_start` when set, otherwise they are
                centered on the diagnostic line.

        Returns:
            Plain-text rendering of the diagnostic.
        """
        output = ''
        if diagnostic.file:
            output += f'{diagnostic.file}:{diagnostic.line}:{diagnostic.column}: '
        output += f'{diagnostic.severity}: {diagnostic.message}{linesep}'

        if diagnostic.context and diagnostic.line > 0:
            output += cls._render_context(diagnostic)

        if diagnostic.hint:
            output += f'{linesep}hint: {diagnostic.hint}{linesep}'

        return output

    @classmethod
    def _render_context(cls, diagnostic: 'Diagnostic') -> str:
        """Render numbered context lines with an error pointer.

        Args:
            diagnostic: Diagnostic carrying context lines.

        Returns:
            Rendered context block.
        """
        lines = diagnostic.context
        context_start = diagnostic.context_start
        if context_start is None:
            context_start = diagnostic.line - len(lines) // 2

        width = len(str(context_start + len(lines) - 1))

        output = ''
        for offset, line in enumerate(lines):
            line_num = context_start + offset
            if line_num < 1:
                continue

            output += f'{line_num:>{width}} | {line}{linesep}'
            if line_num == diagnostic.line and diagnostic.column > 0:
                output += ' ' * (width + 3 + diagnostic.column - 1)
                output += f'^{linesep}'

        return output


class IncludeWarning(UserWarning):
    """Warning emitted for non-fatal include processing issues.

    Used when an included file outside the workflows directory carries
    unexpected or invalid frontmatter. Expansion continues.
    """


class IncludeNotice(IncludeWarning):
    """Informational note about an optional include that was skipped."""


class IncludeDepthWarning(IncludeWarning):
    """Include expansion stopped at the depth cap before settling."""


class MdflowError(Exception, ErrorFormatter):
    """Base exception of the compiler.

    Callers catch this class to handle every compiler failure alike; the
    CLI prints it and exits with status 1.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional location values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """Message followed by its source position, when known."""
        return self.format(self.message, self.context)


class YAMLParseError(MdflowError):
    """Error raised when YAML text cannot be parsed."""

    @classmethod
    def from_yaml_error(cls, error: YAMLError, *,
                        line_offset: int = 0,
                        filename: str | None = None) -> 'Self':
        """Create a parse error from a PyYAML failure.

        Args:
            error: Exception raised by the YAML parser.
            line_offset: Number of file lines preceding the parsed text,
                used to translate positions into whole-file positions.
            filename: Optional source file name.

        Returns:
            YAMLParseError carrying the translated position.
        """
        context = ErrorContext(filename=filename, error=error)

        mark = getattr(error, 'problem_mark', None)
        if mark is not None:
            context.update(
                line_num=mark.line + 1 + line_offset,
                column_num=mark.column + 1,
            )

        message = 'failed to parse YAML'
        if problem := getattr(error, 'problem', None):
            message += f': {problem}'

        return cls(message, context=context)


class LocatorError(MdflowError):
    """Base error for unresolvable locator queries."""


class EmptyInputError(LocatorError):
    """YAML text or locator path is empty."""


class PathNotFoundError(LocatorError):
    """A mapping key along the path does not exist."""


class NodeTypeError(LocatorError):
    """A path segment indexes a node of the wrong kind."""


class IndexRangeError(LocatorError):
    """A sequence index is out of range or not a number."""


class FrontmatterError(MdflowError):
    """Base error for document splitting failures."""


class UnclosedFrontmatterError(FrontmatterError):
    """Opening frontmatter fence without a closing fence."""


class SectionNotFoundError(FrontmatterError):
    """Requested markdown section heading does not exist."""


class SchemaCompileError(MdflowError):
    """Schema document could not be parsed or compiled."""


class SchemaViolationError(MdflowError):
    """Configuration tree violates a schema.

    Attributes:
        causes: Individual violations in validator order.
        diagnostic: Located diagnostic when a source file was supplied.
    """

    def __init__(self, message: str, *,
                 causes: 'tuple[ValidationCause, ...]' = (),
                 diagnostic: 'Diagnostic | None' = None,
                 context: ErrorContext | None = None) -> None:
        """Initialize a schema violation.

        Args:
            message: Validator report or cleaned message.
            causes: Individual violations.
            diagnostic: Optional located diagnostic.
            context: Error context containing optional location values.
        """
        self.causes = causes
        self.diagnostic = diagnostic

        super().__init__(message, context=context)

    def __str__(self) -> str:
        """Located diagnostic when available, otherwise the validator report."""
        if self.diagnostic is not None:
            return self.format_diagnostic(self.diagnostic).rstrip()

        return super().__str__()


class EngineRuleError(MdflowError):
    """Configuration passes the schema but breaks an engine rule."""


class MergeConflictError(MdflowError):
    """Two MCP server definitions disagree on a required-equal key."""

    def __init__(self, tool: str, key: str,
                 existing: Any, new: Any) -> None:  # noqa: ANN401
        """Initialize a merge conflict.

        Args:
            tool: Name of the conflicting tool.
            key: Conflicting key, dotted for nested `mcp` keys.
            existing: Value already merged.
            new: Incoming value.
        """
        self.tool = tool
        self.key = key
        self.existing = existing
        self.new = new

        super().__init__(
            f"MCP tool conflict for '{tool}': conflicting values "
            f"for '{key}': existing={existing!r}, new={new!r}",
        )


class IncludeError(MdflowError):
    """Include directive could not be resolved or processed."""


class MCPConfigError(MdflowError):
    """MCP server definition is malformed."""


class CredentialsError(MdflowError):
    """No bearer credential could be obtained."""
