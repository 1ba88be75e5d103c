"""Base Pydantic models and compiler records.

This module defines the immutable records exchanged between compiler
components: source spans and locations, path segments, schema
validation causes, frontmatter extraction results, MCP server
definitions and diagnostics.

All records are frozen. A constructed record is never mutated, so it
can be cached, shared and compared freely.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for all compiler records.

    Design principles enforced by this model:
        - Immutability: records cannot be modified after creation.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos.
    """

    model_config = ConfigDict(
        frozen=True,
        extra='forbid',
    )


class SettingsModel(BaseSettings):
    """Base immutable model for compiler settings.

    Settings are resolved from the environment. Unknown variables are
    ignored so that the surrounding environment may contain unrelated
    values without breaking configuration resolution.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )


class SourceSpan(SchemaModel):
    """Inclusive source region, all positions 1-based.

    The zero value (all fields set to zero) means "unresolved".
    """

    start_line: int = 0
    start_column: int = 0
    end_line: int = 0
    end_column: int = 0

    @property
    def found(self) -> bool:
        """Whether the span points at an actual source region."""
        return self.start_line >= 1 and self.end_line >= 1


class JSONPathLocation(SchemaModel):
    """Best-effort position of a JSON pointer inside YAML source."""

    line: int = 1
    column: int = 1
    found: bool = False


class PathSegment(SchemaModel):
    """One step of a locator path or a JSON pointer."""

    kind: Literal['key', 'index']
    value: str
    index: int | None = None

    def __str__(self) -> str:
        """String representation."""
        if self.kind == 'index':
            return f'[{self.value}]'
        return self.value


class ValidationCause(SchemaModel):
    """Single schema violation reported by the validator.

    Attributes:
        pointer: JSON pointer of the failing instance (empty for root).
        message: Human-readable description of the violation.
    """

    pointer: str = ''
    message: str

    @property
    def segments(self) -> tuple[str, ...]:
        """Unescaped pointer segments."""
        return tuple(
            part.replace('~1', '/').replace('~0', '~')
            for part in self.pointer.split('/')[1:]
        )

    def __str__(self) -> str:
        """String representation."""
        return f"at '{self.pointer}': {self.message}"


class FrontmatterResult(SchemaModel):
    """Document split into a parsed frontmatter tree and a markdown body.

    Attributes:
        frontmatter: Parsed frontmatter mapping (empty when absent).
        markdown: Markdown body following the closing fence.
        frontmatter_lines: Raw lines between the two fences.
        frontmatter_start: 1-based file line of the first frontmatter
            content line, or 0 when the document has no frontmatter.
    """

    frontmatter: dict[str, Any] = Field(default_factory=dict)
    markdown: str = ''
    frontmatter_lines: tuple[str, ...] = ()
    frontmatter_start: int = 0


class MCPServerConfig(SchemaModel):
    """Resolved MCP server definition."""

    name: str
    type: Literal['stdio', 'http', 'docker']
    command: str = ''
    args: tuple[str, ...] = ()
    container: str = ''
    url: str = ''
    headers: dict[str, str] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)
    allowed: tuple[str, ...] = ()


class Diagnostic(SchemaModel):
    """Compiler diagnostic pointing at a source position."""

    file: str
    line: int = 1
    column: int = 1
    severity: Literal['error', 'warning', 'info'] = 'error'
    message: str
    context: tuple[str, ...] = ()
    context_start: int | None = None
    hint: str | None = None
