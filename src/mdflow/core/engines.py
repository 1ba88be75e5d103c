"""Agentic engine capability registry.

The registry lists the engine identifiers accepted in frontmatter and
the capabilities that schema validation cannot express, such as whether
an engine accepts a `permissions` configuration.
"""

from functools import cache
from typing import TYPE_CHECKING

from mdflow.models import SchemaModel

if TYPE_CHECKING:
    from collections.abc import Iterable


class EngineDefinition(SchemaModel):
    """Static description of an agentic engine."""

    id: str
    display_name: str
    description: str = ''
    supports_permissions: bool = False


BUILTIN_ENGINES = (
    EngineDefinition(
        id='claude',
        display_name='Claude',
        description='Claude Code CLI with MCP tools and permission settings',
        supports_permissions=True,
    ),
    EngineDefinition(
        id='codex',
        display_name='Codex',
        description='Codex CLI with MCP tools',
        supports_permissions=False,
    ),
)


class EngineRegistry:
    """Ordered collection of known engines."""

    def __init__(self, engines: 'Iterable[EngineDefinition]' = ()) -> None:
        self._engines: dict[str, EngineDefinition] = {}
        for engine in engines:
            self.register(engine)

    def register(self, engine: EngineDefinition) -> None:
        """Register an engine, replacing any engine with the same id."""
        self._engines[engine.id] = engine

    def get(self, engine_id: str) -> EngineDefinition | None:
        """Look up an engine by identifier."""
        return self._engines.get(engine_id)

    @property
    def ids(self) -> tuple[str, ...]:
        """Identifiers of all registered engines."""
        return tuple(self._engines)

    def supports_permissions(self, engine_id: str) -> bool:
        """Whether an engine accepts a permissions configuration."""
        engine = self.get(engine_id)
        return engine is not None and engine.supports_permissions

    def permission_engines(self) -> tuple[EngineDefinition, ...]:
        """Engines that accept a permissions configuration."""
        return tuple(
            engine
            for engine in self._engines.values()
            if engine.supports_permissions
        )


@cache
def get_engine_registry() -> EngineRegistry:
    """Process-wide registry with the builtin engines."""
    return EngineRegistry(BUILTIN_ENGINES)
