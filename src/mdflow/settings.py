"""Compiler settings resolved from the environment.

Settings are read once per process and cached. Tests that need a
different environment should clear the caches with
`get_settings.cache_clear()`.
"""

from functools import cache

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import SettingsConfigDict

from mdflow.models import SettingsModel


class CompilerSettings(SettingsModel):
    """Global compiler configuration (`MDFLOW_*` variables)."""

    model_config = SettingsConfigDict(
        env_prefix='MDFLOW_',
        frozen=True,
        extra='ignore',
    )

    #: Path fragment marking files that require strict include validation.
    workflows_dir: str = '.github/workflows/'

    #: Container image of the GitHub MCP server.
    github_mcp_image: str = 'ghcr.io/github/github-mcp-server'
    #: Default tag of the GitHub MCP server image.
    github_mcp_version: str = 'sha-09deac4'

    #: Placeholder used when no GitHub credential is available.
    token_placeholder: str = '${GITHUB_TOKEN_REQUIRED}'

    #: Command printing a token from the GitHub CLI.
    token_command: tuple[str, ...] = ('gh', 'auth', 'token')


class TokenSettings(SettingsModel):
    """GitHub credential resolved from the environment."""

    token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices('GITHUB_TOKEN', 'GH_TOKEN'),
    )


@cache
def get_settings() -> CompilerSettings:
    """Resolve compiler settings from the current environment."""
    return CompilerSettings()
