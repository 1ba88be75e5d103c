"""Tests configurations and fixtures."""

from importlib.resources import files
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from mdflow.core.engines import get_engine_registry
from mdflow.settings import get_settings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

if TYPE_CHECKING:
    from pyfakefs.fake_filesystem import FakeFilesystem
    from pytest_mock import MockerFixture, MockType

#: Real location of the embedded schemas, resolved before any fake filesystem.
SCHEMAS_DIR = str(files('mdflow.schemas'))


@pytest.fixture(autouse=True)
def fresh_settings() -> 'Iterator[None]':
    """Reset process-wide singletons around every test.

    Settings and the engine registry are cached per process; tests that
    patch the environment must not leak the resolved values.
    """
    get_settings.cache_clear()
    get_engine_registry.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine_registry.cache_clear()


@pytest.fixture
def workspace(fs: 'FakeFilesystem') -> 'FakeFilesystem':
    """Provide a fake filesystem that still exposes the embedded schemas.

    Validation with source locations reads documents from disk, while
    the schemas themselves ship as package data. The real schema
    directory is mapped read-only into the fake filesystem.

    Returns:
        The pyfakefs filesystem.
    """
    fs.add_real_directory(SCHEMAS_DIR)
    return fs


@pytest.fixture
def write_document(workspace: 'FakeFilesystem') -> 'Callable[..., Path]':
    """Provide a factory writing documents into the fake filesystem."""
    def write(path: str, content: str) -> Path:
        """Create a document and return its path.

        Args:
            path: Absolute path of the document.
            content: Document text.
        """
        workspace.create_file(path, contents=content)
        return Path(path)

    return write


@pytest.fixture
def github_token(mocker: 'MockerFixture') -> 'MockType':
    """Patch the credential provider used for the GitHub MCP server."""
    return mocker.patch(
        'mdflow.core.mcp.get_github_token',
        return_value='ghp_test',
    )
