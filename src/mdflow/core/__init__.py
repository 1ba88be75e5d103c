"""Document processing pipeline.

This module groups the building blocks of the compiler front-end:
splitting documents, locating YAML nodes, validating frontmatter,
expanding includes and merging tool configurations.

The primary entry points are `extract_frontmatter`,
`validate_main_workflow_frontmatter` and `expand_includes`.
"""

from .frontmatter import extract_frontmatter, extract_markdown_section
from .includes import expand_included_tools, expand_includes, expand_includes_for_engines
from .locator import FrontmatterLocator, locate_frontmatter_path, locate_frontmatter_path_span
from .mcp import extract_mcp_configurations, parse_mcp_config
from .merge import merge_tools
from .pointer import locate_json_path, locate_json_path_with_additional_properties
from .schema import (
    validate_included_file_frontmatter,
    validate_main_workflow_frontmatter,
    validate_mcp_config,
)

__all__ = (
    'FrontmatterLocator',
    'expand_included_tools',
    'expand_includes',
    'expand_includes_for_engines',
    'extract_frontmatter',
    'extract_markdown_section',
    'extract_mcp_configurations',
    'locate_frontmatter_path',
    'locate_frontmatter_path_span',
    'locate_json_path',
    'locate_json_path_with_additional_properties',
    'merge_tools',
    'parse_mcp_config',
    'validate_included_file_frontmatter',
    'validate_main_workflow_frontmatter',
    'validate_mcp_config',
)
