"""Compiler front-end for agentic workflow documents.

The `mdflow` package reads markdown workflow documents with YAML
frontmatter and prepares them for compilation.

Key features:
- frontmatter extraction with whole-file positions;
- schema validation with diagnostics pointing at the offending line;
- source spans for locator paths such as `on.push.branches[0]`;
- `@include` expansion with merging of included tool configurations;
- MCP server definitions derived from the `tools` section.
"""
