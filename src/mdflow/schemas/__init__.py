"""Embedded JSON schemas for workflow frontmatter and MCP servers."""
