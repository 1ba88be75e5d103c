"""Test suite for the mdflow package.

This package contains unit and integration tests validating
frontmatter extraction, source location, schema validation,
include expansion, tool merging and the command-line interface.
"""
