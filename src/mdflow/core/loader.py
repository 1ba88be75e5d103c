"""YAML loader used for workflow frontmatter.

PyYAML follows YAML 1.1, where `on`, `off`, `yes` and `no` are booleans.
Workflow frontmatter uses `on:` as a trigger key, so this loader only
resolves `true` and `false` spellings to booleans, as YAML 1.2 does.
Timestamps stay enabled and are normalized to ISO strings before
validation.
"""

from re import compile as regexp
from typing import Any

from yaml import SafeDumper, SafeLoader, dump, load

BOOL_TAG = 'tag:yaml.org,2002:bool'

#: YAML 1.2 core schema booleans.
BOOL_PATTERN = regexp(r'^(?:true|True|TRUE|false|False|FALSE)$')


class FrontmatterLoader(SafeLoader):
    """Safe YAML loader with YAML 1.2 boolean resolution."""

    yaml_implicit_resolvers = {
        first: [
            (tag, pattern)
            for tag, pattern in resolvers
            if tag != BOOL_TAG
        ]
        for first, resolvers in SafeLoader.yaml_implicit_resolvers.items()
    }


FrontmatterLoader.add_implicit_resolver(BOOL_TAG, BOOL_PATTERN, list('tTfF'))


def load_yaml(text: str) -> Any:  # noqa: ANN401
    """Load a single YAML document with the frontmatter loader.

    Raises:
        yaml.YAMLError: If the text is not valid YAML.
    """
    return load(text, Loader=FrontmatterLoader)  # noqa: S506


def dump_yaml(data: Any) -> str:  # noqa: ANN401
    """Dump data as block-style YAML, preserving key order."""
    return dump(
        data,
        Dumper=SafeDumper,
        allow_unicode=True,
        default_flow_style=False,
        sort_keys=False,
    )
