"""Helpers shared by the provider parsers."""

from __future__ import annotations

from io import StringIO
from typing import Any

from ruamel.yaml import YAML, YAMLError


class PipelineParseError(ValueError):
    """Raised when a CI configuration cannot be turned into a DAG."""


def load_yaml(content: str, source_file: str = "") -> Any:
    """Parse YAML text with ruamel, converting loader errors."""
    yaml = YAML(typ="safe")
    try:
        return yaml.load(StringIO(content))
    except YAMLError as e:
        raise PipelineParseError(f"Failed to parse YAML in {source_file or '<string>'}: {e}") from e


def as_str_list(value: Any) -> list[str]:
    """Normalise a scalar-or-list YAML value to a list of strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if isinstance(v, (str, int, float, bool))]
    if isinstance(value, (str, int, float)):
        return [str(value)]
    return []


def as_str_dict(value: Any) -> dict[str, str]:
    """Keep scalar entries of a mapping as strings."""
    if not isinstance(value, dict):
        return {}
    result: dict[str, str] = {}
    for k, v in value.items():
        if isinstance(v, bool):
            result[str(k)] = str(v).lower()
        elif isinstance(v, (str, int, float)):
            result[str(k)] = str(v)
        elif isinstance(v, dict) and "value" in v:
            result[str(k)] = str(v["value"])
    return result
