"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any


def parse_value(raw: str) -> Any:
    """Parse a CLI value as JSON when possible, else keep the string.

    Examples:
        "5" → 5, "null" → None, "active" → "active"
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_join_spec(raw: str) -> str | dict[str, Any]:
    """Parse a join spec: a JSON object, or a bare ``table.alias`` string."""
    raw = raw.strip()
    if raw.startswith("{"):
        spec = json.loads(raw)
        if not isinstance(spec, dict):
            raise ValueError("Join spec must be a JSON object")
        return spec
    return raw


def parse_assignments(items: list[str] | None) -> dict[str, Any]:
    """Parse repeated ``key=value`` options into a dict.

    Raises:
        ValueError: If an item has no '='
    """
    result: dict[str, Any] = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"Invalid assignment: '{item}'. Expected key=value")
        key, value = item.split("=", 1)
        result[key.strip()] = parse_value(value)
    return result


def read_json_file(path: str) -> dict[str, Any]:
    """Read single JSON object from file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r") as f:
        return json.load(f)
