"""Utility functions for layconf."""

import enum
import re
from datetime import timedelta
from typing import Any, Dict, Iterator, List, Mapping, Tuple

import yaml

from .exceptions import InvalidPathError, PathConflictError


class ListMerge(enum.Enum):
    """How structural merge treats two lists found at the same key."""

    REPLACE = "replace"
    CONCATENATE = "concatenate"


class _ConfigLoader(yaml.SafeLoader):
    """SafeLoader that reads scientific notation such as ``1e-4`` as float."""


_ConfigLoader.add_implicit_resolver(
    tag="tag:yaml.org,2002:float",
    regexp=re.compile(r"-? [1-9] ( \. [0-9]* [1-9] )? ( e [-+] [1-9] [0-9]* )?", re.X),
    first=list("-+0123456789."),
)


def load_yaml(stream: Any) -> Any:
    """Load YAML content from a stream.

    Args:
        stream: Stream to read YAML from  # (file-like object or string)
    Returns:
        Parsed YAML content  # (nested dict structure for a mapping document)
    """
    return yaml.load(stream, Loader=_ConfigLoader)


def to_path(name: str) -> List[str]:
    """Split a dotted name into path segments.

    Args:
        name: Dot-separated name  # (e.g., "network.buffer.size")

    Returns:
        List of segments, empty for a blank name

    Raises:
        InvalidPathError: If the name contains empty segments
    """
    trimmed = name.strip()
    if not trimmed:
        return []
    path = trimmed.split(".")
    if "" in path:
        raise InvalidPathError(name)
    return path


def join_path(*parts: str) -> str:
    """Join name fragments with dots, skipping empty fragments."""
    return ".".join(part for part in (p.strip() for p in parts) if part)


def deep_merge(
    base: Mapping[str, Any],
    update: Mapping[str, Any],
    list_merge: ListMerge = ListMerge.REPLACE,
) -> Dict[str, Any]:
    """Deep merge two dictionaries, with update taking precedence.

    Args:
        base: Base dictionary  # (lower-precedence layer)
        update: Update dictionary (takes precedence)  # (higher-precedence layer)
        list_merge: Policy for lists present on both sides

    Returns:
        Merged dictionary  # (new dict, inputs are left untouched)
    """
    result = dict(base)

    # Merge each key from update into result
    for key, value in update.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            # Recursively merge nested dictionaries
            result[key] = deep_merge(current, value, list_merge)
        elif list_merge is ListMerge.CONCATENATE and isinstance(current, list) and isinstance(value, list):
            result[key] = current + value
        else:
            # Replace or add the value
            result[key] = value
    return result


def set_nested_value(tree: Dict[str, Any], key_path: str, value: Any) -> None:
    """Set value in a nested dict using dot notation, creating parents as needed.

    Args:
        tree: Tree to modify in-place
        key_path: Dot-separated key path
        value: Value to set

    Raises:
        PathConflictError: If a parent segment already holds a leaf value
    """
    keys = to_path(key_path)
    if not keys:
        raise InvalidPathError(key_path)
    current = tree

    for index, key in enumerate(keys[:-1]):
        if key not in current:
            current[key] = {}
        elif not isinstance(current[key], dict):
            raise PathConflictError(".".join(keys[: index + 1]))
        current = current[key]

    last = keys[-1]
    if isinstance(current.get(last), dict) and isinstance(value, dict):
        current[last] = deep_merge(current[last], value)
    elif isinstance(current.get(last), dict) or (last in current and isinstance(value, dict)):
        raise PathConflictError(".".join(keys))
    else:
        current[last] = value


_MISSING = object()


def get_nested_value(tree: Mapping[str, Any], keys: List[str], default: Any = _MISSING) -> Any:
    """Walk nested mappings along ``keys``.

    Args:
        tree: Tree to walk
        keys: Path segments
        default: Returned when the path is absent; ``KeyError`` when omitted

    Returns:
        Value at the specified path
    """
    current: Any = tree
    for key in keys:
        if isinstance(current, Mapping) and key in current:
            current = current[key]
        elif default is _MISSING:
            raise KeyError(".".join(keys))
        else:
            return default
    return current


def normalize_tree(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Expand dotted keys at every level into a fully nested tree.

    Args:
        data: Mapping whose keys may contain dots  # (e.g., {"server.port": 80})

    Returns:
        Nested plain dict  # (e.g., {"server": {"port": 80}})

    Raises:
        PathConflictError: If a leaf and a sub-tree claim the same path
    """
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            value = normalize_tree(value)
        set_nested_value(result, str(key), value)
    return result


def iter_leaves(tree: Mapping[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    """Yield ``(dotted path, value)`` for every non-mapping leaf of a tree."""
    for key, value in tree.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if isinstance(value, Mapping) and value:
            yield from iter_leaves(value, full_key)
        else:
            yield full_key, value


_DURATION_PATTERN = re.compile(r"^\s*([+-]?[0-9]*\.?[0-9]+(?:[eE][+-]?[0-9]+)?)\s*([a-zA-Z]*)\s*$")

_DURATION_UNITS = {
    "": "milliseconds",
    "ms": "milliseconds",
    "millis": "milliseconds",
    "milliseconds": "milliseconds",
    "us": "microseconds",
    "micros": "microseconds",
    "microseconds": "microseconds",
    "ns": "nanoseconds",
    "nanos": "nanoseconds",
    "nanoseconds": "nanoseconds",
    "d": "days",
    "days": "days",
    "h": "hours",
    "hours": "hours",
    "s": "seconds",
    "seconds": "seconds",
    "m": "minutes",
    "minutes": "minutes",
}


def parse_duration(text: str) -> timedelta:
    """Parse a duration string such as ``"500ms"``, ``"10 s"`` or ``"2h"``.

    A bare number is read as milliseconds. Unit names are case-sensitive and
    long forms may omit the trailing ``s`` (``"second"``).

    Raises:
        ValueError: If the number or the unit cannot be parsed
    """
    match = _DURATION_PATTERN.match(text)
    if match is None:
        raise ValueError(f"No number in duration value {text!r}")
    number, unit = match.groups()
    if len(unit) > 2 and not unit.endswith("s"):
        unit += "s"
    if unit not in _DURATION_UNITS:
        raise ValueError(f"Could not parse time unit {match.group(2)!r} (try ns, us, ms, s, m, h, d)")
    amount = float(number)
    unit_name = _DURATION_UNITS[unit]
    if unit_name == "nanoseconds":
        return timedelta(microseconds=amount / 1000)
    return timedelta(**{unit_name: amount})
