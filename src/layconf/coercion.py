"""Declared item types: strict checks on write and coercion on read.

Supported kinds form a closed set: ``bool``, ``int``, ``float``, ``str``,
``Enum`` subclasses, ``datetime.timedelta``, ``list``/``set``/``tuple``
containers, ``dict`` mappings, dataclass records, ``Literal``, unions
(including ``Optional``) and ``Any``. Any other class is accepted only by
``isinstance``.
"""

import dataclasses
import enum
import types
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Literal, Union, get_args, get_origin, get_type_hints

from .exceptions import InvalidValueTypeError, WrongTypeError
from .utils import parse_duration

_TRUTHY = frozenset({"1", "true", "yes", "on", "t", "y"})
_FALSY = frozenset({"0", "false", "no", "off", "f", "n"})

_SEQUENCE_ORIGINS = (list, set, frozenset, tuple)


def is_union_type(expected_type: Any) -> bool:
    """Check if type annotation is a union, including ``X | Y`` and ``Optional``."""
    origin = get_origin(expected_type)
    return origin is Union or origin is types.UnionType


def type_allows_none(expected_type: Any) -> bool:
    """Check if ``None`` is an acceptable value for the type."""
    if expected_type is Any or expected_type is type(None):
        return True
    if is_union_type(expected_type):
        return any(type_allows_none(arg) for arg in get_args(expected_type))
    return False


def check_value(value: Any, expected_type: Any, name: str) -> None:
    """Strictly validate a value supplied through ``set``.

    Only ``int`` -> ``float`` widening is accepted; strings are never parsed.

    Args:
        value: Value to validate
        expected_type: Declared item type
        name: Item name for error reporting

    Raises:
        InvalidValueTypeError: If the value does not match the declared type, or the
            declared type is not a supported kind
    """
    try:
        matches = _matches_type(value, expected_type)
    except TypeError as e:
        raise InvalidValueTypeError(name, expected_type, value, detail=str(e)) from e
    if not matches:
        raise InvalidValueTypeError(name, expected_type, value)


def coerce_value(value: Any, expected_type: Any, name: str) -> Any:
    """Coerce a stored or computed value to the declared type.

    Args:
        value: Raw value  # (from a source tree, a set, or a lazy function)
        expected_type: Declared item type
        name: Item name for error reporting

    Returns:
        Value of the declared type

    Raises:
        WrongTypeError: If no rule of the coercion table applies
    """
    try:
        return _coerce(value, expected_type)
    except (TypeError, ValueError, KeyError) as e:
        raise WrongTypeError(name, expected_type, value, detail=str(e)) from e


def _matches_type(value: Any, expected_type: Any) -> bool:
    """Check if a value matches an expected type without conversion."""
    if expected_type is Any or expected_type is object:
        return True

    if expected_type is None or expected_type is type(None):
        return value is None

    # Handle Union types (including `|`, `Optional`)
    if is_union_type(expected_type):
        return any(_matches_type(value, arg) for arg in get_args(expected_type))

    origin = get_origin(expected_type)
    args = get_args(expected_type)

    if origin is Literal:
        return value in args

    if expected_type is bool:
        return isinstance(value, bool)
    if expected_type is int:
        return isinstance(value, int) and not isinstance(value, bool)
    if expected_type is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    # Handle container types like list[float] - check every element
    if origin in _SEQUENCE_ORIGINS:
        if not isinstance(value, origin):
            return False
        if origin is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
            return len(value) == len(args) and all(_matches_type(v, t) for v, t in zip(value, args))
        return not args or all(_matches_type(v, args[0]) for v in value)

    if origin is not None and isinstance(origin, type) and issubclass(origin, Mapping):
        if not isinstance(value, Mapping):
            return False
        if not args:
            return True
        key_type, value_type = args
        return all(_matches_type(k, key_type) and _matches_type(v, value_type) for k, v in value.items())

    if origin is not None:
        return isinstance(value, origin)

    # Handle regular class types
    if isinstance(expected_type, type):
        return isinstance(value, expected_type)

    raise TypeError(f"Unsupported item type: {expected_type!r}")


def _coerce(value: Any, expected_type: Any) -> Any:
    """Apply the coercion table, raising ``ValueError``/``TypeError`` on failure."""
    if expected_type is Any or expected_type is object:
        return value

    if value is None:
        if type_allows_none(expected_type):
            return None
        raise ValueError("value is null")

    if is_union_type(expected_type):
        arms = [arg for arg in get_args(expected_type) if arg is not type(None)]
        # An exact match wins over conversion so that "1" stays a str in str | int
        for arm in arms:
            if _matches_type(value, arm):
                return _coerce(value, arm)
        errors = []
        for arm in arms:
            try:
                return _coerce(value, arm)
            except (TypeError, ValueError, KeyError) as e:
                errors.append(str(e))
        raise ValueError("; ".join(errors))

    origin = get_origin(expected_type)
    args = get_args(expected_type)

    if origin is Literal:
        for arg in args:
            if value == arg or (isinstance(value, str) and not isinstance(arg, str) and value == str(arg)):
                return arg
        raise ValueError(f"{value!r} is not one of {list(args)}")

    if expected_type is bool:
        return _coerce_bool(value)
    if expected_type is int:
        return _coerce_int(value)
    if expected_type is float:
        return _coerce_float(value)
    if expected_type is str:
        return _coerce_str(value)
    if expected_type is timedelta:
        return _coerce_timedelta(value)

    if isinstance(expected_type, type) and issubclass(expected_type, enum.Enum):
        return _coerce_enum(value, expected_type)

    if origin in _SEQUENCE_ORIGINS or expected_type in _SEQUENCE_ORIGINS:
        return _coerce_sequence(value, origin or expected_type, args)

    mapping_origin = origin or expected_type
    if isinstance(mapping_origin, type) and issubclass(mapping_origin, Mapping):
        if not isinstance(value, Mapping):
            raise TypeError(f"expected a mapping, got {type(value).__name__}")
        if not args:
            return dict(value)
        key_type, value_type = args
        return {_coerce(k, key_type): _coerce(v, value_type) for k, v in value.items()}

    if dataclasses.is_dataclass(expected_type) and isinstance(expected_type, type):
        return _coerce_record(value, expected_type)

    if origin is not None:
        if isinstance(value, origin):
            return value
        raise TypeError(f"expected {origin.__name__}, got {type(value).__name__}")

    if isinstance(expected_type, type):
        if isinstance(value, expected_type):
            return value
        raise TypeError(f"expected {expected_type.__name__}, got {type(value).__name__}")

    raise TypeError(f"Unsupported item type: {expected_type!r}")


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in _TRUTHY:
            return True
        if lower in _FALSY:
            return False
        raise ValueError(f"Cannot cast {value!r} to bool")
    raise TypeError(f"Cannot cast {type(value).__name__} to bool")


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("bool is not an int")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"Cannot cast {type(value).__name__} to int")


def _coerce_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("bool is not a float")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise TypeError(f"Cannot cast {type(value).__name__} to float")


def _coerce_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise TypeError(f"Cannot cast {type(value).__name__} to str")


def _coerce_timedelta(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a duration")
    if isinstance(value, (int, float)):
        return timedelta(milliseconds=value)
    if isinstance(value, str):
        return parse_duration(value)
    raise TypeError(f"Cannot cast {type(value).__name__} to timedelta")


def _coerce_enum(value: Any, enum_type: type) -> enum.Enum:
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        key = value.strip()
        if key in enum_type.__members__:
            return enum_type[key]
        for member_name, member in enum_type.__members__.items():
            if member_name.lower() == key.lower():
                return member
    # Fall back to lookup by value, raises ValueError when unknown
    return enum_type(value)


def _coerce_sequence(value: Any, container: type, args: tuple) -> Any:
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        raise TypeError(f"expected a sequence, got {type(value).__name__}")

    if container is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
        if len(items) != len(args):
            raise ValueError(f"expected {len(args)} elements, got {len(items)}")
        return tuple(_coerce(item, arg) for item, arg in zip(items, args))

    element_type = args[0] if args else Any
    return container(_coerce(item, element_type) for item in items)


def _coerce_record(value: Any, record_type: type) -> Any:
    if isinstance(value, record_type):
        return value
    if not isinstance(value, Mapping):
        raise TypeError(f"expected a mapping for {record_type.__name__}, got {type(value).__name__}")
    hints = get_type_hints(record_type)
    fields = {field.name for field in dataclasses.fields(record_type) if field.init}
    unknown = set(value) - fields
    if unknown:
        raise ValueError(f"unexpected fields for {record_type.__name__}: {', '.join(sorted(unknown))}")
    kwargs = {key: _coerce(raw, hints.get(key, Any)) for key, raw in value.items()}
    return record_type(**kwargs)


def record_to_tree(value: Any) -> Any:
    """Turn a dataclass record into a plain mapping so it can take part in structural merge."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {field.name: record_to_tree(getattr(value, field.name)) for field in dataclasses.fields(value)}
    return value


def to_plain(value: Any) -> Any:
    """Convert a typed value into plain YAML/JSON data.

    Records become mappings, enums their member name, durations a string that
    reads back as the same ``timedelta`` and sets or tuples become lists.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_plain(record_to_tree(value))
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, timedelta):
        micros = (value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds
        if micros % 1000:
            return f"{micros}us"
        return f"{micros // 1000}ms"
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(item) for item in value]
    return value
