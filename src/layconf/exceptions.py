"""Custom exceptions for layconf."""

import types
from typing import Any, List, Union, get_args, get_origin


class ConfigError(Exception):
    """Base exception for layconf errors."""

    pass


class NameConflictError(ConfigError):
    """Raised when an item name is registered twice or conflicts with an existing path."""

    def __init__(self, name: str, reason: str = "has been added"):
        self.name = name
        super().__init__(f"item {name} {reason}")


class ItemNotFoundError(ConfigError):
    """Raised when an item or name is not registered in the config."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"cannot find {name} in config")


class NoValueError(ConfigError):
    """Raised when a required item is read before any layer provides a value."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"item {name} is unset")


class CyclicDependencyError(ConfigError):
    """Raised when lazy resolution revisits an item that is still being resolved."""

    def __init__(self, cycle_path: List[str]):
        self.cycle_path = cycle_path
        cycle_display = " → ".join(cycle_path)
        super().__init__(f"Cyclic dependency detected: {cycle_display}")


class _TypeMismatch(ConfigError):
    """Common base for value/type mismatches."""

    headline = "Type mismatch"

    def __init__(self, name: str, expected_type: Any, value: Any, detail: str = ""):
        self.name = name
        self.expected_type = expected_type
        self.value = value
        self.detail = detail
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format error message for type mismatch.

        Returns:
            Formatted error message string
        """
        message = (
            f"{self.headline}\n"
            f"Item: {self.name}\n"
            f"Expected: {format_type(self.expected_type)}\n"
            f"Actual: {self.value!r} ({format_type(type(self.value))})"
        )
        if self.detail:
            message += f"\nDetail: {self.detail}"
        return message


class WrongTypeError(_TypeMismatch):
    """Raised when a stored or computed value cannot be coerced to the declared type."""

    headline = "Cannot coerce value"


class InvalidValueTypeError(_TypeMismatch):
    """Raised when a value passed to ``set`` does not match the declared type."""

    headline = "Invalid value type"


class InvalidPathError(ConfigError):
    """Raised when a dotted path contains empty segments."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f'"{path}" is not a valid path')


class PathConflictError(ConfigError):
    """Raised when a tree sets both a leaf and a sub-tree at the same path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f'"{path}" conflicts with existing paths in the tree')


class UnknownPathError(ConfigError):
    """Raised by strict loading when a source contains paths that match no item."""

    def __init__(self, paths: List[str], source: str):
        self.paths = paths
        self.source = source
        super().__init__(f"cannot find paths {', '.join(paths)} from {source} in config spec")


class SourceError(ConfigError):
    """Raised when a source adapter cannot produce a key-value tree."""

    pass


class UnsupportedExtensionError(SourceError):
    """Raised when no provider is registered for a file extension."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"cannot detect supported extension for \"{source}\"")


def format_type(type_obj: Any) -> str:
    """Format type object for display.

    Args:
        type_obj: Type object to format

    Returns:
        Formatted type string
    """
    origin = get_origin(type_obj)

    # Optional[X] reads better than Union[X, None]
    if origin is Union or origin is types.UnionType:
        args = get_args(type_obj)
        if len(args) == 2 and type(None) in args:
            inner = args[0] if args[1] is type(None) else args[1]
            return f"Optional[{format_type(inner)}]"
        return " | ".join(format_type(arg) for arg in args)

    if origin is not None:
        return str(type_obj).replace("typing.", "")

    if type_obj is Any:
        return "Any"

    # Handle classes with modules
    if isinstance(type_obj, type):
        if type_obj.__module__ == "builtins":
            return type_obj.__name__
        return f"{type_obj.__module__}.{type_obj.__qualname__}"

    return str(type_obj)

