"""Sources: producers of key-value trees consumed by ``Config.with_source``.

A source only has to expose a ``description`` and a ``tree()`` method returning
a mapping of string keys to primitive values, lists or nested mappings. The
config never depends on a concrete source class.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, runtime_checkable

from .exceptions import PathConflictError, SourceError
from .utils import get_nested_value, normalize_tree, set_nested_value, to_path

logger = logging.getLogger(__name__)


@runtime_checkable
class Source(Protocol):
    """Anything that can produce a key-value tree."""

    description: str

    def tree(self) -> Mapping[str, Any]:
        ...


class MapSource:
    """Source backed by an already nested mapping.

    >>> MapSource({"server": {"port": 8080}}).tree()
    {'server': {'port': 8080}}
    """

    def __init__(self, data: Mapping[str, Any], description: str = "hierarchical map"):
        if not isinstance(data, Mapping):
            raise SourceError(f"{description} must be a mapping at the top level, got {type(data).__name__}")
        self.description = description
        self._data = data

    def tree(self) -> Mapping[str, Any]:
        return normalize_tree(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.description!r})"


class KVSource(MapSource):
    """Source backed by a flat mapping whose keys are dotted item names.

    >>> KVSource({"server.port": 8080}).tree()
    {'server': {'port': 8080}}
    """

    def __init__(self, data: Mapping[str, Any], description: str = "key-value map"):
        super().__init__(data, description)


class FlatSource(MapSource):
    """Source backed by a flat mapping of dotted keys to string values.

    Strings are coerced to the item type on read, so ``"1,2,3"`` reads as
    ``[1, 2, 3]`` for a ``list[int]`` item.
    """

    def __init__(self, data: Mapping[str, str], description: str = "flat map"):
        for key, value in data.items():
            if not isinstance(value, str):
                raise SourceError(f"{description}: value of {key!r} must be a string, got {type(value).__name__}")
        super().__init__(data, description)


class EmptySource:
    """Source contributing no values, used for missing optional files."""

    def __init__(self, description: str = "empty"):
        self.description = description

    def tree(self) -> Mapping[str, Any]:
        return {}


_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class EnvSource:
    """Source backed by environment variables.

    With ``nested=True`` a variable such as ``SERVER_PORT`` provides
    ``server.port``; otherwise it provides ``server_port``. Underscores inside
    item names are kept for the names passed as ``names``: with
    ``"network.buffer.max_size"`` among them, ``NETWORK_BUFFER_MAX_SIZE``
    provides that item instead of ``network.buffer.max.size``.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        nested: bool = True,
        description: str = "",
        names: Iterable[str] = (),
    ):
        self._environ = environ
        self.nested = nested
        self._known = {name.replace(".", "_").lower(): name for name in names}
        self.description = description or ("environment variables" if environ is None else "environment map")

    def tree(self) -> Mapping[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        result: Dict[str, Any] = {}
        for key, value in environ.items():
            if not _ENV_NAME.match(key):
                continue
            path = key.lower()
            if self.nested and path in self._known:
                path = self._known[path]
            elif self.nested:
                path = ".".join(part for part in path.split("_") if part)
            if not path:
                continue
            try:
                set_nested_value(result, path, value)
            except PathConflictError:
                # e.g. both FOO and FOO_BAR are set; the variable seen first wins
                logger.debug("Skipping environment variable %s: conflicts with another variable", key)
        return result


# ---------------------------------------------------------------------------
# System properties
# ---------------------------------------------------------------------------

_system_properties: Dict[str, str] = {}


def set_system_property(key: str, value: str) -> None:
    """Set a process-wide property such as ``network.buffer.size``."""
    to_path(key)
    _system_properties[key.strip()] = str(value)


def get_system_property(key: str) -> Optional[str]:
    return _system_properties.get(key.strip())


def clear_system_property(key: str) -> None:
    _system_properties.pop(key.strip(), None)


def system_properties() -> Dict[str, str]:
    """Return a copy of all process-wide properties."""
    return dict(_system_properties)


class SystemPropertiesSource(FlatSource):
    """Source backed by the process-wide properties set with ``set_system_property``.

    The properties are copied when the source is created.
    """

    def __init__(self) -> None:
        super().__init__(system_properties(), "system properties")


# ---------------------------------------------------------------------------
# Transforming sources
# ---------------------------------------------------------------------------


class PrefixedSource:
    """Source placing another source's tree under ``prefix``."""

    def __init__(self, source: Source, prefix: str):
        self._source = source
        self.prefix = ".".join(to_path(prefix))
        self.description = f"{source.description} (prefix={self.prefix})"

    def tree(self) -> Mapping[str, Any]:
        inner = normalize_tree(self._source.tree())
        if not self.prefix:
            return inner
        result: Dict[str, Any] = {}
        set_nested_value(result, self.prefix, inner)
        return result


class ScopedSource:
    """Source exposing only the sub-tree of another source found at ``path``."""

    def __init__(self, source: Source, path: str):
        self._source = source
        self.path = ".".join(to_path(path))
        self.description = f"{source.description} (scope={self.path})"

    def tree(self) -> Mapping[str, Any]:
        inner = normalize_tree(self._source.tree())
        subtree = get_nested_value(inner, to_path(self.path), {})
        if not isinstance(subtree, Mapping):
            raise SourceError(f"{self.description}: {self.path} is a value, not a sub-tree")
        return subtree
