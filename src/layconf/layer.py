"""Value store: immutable provenance-tagged layers and the persistent stack holding them."""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Iterator, List, Mapping, Tuple

from .utils import ListMerge, deep_merge, get_nested_value, iter_leaves, set_nested_value

MISSING: Any = object()


class LazyValue:
    """Value slot holding a function of the config instead of a concrete value.

    The function is called with an ``ItemContainer`` on every read; its result
    is never written back into the layer.
    """

    __slots__ = ("thunk",)

    def __init__(self, thunk: Callable[[Any], Any]):
        if not callable(thunk):
            raise TypeError(f"lazy value needs a callable, got {type(thunk).__name__}")
        self.thunk = thunk

    def __repr__(self) -> str:
        return f"LazyValue({getattr(self.thunk, '__qualname__', self.thunk)!r})"


class Layer:
    """One immutable tree of key-value facts, tagged with where it came from."""

    __slots__ = ("_name", "_kind", "_tree")

    SOURCE = "source"
    VALUES = "values"

    def __init__(self, name: str, tree: Dict[str, Any], kind: str = SOURCE):
        """Initialize layer.

        Args:
            name: Provenance description  # (e.g., "yaml file app.yaml")
            tree: Fully nested tree, owned by the layer from now on
            kind: ``Layer.SOURCE`` for loaded sources, ``Layer.VALUES`` for frozen sets
        """
        self._name = name
        self._kind = kind
        self._tree = tree

    @classmethod
    def from_values(cls, name: str, values: Mapping[str, Any]) -> "Layer":
        """Freeze a ``{item name: value}`` mapping into a layer."""
        tree: Dict[str, Any] = {}
        for key, value in values.items():
            set_nested_value(tree, key, value)
        return cls(name, tree, cls.VALUES)

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> str:
        return self._kind

    def lookup(self, keys: List[str]) -> Any:
        """Return a copy of the value at ``keys`` or ``MISSING``."""
        value = get_nested_value(self._tree, keys, MISSING)
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def paths(self) -> Iterator[str]:
        """Yield every leaf path of this layer."""
        for path, _ in iter_leaves(self._tree):
            yield path

    def __repr__(self) -> str:
        return f"Layer(name={self._name!r}, kind={self._kind!r})"


class LayerStack:
    """Persistent ordered stack of layers, oldest first.

    Pushing returns a new stack sharing every existing layer, so deriving a
    config never touches layers visible to other configs.
    """

    __slots__ = ("_layers",)

    def __init__(self, layers: Tuple[Layer, ...] = ()):
        self._layers = layers

    def push(self, layer: Layer) -> "LayerStack":
        return LayerStack(self._layers + (layer,))

    def extend(self, other: "LayerStack") -> "LayerStack":
        return LayerStack(self._layers + other._layers)

    def lookup_all(self, keys: List[str]) -> Iterator[Tuple[Layer, Any]]:
        """Yield ``(layer, value)`` for every layer holding ``keys``, most recently pushed first."""
        for layer in reversed(self._layers):
            value = layer.lookup(keys)
            if value is not MISSING:
                yield layer, value

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    def __repr__(self) -> str:
        return f"LayerStack({[layer.name for layer in self._layers]})"


def is_partial(value: Any, list_merge: ListMerge) -> bool:
    """Check if a value combines with lower layers instead of hiding them."""
    if isinstance(value, Mapping):
        return True
    return list_merge is ListMerge.CONCATENATE and isinstance(value, list)


def combine(lower: Any, higher: Any, list_merge: ListMerge) -> Any:
    """Merge a higher-precedence value over a lower one.

    Mappings merge key by key; lists concatenate under ``ListMerge.CONCATENATE``;
    anything else is replaced by ``higher``.
    """
    if isinstance(lower, Mapping) and isinstance(higher, Mapping):
        return deep_merge(lower, higher, list_merge)
    if list_merge is ListMerge.CONCATENATE and isinstance(lower, list) and isinstance(higher, list):
        return lower + higher
    return higher
