"""layconf configuration object module."""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Mapping, Optional, TextIO, Tuple, Union

import yaml

from .coercion import check_value, coerce_value, record_to_tree, to_plain
from .exceptions import ItemNotFoundError, NameConflictError, NoValueError, UnknownPathError
from .facets import DefaultLoaders
from .item import Item, Spec
from .layer import MISSING, LazyValue, Layer, LayerStack, combine, is_partial
from .lazy import LazyEvaluator
from .source import Source
from .utils import ListMerge, deep_merge, join_path, normalize_tree, set_nested_value, to_path

logger = logging.getLogger(__name__)

ItemOrName = Union[Item, str]
SetHook = Callable[[Item, Any], None]


class Handler:
    """Subscription handle returned by ``before_set``/``after_set``.

    Usable as a context manager; leaving the block cancels the subscription.
    """

    def __init__(self, hooks: List[SetHook], hook: SetHook):
        self._hooks = hooks
        self._hook = hook

    def cancel(self) -> None:
        if self._hook in self._hooks:
            self._hooks.remove(self._hook)

    def __enter__(self) -> "Handler":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cancel()


class Config:
    """A snapshot of typed configuration values.

    Values live in a stack of immutable layers plus a private top layer that
    ``set``/``lazy_set``/``unset`` modify in place. Loading a source never
    modifies the receiver: ``with_source``, ``from_`` loaders, ``with_layer`` and
    ``merge`` all return a new config sharing the existing layers.

    Example::

        buffer = Spec("network.buffer")
        size = buffer.optional("size", 256)
        config = Config()
        config.add_spec(buffer)
        config[size]                                   # 256
        loaded = config.from_.map.kv({"network.buffer.size": 2048})
        loaded[size], config[size]                     # (2048, 256)
    """

    def __init__(
        self,
        name: str = "",
        *,
        fail_on_unknown_path: bool = False,
        list_merge: ListMerge = ListMerge.REPLACE,
        optional_source: bool = False,
        load_keys_case_insensitively: bool = False,
    ):
        """Initialize an empty config.

        Args:
            name: Name used in logs and layer descriptions
            fail_on_unknown_path: Raise ``UnknownPathError`` when a source has paths matching no item
            list_merge: How lists found at the same key in two layers combine
            optional_source: Default for ``optional`` in file loaders
            load_keys_case_insensitively: Match loaded keys to item names ignoring case
        """
        self.name = name
        self.fail_on_unknown_path = fail_on_unknown_path
        self.list_merge = list_merge
        self.optional_source = optional_source
        self.load_keys_case_insensitively = load_keys_case_insensitively
        self._names: Dict[Item, str] = {}  # (registered item -> qualified name, by identity)
        self._items_by_name: Dict[str, Item] = {}
        self._specs: List[Spec] = []
        self._layers = LayerStack()
        self._values: Dict[str, Any] = {}  # (own top layer: name -> value or LazyValue)
        self._before_set: List[SetHook] = []
        self._after_set: List[SetHook] = []

    # ------------------------------------------------------------------
    # Item model
    # ------------------------------------------------------------------

    def add_spec(self, spec: Spec) -> None:
        """Register every item of ``spec``.

        Raises:
            NameConflictError: If an item or its name is already registered, or
                its name and an existing name are prefixes of each other
        """
        self._register([(item, spec.qualify(item)) for item in spec])
        self._specs.append(spec)
        logger.debug("Added spec %r with %d items to config %r", spec.prefix, len(spec), self.name)

    def add_item(self, item: Item, prefix: str = "") -> None:
        """Register a single item under ``prefix``."""
        self._register([(item, join_path(prefix, item.name))])

    def _register(self, entries: List[Tuple[Item, str]]) -> None:
        """Check all entries first so that a conflict registers nothing."""
        pending: Dict[str, Item] = {}
        for item, name in entries:
            to_path(name)
            if item in self._names:
                raise NameConflictError(name)
            for existing in list(self._items_by_name) + list(pending):
                if existing == name:
                    raise NameConflictError(name)
                if existing.startswith(name + ".") or name.startswith(existing + "."):
                    raise NameConflictError(name, f"cannot be added: conflicts with item {existing}")
            pending[name] = item
        for name, item in pending.items():
            self._names[item] = name
            self._items_by_name[name] = item

    def name_of(self, item: Item) -> str:
        """Return the name ``item`` is registered under.

        Raises:
            ItemNotFoundError: If this exact item object was never registered
        """
        return self._resolve_item(item)[1]

    @property
    def items(self) -> FrozenSet[Item]:
        """Read-only snapshot of registered items."""
        return frozenset(self._names)

    @property
    def item_names(self) -> Tuple[str, ...]:
        return tuple(self._items_by_name)

    @property
    def specs(self) -> Tuple[Spec, ...]:
        return tuple(self._specs)

    def __iter__(self) -> Iterator[Item]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Item):
            return item in self._names
        if isinstance(item, str):
            return item.strip() in self._items_by_name
        return False

    def _resolve_item(self, item: ItemOrName) -> Tuple[Item, str]:
        if isinstance(item, Item):
            name = self._names.get(item)
            if name is None:
                raise ItemNotFoundError(f"item {item.name}")
            return item, name
        name = item.strip()
        found = self._items_by_name.get(name)
        if found is None:
            raise ItemNotFoundError(name)
        return found, name

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get(self, item: ItemOrName) -> Any:
        """Get the effective value of an item, by item or by name.

        Raises:
            ItemNotFoundError: If the item is not registered
            NoValueError: If a required item has no value
            WrongTypeError: If the value cannot be coerced to the declared type
            CyclicDependencyError: If lazy values depend on each other in a cycle
        """
        return self._get(item, LazyEvaluator())

    def get_or_none(self, item: ItemOrName) -> Any:
        """Like ``get`` but return ``None`` for items without a value."""
        return self._get(item, LazyEvaluator(), allow_unset=True)

    def __getitem__(self, item: ItemOrName) -> Any:
        return self.get(item)

    def _get(self, item: ItemOrName, evaluator: LazyEvaluator, allow_unset: bool = False) -> Any:
        resolved, name = self._resolve_item(item)
        try:
            return self._resolve(resolved, name, evaluator)
        except NoValueError as e:
            # Only the item asked for may be missing; a missing dependency still fails
            if allow_unset and e.name == name:
                return None
            raise

    def _lookup_all(self, name: str) -> Iterator[Tuple[Any, bool]]:
        """Yield ``(raw value, complete)`` for ``name``, highest precedence first.

        Values written through ``set``/``lazy_set`` are complete; values from
        sources may be partial and merge with the layers below them.
        """
        if name in self._values:
            yield self._values[name], True
        for layer, value in self._layers.lookup_all(to_path(name)):
            yield value, layer.kind == Layer.VALUES

    def _resolve(self, item: Item, name: str, evaluator: LazyEvaluator) -> Any:
        """Resolve an item through the layer stack.

        Walks layers from the top. Source mappings (and source lists under
        ``ListMerge.CONCATENATE``) are partial: they are collected and merged
        over whatever lies below them. The first complete value ends the walk;
        when none is found the item's default or lazy thunk serves as base.
        """
        partials: List[Any] = []  # (higher precedence first)
        base: Any = MISSING

        for raw, complete in self._lookup_all(name):
            value = self._evaluate(item, name, raw, evaluator)
            if not complete and is_partial(value, self.list_merge):
                partials.append(value)
                continue
            base = value
            break

        if base is MISSING:
            if not partials:
                if item.is_optional:
                    return coerce_value(copy.deepcopy(item.default), item.type, name)
                if item.is_lazy:
                    return coerce_value(evaluator.evaluate(item, name, item.thunk, self), item.type, name)
                raise NoValueError(name)
            base = self._fallback_base(item, name, evaluator)

        value = base
        for partial in reversed(partials):
            value = combine(value, partial, self.list_merge)
        return coerce_value(value, item.type, name)

    def _evaluate(self, item: Item, name: str, raw: Any, evaluator: LazyEvaluator) -> Any:
        if isinstance(raw, LazyValue):
            raw = evaluator.evaluate(item, name, raw.thunk, self)
        return record_to_tree(raw)

    def _fallback_base(self, item: Item, name: str, evaluator: LazyEvaluator) -> Any:
        """Value underneath partial source values, ``MISSING`` for required items."""
        if item.is_optional:
            return record_to_tree(copy.deepcopy(item.default))
        if item.is_lazy:
            return record_to_tree(evaluator.evaluate(item, name, item.thunk, self))
        return MISSING

    def contains_required(self) -> bool:
        """Check whether every required item has a value in some layer."""
        return self._first_unset_required() is None

    def validate_required(self) -> "Config":
        """Return ``self`` if every required item has a value.

        Raises:
            NoValueError: Naming the first required item without a value
        """
        missing = self._first_unset_required()
        if missing is not None:
            raise NoValueError(missing)
        return self

    def _first_unset_required(self) -> Optional[str]:
        for item, name in self._names.items():
            if item.is_required and next(self._lookup_all(name), MISSING) is MISSING:
                return name
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Return ``{name: value}`` for every item that currently has a value."""
        result = {}
        for name in self._items_by_name:
            try:
                result[name] = self.get(name)
            except NoValueError:
                continue
        return result

    def to_tree(self) -> Dict[str, Any]:
        """Return ``to_dict()`` as a nested tree."""
        tree: Dict[str, Any] = {}
        for name, value in self.to_dict().items():
            set_nested_value(tree, name, value)
        return tree

    def to_yaml(self, stream: Optional[TextIO] = None) -> Optional[str]:
        """Dump current values as a YAML document.

        Args:
            stream: Writable text stream  # (the document is returned when omitted)

        Returns:
            YAML text, or None when written to ``stream``
        """
        return yaml.safe_dump(to_plain(self.to_tree()), stream, default_flow_style=False, sort_keys=False)

    def to_json(self, stream: Optional[TextIO] = None, indent: Optional[int] = None) -> Optional[str]:
        """Dump current values as a JSON document, like ``to_yaml``."""
        data = to_plain(self.to_tree())
        if stream is None:
            return json.dumps(data, indent=indent)
        json.dump(data, stream, indent=indent)
        return None

    # ------------------------------------------------------------------
    # Writing (in place, own top layer only)
    # ------------------------------------------------------------------

    def set(self, item: ItemOrName, value: Any) -> None:
        """Set the value of an item in this config.

        Raises:
            ItemNotFoundError: If the item is not registered
            InvalidValueTypeError: If ``value`` does not match the declared type
        """
        resolved, name = self._resolve_item(item)
        check_value(value, resolved.type, name)
        for hook in list(self._before_set):
            hook(resolved, value)
        self._values[name] = value
        for hook in list(self._after_set):
            hook(resolved, value)

    def __setitem__(self, item: ItemOrName, value: Any) -> None:
        self.set(item, value)

    def lazy_set(self, item: ItemOrName, thunk: Callable[[Any], Any]) -> None:
        """Make an item's value a function of the config, evaluated on every read."""
        _, name = self._resolve_item(item)
        self._values[name] = LazyValue(thunk)

    def unset(self, item: ItemOrName) -> None:
        """Remove the value set in this config, exposing lower layers again."""
        _, name = self._resolve_item(item)
        self._values.pop(name, None)

    def __delitem__(self, item: ItemOrName) -> None:
        self.unset(item)

    def clear(self) -> None:
        """Remove every value set in this config."""
        self._values.clear()

    def before_set(self, hook: SetHook) -> Handler:
        """Call ``hook(item, value)`` before every ``set`` on this config."""
        self._before_set.append(hook)
        return Handler(self._before_set, hook)

    def after_set(self, hook: SetHook) -> Handler:
        """Call ``hook(item, value)`` after every ``set`` on this config."""
        self._after_set.append(hook)
        return Handler(self._after_set, hook)

    # ------------------------------------------------------------------
    # Deriving new snapshots
    # ------------------------------------------------------------------

    @property
    def options(self) -> Dict[str, Any]:
        return {
            "fail_on_unknown_path": self.fail_on_unknown_path,
            "list_merge": self.list_merge,
            "optional_source": self.optional_source,
            "load_keys_case_insensitively": self.load_keys_case_insensitively,
        }

    @property
    def layers(self) -> Tuple[Layer, ...]:
        """Layers contributing to this config, oldest first (own values excluded)."""
        return tuple(self._layers)

    @property
    def sources(self) -> List[str]:
        """Descriptions of loaded sources, oldest first."""
        return [layer.name for layer in self._layers if layer.kind == Layer.SOURCE]

    def _frozen_layers(self) -> LayerStack:
        """Layer stack including a frozen copy of this config's own values."""
        if not self._values:
            return self._layers
        return self._layers.push(Layer.from_values(f"{self.name or 'config'} values", self._values))

    def _derive(self, name: str, layer: Optional[Layer] = None) -> "Config":
        child = Config(name, **self.options)
        child._names = dict(self._names)
        child._items_by_name = dict(self._items_by_name)
        child._specs = list(self._specs)
        child._layers = self._frozen_layers()
        if layer is not None:
            child._layers = child._layers.push(layer)
        return child

    def with_layer(self, name: str = "") -> "Config":
        """Return a child config whose own values do not leak into this one."""
        return self._derive(name or f"{self.name or 'config'} layer")

    def with_source(self, source: Source) -> "Config":
        """Return a new config with the tree of ``source`` layered on top.

        Raises:
            UnknownPathError: If ``fail_on_unknown_path`` is on and the tree has
                paths matching no registered item
        """
        if not callable(getattr(source, "tree", None)):
            raise TypeError(f"{source!r} does not provide a tree() method")
        description = getattr(source, "description", "") or type(source).__name__
        tree = normalize_tree(source.tree())
        if self.load_keys_case_insensitively:
            tree = self._fold_key_case(tree)
        layer = Layer(description, tree)
        self._check_unknown_paths(layer)
        child = self._derive(self.name, layer)
        logger.debug("Loaded %s on top of config %r (%d layers)", description, self.name, len(child._layers))
        return child

    @property
    def from_(self) -> DefaultLoaders:
        """Loaders returning new configs with a source layered on top of this one."""
        return DefaultLoaders(self)

    def merge(self, other: "Config") -> "Config":
        """Return a new config with ``other``'s items and layers on top of this one.

        Raises:
            NameConflictError: If a different item is registered under the same name in both
        """
        child = self._derive(f"merged({self.name}, {other.name})")
        new_entries = []
        for item, name in other._names.items():
            if item in child._names:
                if child._names[item] != name:
                    raise NameConflictError(name, f"is registered as {child._names[item]} in {self.name!r}")
                continue
            new_entries.append((item, name))
        child._register(new_entries)
        child._specs.extend(spec for spec in other._specs if spec not in child._specs)
        child._layers = child._layers.extend(other._frozen_layers())
        logger.debug("Merged config %r over %r", other.name, self.name)
        return child

    def __add__(self, other: "Config") -> "Config":
        return self.merge(other)

    def with_prefix(self, prefix: str) -> Union["Config", "RollUpConfig"]:
        """Return a view addressing every item with ``prefix`` in front of its name.

        The inverse of ``at``: ``config.with_prefix("app").at("app")`` reads the
        same names as ``config``. An empty prefix returns ``self``.
        """
        if not to_path(prefix):
            return self
        return RollUpConfig(self, prefix)

    def _fold_key_case(self, tree: Mapping[str, Any]) -> Dict[str, Any]:
        """Rename tree keys to the case of the registered item names they match."""
        canonical: Dict[str, str] = {}
        for name in self._items_by_name:
            parts = to_path(name)
            for end in range(1, len(parts) + 1):
                path = ".".join(parts[:end])
                canonical.setdefault(path.lower(), path)
        return _rename_keys(tree, "", canonical, self._items_by_name)

    def at(self, path: str) -> "DrillDownConfig":
        """Return a view of the items below ``path`` using relative names."""
        return DrillDownConfig(self, path)

    def _check_unknown_paths(self, layer: Layer) -> None:
        unknown = [path for path in layer.paths() if not self._is_known_path(path)]
        if not unknown:
            return
        if self.fail_on_unknown_path:
            raise UnknownPathError(unknown, layer.name)
        logger.debug("Ignoring unknown paths from %s: %s", layer.name, ", ".join(unknown))

    def _is_known_path(self, path: str) -> bool:
        for name in self._items_by_name:
            if path == name or path.startswith(name + ".") or name.startswith(path + "."):
                return True
        return False

    def __repr__(self) -> str:
        return f"Config(name={self.name!r}, items={len(self._names)}, layers={len(self._layers)})"


class DrillDownConfig:
    """View of the items of a config below a path, addressed by relative names.

    Holds no values: every read and write goes to the underlying config.
    """

    def __init__(self, config: Union[Config, "RollUpConfig"], path: str):
        self._config = config
        self.prefix = ".".join(to_path(path))

    def _qualify(self, item: ItemOrName) -> ItemOrName:
        if isinstance(item, Item):
            name = self._config.name_of(item)
            if self._relative(name) is None:
                raise ItemNotFoundError(f"item {item.name}")
            return item
        return join_path(self.prefix, item)

    def _relative(self, name: str) -> Optional[str]:
        if not self.prefix:
            return name
        if name.startswith(self.prefix + "."):
            return name[len(self.prefix) + 1 :]
        return None

    def get(self, item: ItemOrName) -> Any:
        return self._config.get(self._qualify(item))

    def get_or_none(self, item: ItemOrName) -> Any:
        return self._config.get_or_none(self._qualify(item))

    def __getitem__(self, item: ItemOrName) -> Any:
        return self.get(item)

    def set(self, item: ItemOrName, value: Any) -> None:
        self._config.set(self._qualify(item), value)

    def __setitem__(self, item: ItemOrName, value: Any) -> None:
        self.set(item, value)

    def lazy_set(self, item: ItemOrName, thunk: Callable[[Any], Any]) -> None:
        self._config.lazy_set(self._qualify(item), thunk)

    def unset(self, item: ItemOrName) -> None:
        self._config.unset(self._qualify(item))

    def name_of(self, item: Item) -> str:
        """Return the item name relative to this view."""
        relative = self._relative(self._config.name_of(item))
        if relative is None:
            raise ItemNotFoundError(f"item {item.name}")
        return relative

    @property
    def items(self) -> FrozenSet[Item]:
        return frozenset(item for item in self._config if self._relative(self._config.name_of(item)) is not None)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Item):
            return item in self.items
        if isinstance(item, str):
            return join_path(self.prefix, item) in self._config
        return False

    def __iter__(self) -> Iterator[Item]:
        items = self.items
        return iter([item for item in self._config if item in items])

    def at(self, path: str) -> "DrillDownConfig":
        return DrillDownConfig(self._config, join_path(self.prefix, path))

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for name, value in self._config.to_dict().items():
            relative = self._relative(name)
            if relative is not None:
                result[relative] = value
        return result

    def __repr__(self) -> str:
        return f"DrillDownConfig(prefix={self.prefix!r}, config={self._config!r})"


class RollUpConfig:
    """View of a config with a prefix in front of every item name.

    Holds no values: every read and write goes to the underlying config.
    """

    def __init__(self, config: Union[Config, "RollUpConfig"], prefix: str):
        self._config = config
        self.prefix = ".".join(to_path(prefix))

    def _unprefix(self, item: ItemOrName) -> ItemOrName:
        if isinstance(item, Item):
            return item
        name = item.strip()
        if not name.startswith(self.prefix + "."):
            raise ItemNotFoundError(name)
        return name[len(self.prefix) + 1 :]

    def get(self, item: ItemOrName) -> Any:
        return self._config.get(self._unprefix(item))

    def get_or_none(self, item: ItemOrName) -> Any:
        return self._config.get_or_none(self._unprefix(item))

    def __getitem__(self, item: ItemOrName) -> Any:
        return self.get(item)

    def set(self, item: ItemOrName, value: Any) -> None:
        self._config.set(self._unprefix(item), value)

    def __setitem__(self, item: ItemOrName, value: Any) -> None:
        self.set(item, value)

    def lazy_set(self, item: ItemOrName, thunk: Callable[[Any], Any]) -> None:
        self._config.lazy_set(self._unprefix(item), thunk)

    def unset(self, item: ItemOrName) -> None:
        self._config.unset(self._unprefix(item))

    def name_of(self, item: Item) -> str:
        """Return the item name with the prefix."""
        return join_path(self.prefix, self._config.name_of(item))

    @property
    def items(self) -> FrozenSet[Item]:
        return self._config.items

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Item):
            return item in self._config
        if isinstance(item, str):
            name = item.strip()
            return name.startswith(self.prefix + ".") and name[len(self.prefix) + 1 :] in self._config
        return False

    def __iter__(self) -> Iterator[Item]:
        return iter(self._config)

    def __len__(self) -> int:
        return len(self._config)

    def with_layer(self, name: str = "") -> "RollUpConfig":
        """Return the same view over a new layer of the underlying config."""
        return RollUpConfig(self._config.with_layer(name), self.prefix)

    def with_prefix(self, prefix: str) -> "RollUpConfig":
        if not to_path(prefix):
            return self
        return RollUpConfig(self, prefix)

    def at(self, path: str) -> DrillDownConfig:
        return DrillDownConfig(self, path)

    def to_dict(self) -> Dict[str, Any]:
        return {join_path(self.prefix, name): value for name, value in self._config.to_dict().items()}

    def __repr__(self) -> str:
        return f"RollUpConfig(prefix={self.prefix!r}, config={self._config!r})"


def _rename_keys(
    tree: Mapping[str, Any], prefix: str, canonical: Mapping[str, str], item_names: Mapping[str, Any]
) -> Dict[str, Any]:
    """Rename keys of ``tree`` found in ``canonical``, stopping below item names."""
    result: Dict[str, Any] = {}
    for key, value in tree.items():
        path = join_path(prefix, key)
        renamed = canonical.get(path.lower())
        if renamed is None:
            # Unknown path: kept as loaded
            result[key] = value
            continue
        if isinstance(value, Mapping) and renamed not in item_names:
            value = _rename_keys(value, renamed, canonical, item_names)
        segment = to_path(renamed)[-1]
        current = result.get(segment)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            value = deep_merge(current, value)
        result[segment] = value
    return result
