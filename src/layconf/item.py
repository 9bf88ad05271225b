"""Typed configuration items and the specs that group them.

A spec declares items under a common prefix::

    buffer = Spec("network.buffer")
    size = buffer.optional("size", 256, description="size of buffer in KB")
    max_size = buffer.lazy("max_size", lambda c: c[size] * 4, int)

Items are immutable and compared by identity, so the same item object can be
registered in many configs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional, Tuple

from .coercion import check_value
from .exceptions import InvalidPathError, NameConflictError
from .utils import join_path, to_path

if TYPE_CHECKING:
    from .lazy import ItemContainer


class ItemKind(enum.Enum):
    """How an item obtains a value when no layer provides one."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    LAZY = "lazy"


class _NoDefault:
    """Sentinel for items declared without a default (distinct from ``None``)."""

    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()


@dataclass(frozen=True, eq=False)
class Item:
    """Descriptor of one typed configuration key.

    Attributes:
        spec: Spec that declared this item
        name: Item name without the spec prefix
        type: Declared type  # (see layconf.coercion for supported kinds)
        kind: Required, optional or lazy
        default: Value returned before any layer sets one (optional items)
        thunk: Function evaluated against the config when unset (lazy items)
        description: Human readable description
    """

    spec: "Spec" = field(repr=False)
    name: str
    type: Any
    kind: ItemKind
    default: Any = NO_DEFAULT
    thunk: Optional[Callable[["ItemContainer"], Any]] = field(default=None, repr=False)
    description: str = ""

    def __post_init__(self) -> None:
        if not to_path(self.name):
            raise InvalidPathError(self.name)
        object.__setattr__(self, "name", self.name.strip())
        if self.kind is ItemKind.OPTIONAL:
            if self.default is NO_DEFAULT:
                raise ValueError(f"optional item {self.name} needs a default value")
            check_value(self.default, self.type, self.name)
        if self.kind is ItemKind.LAZY and self.thunk is None:
            raise ValueError(f"lazy item {self.name} needs a thunk")

    @property
    def path(self) -> List[str]:
        """Item path without prefix."""
        return to_path(self.name)

    @property
    def is_required(self) -> bool:
        return self.kind is ItemKind.REQUIRED

    @property
    def is_optional(self) -> bool:
        return self.kind is ItemKind.OPTIONAL

    @property
    def is_lazy(self) -> bool:
        return self.kind is ItemKind.LAZY


class Spec:
    """An ordered group of items sharing a name prefix."""

    def __init__(self, prefix: str = "", description: str = ""):
        """Initialize an empty spec.

        Args:
            prefix: Dot-separated prefix for every item  # (may be empty)
            description: Human readable description
        """
        self.prefix = join_path(*to_path(prefix))
        self.description = description
        self._items: Dict[str, Item] = {}

    def required(self, name: str, item_type: Any, description: str = "") -> Item:
        """Declare an item that must receive a value before it is read."""
        return self.add_item(Item(self, name, item_type, ItemKind.REQUIRED, description=description))

    def optional(self, name: str, default: Any, item_type: Any = None, description: str = "") -> Item:
        """Declare an item with a default value.

        The type is inferred from ``default`` when ``item_type`` is omitted.
        """
        if item_type is None:
            if default is None:
                raise ValueError(f"cannot infer the type of {name} from a None default")
            item_type = type(default)
        return self.add_item(Item(self, name, item_type, ItemKind.OPTIONAL, default=default, description=description))

    def lazy(
        self,
        name: str,
        thunk: Callable[["ItemContainer"], Any],
        item_type: Any = Any,
        description: str = "",
    ) -> Item:
        """Declare an item computed from other items whenever it has no value."""
        return self.add_item(Item(self, name, item_type, ItemKind.LAZY, thunk=thunk, description=description))

    def add_item(self, item: Item) -> Item:
        """Add an item to this spec.

        Raises:
            NameConflictError: If an item with the same name exists
        """
        if item.name in self._items:
            raise NameConflictError(self.qualify(item))
        self._items[item.name] = item
        return item

    def qualify(self, item: Item) -> str:
        """Return the item name with this spec's prefix."""
        return join_path(self.prefix, item.name)

    @property
    def items(self) -> Tuple[Item, ...]:
        return tuple(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items.values())

    def __contains__(self, item: object) -> bool:
        return isinstance(item, Item) and self._items.get(item.name) is item

    def __repr__(self) -> str:
        return f"Spec(prefix={self.prefix!r}, items={list(self._items)})"
