"""Lazy value evaluation with cycle detection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, Iterator, Union

from .exceptions import CyclicDependencyError

if TYPE_CHECKING:
    from .config import Config
    from .item import Item


class LazyEvaluator:
    """Evaluates lazy values for one top-level read.

    Items under evaluation are tracked by identity; meeting one again means
    the lazy functions depend on each other in a cycle.
    """

    def __init__(self) -> None:
        self.resolving: Dict["Item", str] = {}  # (items being evaluated -> name, in call order)

    def evaluate(self, item: "Item", name: str, thunk: Callable[["ItemContainer"], Any], config: "Config") -> Any:
        """Call ``thunk`` with a read-only view of ``config``.

        Args:
            item: Item whose value is being computed
            name: Registered name of the item  # (used in the cycle path)
            thunk: Lazy function stored for or declared by the item
            config: Config providing the evaluation context

        Returns:
            Raw result of the function  # (not yet coerced to the item type)

        Raises:
            CyclicDependencyError: If ``item`` is already being evaluated
        """
        if item in self.resolving:
            names = list(self.resolving.values())
            cycle = names[names.index(self.resolving[item]) :] + [name]
            raise CyclicDependencyError(cycle)

        self.resolving[item] = name
        try:
            return thunk(ItemContainer(config, self))
        finally:
            del self.resolving[item]


class ItemContainer:
    """Read-only view of a config handed to lazy functions.

    Reads go through the same evaluator as the read that triggered the
    function, so nested lazy items share one cycle check.
    """

    __slots__ = ("_config", "_evaluator")

    def __init__(self, config: "Config", evaluator: LazyEvaluator):
        self._config = config
        self._evaluator = evaluator

    def get(self, item: Union["Item", str]) -> Any:
        """Get the current value of an item, by item or by name."""
        return self._config._get(item, self._evaluator)

    def get_or_none(self, item: Union["Item", str]) -> Any:
        return self._config._get(item, self._evaluator, allow_unset=True)

    def __getitem__(self, item: Union["Item", str]) -> Any:
        return self.get(item)

    def __contains__(self, item: object) -> bool:
        return item in self._config

    def name_of(self, item: "Item") -> str:
        return self._config.name_of(item)

    @property
    def items(self) -> FrozenSet["Item"]:
        return self._config.items

    def __iter__(self) -> Iterator["Item"]:
        return iter(self._config)

    def __repr__(self) -> str:
        return f"ItemContainer({self._config!r})"
