"""Loader facets reached through ``Config.from_``.

Every loader builds a source and hands it to ``Config.with_source``; the
config it is bound to is never modified.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Tuple, Union

from .provider import JsonProvider, Provider, YamlProvider, provider_for_file
from .source import (
    EnvSource,
    FlatSource,
    KVSource,
    MapSource,
    PrefixedSource,
    ScopedSource,
    Source,
    SystemPropertiesSource,
)
from .utils import join_path

if TYPE_CHECKING:
    from .config import Config

SourceTransform = Callable[[Source], Source]
NameTransform = Callable[[Tuple[str, ...]], Tuple[str, ...]]


def _identity(source: Source) -> Source:
    return source


def _identity_names(names: Tuple[str, ...]) -> Tuple[str, ...]:
    return names


class MapLoader:
    """Loads in-memory mappings."""

    def __init__(self, config: "Config", transform: SourceTransform = _identity):
        self.config = config
        self._transform = transform

    def kv(self, data: Mapping[str, Any]) -> "Config":
        """Load a flat mapping of dotted item names to values."""
        return self.config.with_source(self._transform(KVSource(data)))

    def hierarchical(self, data: Mapping[str, Any]) -> "Config":
        """Load a nested mapping."""
        return self.config.with_source(self._transform(MapSource(data)))

    def flat(self, data: Mapping[str, str]) -> "Config":
        """Load a flat mapping of dotted item names to strings."""
        return self.config.with_source(self._transform(FlatSource(data)))


class Loader:
    """Loads content through a provider."""

    def __init__(self, config: "Config", provider: Provider, transform: SourceTransform = _identity):
        self.config = config
        self.provider = provider
        self._transform = transform

    def string(self, content: str) -> "Config":
        return self.config.with_source(self._transform(self.provider.string(content)))

    def bytes(self, content: bytes, encoding: str = "utf-8") -> "Config":
        return self.string(content.decode(encoding))

    def file(self, path: Union[str, Path], optional: Optional[bool] = None) -> "Config":
        """Load a file; ``optional`` defaults to the config's ``optional_source``."""
        if optional is None:
            optional = self.config.optional_source
        return self.config.with_source(self._transform(self.provider.file(path, optional=optional)))


class DefaultLoaders:
    """Entry point of every built-in loader for one config.

    Example::

        config.from_.map.kv({"server.port": 8080})
        config.from_.yaml.file("app.yaml")
        config.from_.prefixed("server").env()
    """

    def __init__(
        self,
        config: "Config",
        transform: SourceTransform = _identity,
        unmap_names: NameTransform = _identity_names,
    ):
        self.config = config
        self._transform = transform
        self._unmap_names = unmap_names  # (item names -> names in the tree before the transform)
        self.map = MapLoader(config, transform)
        self.yaml = Loader(config, YamlProvider(), transform)
        self.json = Loader(config, JsonProvider(), transform)

    def mapped(self, transform: SourceTransform, unmap_names: NameTransform = _identity_names) -> "DefaultLoaders":
        """Return loaders applying ``transform`` to every source after the current transform.

        Args:
            transform: Source transform to add
            unmap_names: Maps item names to the names they have before ``transform``
        """
        current, current_unmap = self._transform, self._unmap_names
        return DefaultLoaders(
            self.config,
            lambda source: transform(current(source)),
            lambda names: current_unmap(unmap_names(names)),
        )

    def prefixed(self, prefix: str) -> "DefaultLoaders":
        """Return loaders placing every loaded tree under ``prefix``."""
        head = join_path(prefix)
        return self.mapped(
            lambda source: PrefixedSource(source, prefix),
            lambda names: tuple(name[len(head) + 1 :] for name in names if name.startswith(head + ".")) if head else names,
        )

    def scoped(self, path: str) -> "DefaultLoaders":
        """Return loaders keeping only the sub-tree at ``path`` of every loaded tree."""
        return self.mapped(
            lambda source: ScopedSource(source, path),
            lambda names: tuple(join_path(path, name) for name in names),
        )

    def _env_names(self) -> Tuple[str, ...]:
        """Item names as environment-style sources see them."""
        return self._unmap_names(self.config.item_names)

    def source(self, provider: Provider) -> Loader:
        """Return a loader for any provider."""
        return Loader(self.config, provider, self._transform)

    def env(self, nested: bool = True) -> "Config":
        """Load the process environment."""
        return self.config.with_source(self._transform(EnvSource(nested=nested, names=self._env_names())))

    def env_map(self, environ: Mapping[str, str], nested: bool = True) -> "Config":
        """Load a mapping shaped like the environment."""
        return self.config.with_source(self._transform(EnvSource(environ, nested=nested, names=self._env_names())))

    def system_properties(self) -> "Config":
        """Load the process-wide properties set with ``set_system_property``."""
        return self.config.with_source(self._transform(SystemPropertiesSource()))

    def file(self, path: Union[str, Path], optional: Optional[bool] = None) -> "Config":
        """Load a file with the provider matching its extension.

        Raises:
            UnsupportedExtensionError: If no provider handles the extension
        """
        return Loader(self.config, provider_for_file(path), self._transform).file(path, optional)
