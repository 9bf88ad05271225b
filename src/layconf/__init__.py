"""layconf - Layered Typed Configuration.

A configuration core supporting typed item specs, layered sources merged in
precedence order, lazily computed values, and snapshot derivation.
"""
# ruff: noqa: F401

from .config import Config, DrillDownConfig, Handler, RollUpConfig
from .exceptions import (
    ConfigError,
    CyclicDependencyError,
    InvalidPathError,
    InvalidValueTypeError,
    ItemNotFoundError,
    NameConflictError,
    NoValueError,
    PathConflictError,
    SourceError,
    UnknownPathError,
    UnsupportedExtensionError,
    WrongTypeError,
)
from .facets import DefaultLoaders, Loader, MapLoader
from .item import Item, ItemKind, Spec
from .layer import LazyValue, Layer
from .lazy import ItemContainer
from .provider import JsonProvider, Provider, YamlProvider, register_provider
from .source import (
    EnvSource,
    FlatSource,
    KVSource,
    MapSource,
    PrefixedSource,
    ScopedSource,
    Source,
    SystemPropertiesSource,
    clear_system_property,
    set_system_property,
)
from .utils import ListMerge

__version__ = "0.1.0"
