"""Providers turning YAML or JSON content into sources."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, TextIO, Union, runtime_checkable

import yaml

from .exceptions import SourceError, UnsupportedExtensionError
from .source import EmptySource, MapSource, Source
from .utils import load_yaml

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@runtime_checkable
class Provider(Protocol):
    """Creates sources from raw content."""

    def string(self, content: str) -> Source:
        ...

    def file(self, path: PathLike, optional: bool = False) -> Source:
        ...


class _TextProvider:
    """Shared reading logic; subclasses only parse a text stream."""

    format_name = "text"

    def _parse(self, stream: Union[str, TextIO]) -> Any:
        raise NotImplementedError

    def _to_source(self, data: Any, description: str) -> Source:
        if data is None:
            # An empty document contributes nothing
            return EmptySource(description)
        return MapSource(data, description)

    def string(self, content: str) -> Source:
        """Parse ``content`` into a source."""
        description = f"{self.format_name} string"
        return self._to_source(self._safe_parse(content, description), description)

    def bytes(self, content: bytes, encoding: str = "utf-8") -> Source:
        """Decode and parse ``content`` into a source."""
        return self.string(content.decode(encoding))

    def file(self, path: PathLike, optional: bool = False) -> Source:
        """Read and parse the file at ``path``.

        Args:
            path: File to read
            optional: Return an empty source instead of failing when the file is missing

        Raises:
            SourceError: If the file is missing (and not optional) or cannot be parsed
        """
        path = Path(path)
        description = f"{self.format_name} file {path}"
        if not path.exists():
            if optional:
                logger.debug("Optional %s not found, loading nothing", description)
                return EmptySource(description)
            raise SourceError(f"{description} does not exist")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = self._safe_parse(f, description)
        except OSError as e:
            raise SourceError(f"cannot read {description}: {e}") from e
        return self._to_source(data, description)

    def _safe_parse(self, stream: Union[str, TextIO], description: str) -> Any:
        try:
            return self._parse(stream)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise SourceError(f"cannot parse {description}: {e}") from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class YamlProvider(_TextProvider):
    """Provider for YAML documents."""

    format_name = "yaml"

    def _parse(self, stream: Union[str, TextIO]) -> Any:
        return load_yaml(stream)


class JsonProvider(_TextProvider):
    """Provider for JSON documents."""

    format_name = "json"

    def _parse(self, stream: Union[str, TextIO]) -> Any:
        if isinstance(stream, str):
            return json.loads(stream)
        return json.load(stream)


_PROVIDERS: Dict[str, Provider] = {
    "yaml": YamlProvider(),
    "yml": YamlProvider(),
    "json": JsonProvider(),
}


def register_provider(extension: str, provider: Provider) -> None:
    """Register ``provider`` for files ending with ``extension``."""
    _PROVIDERS[extension.lower().lstrip(".")] = provider


def provider_for_extension(extension: str) -> Optional[Provider]:
    return _PROVIDERS.get(extension.lower().lstrip("."))


def provider_for_file(path: PathLike) -> Provider:
    """Find the provider matching the extension of ``path``.

    Raises:
        UnsupportedExtensionError: If no provider handles the extension
    """
    provider = provider_for_extension(Path(path).suffix)
    if provider is None:
        raise UnsupportedExtensionError(str(path))
    return provider
