"""Configuration loading for mailcraft.

Configuration lives in ``mailcraft.conf.yml`` files. The loader searches the
following locations, from lowest to highest priority, and deep-merges every
file it finds:

1. ``~/.config/mailcraft.conf.yml``
2. ``~/mailcraft.conf.yml``
3. ``./mailcraft.conf.yml``

An explicit ``path`` argument (or the ``MAILCRAFT_CONFIG`` environment
variable) bypasses the search and loads exactly one file.

The merged mapping is wrapped in a :class:`box.Box` with ``default_box``
enabled so nested lookups on missing sections return empty boxes instead of
raising ``KeyError``.

Examples:
    >>> from mailcraft.config import load_config
    >>> config = load_config()  # doctest: +SKIP
    >>> config.mail.session.host  # doctest: +SKIP
    'smtp.example.com'
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from box import Box

from mailcraft.config.exceptions import (
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigNotLoadedError,
)

log = logging.getLogger(__name__)

CONFIG_FILENAME = "mailcraft.conf.yml"
CONFIG_ENV_VAR = "MAILCRAFT_CONFIG"

_config: Box | None = None


def _search_paths(filename: str) -> list[Path]:
    """Return candidate config paths ordered from lowest to highest priority."""
    home = Path.home()
    return [
        home / ".config" / filename,
        home / filename,
        Path.cwd() / filename,
    ]


def _load_yaml_file(path: Path, encoding: str = "utf-8") -> dict[str, Any]:
    """Parse a YAML file into a plain dictionary.

    Args:
        path: File to read.
        encoding: Text encoding of the file.

    Returns:
        The parsed mapping (empty dict for an empty file).

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigFormatError: If the YAML is malformed or not a mapping.
    """
    if not path.is_file():
        raise ConfigFileNotFoundError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding=encoding))
    except yaml.YAMLError as e:
        raise ConfigFormatError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFormatError(f"Top-level YAML node in {path} must be a mapping, got {type(data).__name__}")
    return data


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``.

    Nested mappings are merged key by key; any other value in ``override``
    replaces the one in ``base``.

    Examples:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        {'a': {'x': 1, 'y': 3}}
    """
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_from_file(path: str | Path, *, encoding: str = "utf-8") -> Box:
    """Load a single configuration file without touching the global state.

    Args:
        path: YAML file to load.
        encoding: Text encoding of the file.

    Returns:
        The configuration wrapped in a ``Box``.
    """
    data = _load_yaml_file(Path(path).expanduser(), encoding)
    return Box(data, default_box=True)


def load_config(
    path: str | Path | None = None,
    *,
    filename: str = CONFIG_FILENAME,
    encoding: str = "utf-8",
) -> Box:
    """Load the global configuration and cache it.

    Args:
        path: Explicit configuration file. Falls back to ``MAILCRAFT_CONFIG``
            and then to the cascading search.
        filename: File name used by the cascading search.
        encoding: Text encoding of the files.

    Returns:
        The merged configuration.

    Raises:
        ConfigFileNotFoundError: If an explicit path does not exist.
        ConfigFormatError: If any file is malformed.
    """
    global _config  # pylint: disable=global-statement

    explicit = path or os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        merged = _load_yaml_file(Path(explicit).expanduser(), encoding)
        log.debug("Loaded configuration from %s", explicit)
    else:
        merged = {}
        for candidate in _search_paths(filename):
            if candidate.is_file():
                merged = deep_merge(merged, _load_yaml_file(candidate, encoding))
                log.debug("Merged configuration from %s", candidate)

    _config = Box(merged, default_box=True)
    return _config


def get_config() -> Box:
    """Return the configuration loaded by :func:`load_config`.

    Raises:
        ConfigNotLoadedError: If no configuration has been loaded yet.
    """
    if _config is None:
        raise ConfigNotLoadedError("Configuration not loaded; call load_config() first")
    return _config


def clear_config() -> None:
    """Forget the cached global configuration."""
    global _config  # pylint: disable=global-statement
    _config = None


__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "clear_config",
    "deep_merge",
    "get_config",
    "load_config",
    "load_from_file",
]
