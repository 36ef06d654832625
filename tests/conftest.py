"""Shared pytest fixtures for the mailcraft test suite."""

from __future__ import annotations

# Disable Rich colors BEFORE any imports
# Rich checks these at import time
import os

os.environ["NO_COLOR"] = "1"
os.environ["TERM"] = "dumb"
os.environ["FORCE_COLOR"] = "0"
os.environ["COLUMNS"] = "200"

import logging
from collections.abc import Iterator
from typing import Any

import pytest

import mailcraft.config.loader as _cfg_loader
import mailcraft.logging as _logging_pkg

# pylint: disable=redefined-outer-name


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Reset global configuration and logging state around every test."""
    monkeypatch.delenv(_cfg_loader.CONFIG_ENV_VAR, raising=False)
    _cfg_loader.clear_config()
    yield
    _cfg_loader.clear_config()
    _logging_pkg._root_logger = None  # pylint: disable=protected-access
    root = logging.getLogger("mailcraft")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def session_config() -> dict[str, Any]:
    """Return a configuration mapping with a complete ``mail.session`` section."""
    return {
        "mail": {
            "session": {
                "host": "smtp.config.example",
                "smtp_port": 2525,
                "ssl_smtp_port": 4650,
                "socket_connection_timeout": 5000,
                "socket_timeout": 7000,
                "charset": "iso-8859-1",
            }
        }
    }
