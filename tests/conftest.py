"""Shared pytest fixtures for the mailcraft test suite."""

from __future__ import annotations

# Disable Rich colors and force wide terminal BEFORE any imports
# Rich checks these at import time
import os

os.environ["NO_COLOR"] = "1"
os.environ["TERM"] = "dumb"
os.environ["FORCE_COLOR"] = "0"
os.environ["COLUMNS"] = "200"  # Prevent text wrapping in CLI output

import logging
from collections.abc import Iterator

import pytest

from mailcraft.config import MailSettings
from mailcraft.dispatch import MemoryDispatcher
from mailcraft.i18n import MessageCatalog
from mailcraft.mailer import Mailer
from mailcraft.metrics import MemoryStats

# pylint: disable=redefined-outer-name


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """Undo handlers and levels installed by init_logging."""
    logger = logging.getLogger("mailcraft")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)


@pytest.fixture
def settings() -> MailSettings:
    """Return settings for a fictional site."""
    return MailSettings(site_name="Dreamscape", site_root="https://www.example.org")


@pytest.fixture
def catalog() -> MessageCatalog:
    """Return the bundled English catalog."""
    return MessageCatalog()


@pytest.fixture
def dispatcher() -> MemoryDispatcher:
    """Return an accepting in-memory dispatcher."""
    return MemoryDispatcher()


@pytest.fixture
def stats() -> MemoryStats:
    """Return in-process counters."""
    return MemoryStats()


@pytest.fixture
def mailer(settings: MailSettings, dispatcher: MemoryDispatcher, catalog: MessageCatalog, stats: MemoryStats) -> Mailer:
    """Return a mailer wired to in-memory collaborators."""
    return Mailer(settings, dispatcher, catalog=catalog, stats=stats)

