"""Shared utilities for CLI commands."""

import asyncio
import logging
from typing import Awaitable, TypeVar

from rich.console import Console
from rich.logging import RichHandler

from prflow.config import Config
from prflow.store import YamlPrStore

T = TypeVar("T")

# Shared console instance for all CLI output
console = Console()


def setup_logging(verbose: bool) -> None:
    """Route prflow logs to stderr through rich (DEBUG with --verbose, else WARNING)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def get_store(config: Config) -> YamlPrStore:
    """Store rooted at the configured state directory."""
    return YamlPrStore(config.get_state_dir())


def run_async(coro: Awaitable[T]) -> T:
    """Run a coroutine from a synchronous click command."""
    return asyncio.run(coro)
