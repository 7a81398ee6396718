"""Open URLs in the user's browser."""

import logging
import webbrowser

from prflow.executor import run_blocking

logger = logging.getLogger(__name__)


class BrowserOpenError(Exception):
    """No browser could be launched."""


def _open(url: str) -> None:
    if not webbrowser.open(url):
        raise BrowserOpenError(f"No browser available to open {url}")


async def open_browser(url: str) -> None:
    """Open ``url`` in the default browser without blocking the event loop.

    Raises:
        BrowserOpenError: If no browser could be launched
    """
    logger.debug(f"Opening {url} in browser")
    await run_blocking(_open, url)
