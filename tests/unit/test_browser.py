"""Tests for prflow.browser module."""

from unittest.mock import patch

import pytest

from prflow.browser import BrowserOpenError, open_browser


class TestOpenBrowser:
    """Tests for opening PR URLs."""

    @pytest.mark.asyncio
    async def test_opens_url(self) -> None:
        with patch("prflow.browser.webbrowser.open", return_value=True) as mock_open:
            await open_browser("https://github.com/acme/widgets/pull/1")

        mock_open.assert_called_once_with("https://github.com/acme/widgets/pull/1")

    @pytest.mark.asyncio
    async def test_no_browser(self) -> None:
        with patch("prflow.browser.webbrowser.open", return_value=False):
            with pytest.raises(BrowserOpenError):
                await open_browser("https://github.com/acme/widgets/pull/1")
