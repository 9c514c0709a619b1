"""Browser launch capability for the browser-delegated authorization."""

from __future__ import annotations

import logging
import webbrowser
from typing import Callable, Optional, Protocol

from ..exceptions import BrowserLaunchError

logger = logging.getLogger(__name__)


class BrowserLauncher(Protocol):
    def launch(self, url: str) -> None:
        """Open ``url`` for the user, raising BrowserLaunchError on failure."""
        ...


class SystemBrowserLauncher:
    """Opens URLs in the OS default browser.

    Headless or mobile integrators pass ``external`` to open the URL themselves
    (e.g. print it, or hand it to a platform intent).
    """

    def __init__(self, external: Optional[Callable[[str], None]] = None) -> None:
        self._external = external

    def launch(self, url: str) -> None:
        if self._external is not None:
            self._external(url)
            return
        if not webbrowser.open(url):
            raise BrowserLaunchError(f"Could not open browser. Open this URL manually:\n  {url}")
        logger.debug("Opened system browser for authorization")
