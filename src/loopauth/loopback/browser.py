"""Fire-and-forget launch of the user's default browser.

:class:`SystemBrowserLauncher` hands the authorization URL to the OS's
native "open URI" mechanism (``xdg-open``, ``open`` or the Windows shell)
as a detached child. The browser's lifetime is never tied to the flow:
the child is not waited on, its exit code is ignored and cancellation
does not close the window.
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from loopauth.exceptions import BrowserLaunchError

logger = logging.getLogger(__name__)


class BrowserLauncher(ABC):
    """Opens a URL for the user. Implementations must not block on the browser."""

    @abstractmethod
    def open(self, url: str) -> None:
        """Open *url*.

        Raises:
            BrowserLaunchError: If the launch mechanism cannot be started.
        """
        ...


def default_open_command() -> Optional[list[str]]:
    """Return the argv prefix of the platform URI handler.

    ``None`` on Windows, where :func:`os.startfile` is used instead.
    """
    system = platform.system()
    if system == "Windows":
        return None
    if system == "Darwin":
        return ["open"]
    return ["xdg-open"]


class SystemBrowserLauncher(BrowserLauncher):
    """Launch the default browser through the platform URI handler.

    Args:
        command: Optional argv prefix overriding the platform default,
            e.g. ``["firefox", "--new-window"]``. The URL is appended.
    """

    def __init__(self, command: Optional[Sequence[str]] = None) -> None:
        self._command = list(command) if command else None

    def open(self, url: str) -> None:
        command = self._command or default_open_command()
        if command is None:
            self._startfile(url)
            return

        argv = [*command, url]
        try:
            subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                close_fds=True,
                start_new_session=True,
            )
        except OSError as exc:
            raise BrowserLaunchError(
                f"Cannot open a browser with '{argv[0]}': {exc}"
            ) from exc
        logger.debug("Launched browser via %s", argv[0])

    @staticmethod
    def _startfile(url: str) -> None:
        try:
            os.startfile(url)  # type: ignore[attr-defined]
        except OSError as exc:
            raise BrowserLaunchError(f"Cannot open a browser: {exc}") from exc
        logger.debug("Launched browser via the Windows shell")
