"""Loopback building blocks for the interactive flow.

* :func:`select_port` -- pick a free TCP port in the dynamic range.
* :class:`RedirectListener` / :func:`await_redirect` -- single-shot HTTP
  listener that captures the authorization redirect.
* :class:`SystemBrowserLauncher` -- fire-and-forget launch of the default
  browser.
"""

from loopauth.loopback.browser import BrowserLauncher, SystemBrowserLauncher
from loopauth.loopback.listener import (
    RedirectListener,
    await_redirect,
    ensure_loopback,
    parse_redirect_query,
)
from loopauth.loopback.ports import MAX_PORT, occupied_tcp_ports, select_port

__all__ = [
    "BrowserLauncher",
    "MAX_PORT",
    "RedirectListener",
    "SystemBrowserLauncher",
    "await_redirect",
    "ensure_loopback",
    "occupied_tcp_ports",
    "parse_redirect_query",
    "select_port",
]
