"""Free TCP port selection for the redirect listener.

The selector snapshots every local port currently used by a TCP socket on
the host (established connections and listeners alike) and picks one of
the remaining ports at random. Picking randomly rather than the lowest
free port keeps concurrent login attempts from racing for the same port.
The snapshot can go stale before the listener binds; a lost race shows up
as :class:`~loopauth.exceptions.ListenerBindError`.

Where the OS refuses to enumerate sockets (unprivileged users on macOS),
candidates are tried in random order with a throwaway loopback bind
instead.
"""

from __future__ import annotations

import logging
import random
import socket
from typing import Iterable, Optional

import psutil

from loopauth.exceptions import NoAvailablePortError

logger = logging.getLogger(__name__)

MAX_PORT = 65535


def occupied_tcp_ports() -> Optional[set[int]]:
    """Return the local ports of all active TCP connections and listeners.

    Returns:
        The set of ports in use, or ``None`` if the OS does not let this
        process enumerate sockets.
    """
    try:
        connections = psutil.net_connections(kind="tcp")
    except psutil.AccessDenied:
        logger.debug("Not allowed to enumerate TCP sockets; probing ports by binding")
        return None
    return {conn.laddr.port for conn in connections if conn.laddr}


def select_port(
    range_start: int = 10000, occupied: Optional[Iterable[int]] = None
) -> int:
    """Pick a random port in ``[range_start, 65535]`` that nothing is using.

    Args:
        range_start: Lowest acceptable port.
        occupied: Snapshot of ports in use. Defaults to a fresh
            :func:`occupied_tcp_ports` snapshot.

    Returns:
        A port number that was free at the time of the snapshot.

    Raises:
        NoAvailablePortError: If *range_start* is out of range or every
            port in the range is taken.
    """
    if not 1 <= range_start <= MAX_PORT:
        raise NoAvailablePortError(
            f"Port range start must be between 1 and {MAX_PORT}, got {range_start}"
        )

    if occupied is None:
        occupied = occupied_tcp_ports()
        if occupied is None:
            return _probe_port(range_start)

    taken = set(occupied)
    candidates = [p for p in range(range_start, MAX_PORT + 1) if p not in taken]
    if not candidates:
        raise NoAvailablePortError(
            f"No free TCP port in range {range_start}-{MAX_PORT}"
        )

    port = random.choice(candidates)
    logger.debug(
        "Selected port %d (%d of %d candidates free)",
        port,
        len(candidates),
        MAX_PORT - range_start + 1,
    )
    return port


def _probe_port(range_start: int) -> int:
    candidates = list(range(range_start, MAX_PORT + 1))
    random.shuffle(candidates)
    for port in candidates:
        if _can_bind(port):
            logger.debug("Selected port %d by bind probe", port)
            return port
    raise NoAvailablePortError(f"No free TCP port in range {range_start}-{MAX_PORT}")


def _can_bind(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("127.0.0.1", port))
        except OSError:
            return False
        return True
