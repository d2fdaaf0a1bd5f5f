# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""systemd notify support: READY/STOPPING plus a WATCHDOG=1 heartbeat.

No-ops when NOTIFY_SOCKET is unset (dev mode, tests).
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger("jukebox.watchdog")


def sd_notify(msg: str, environ=None) -> bool:
    """Send *msg* to the systemd notify socket.  Returns False if there is none."""
    addr = (os.environ if environ is None else environ).get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    finally:
        sock.close()
    return True


def watchdog_interval(environ=None, default: float = 20.0) -> float:
    """Half of WATCHDOG_USEC in seconds, or *default* when systemd sets none."""
    usec = (os.environ if environ is None else environ).get("WATCHDOG_USEC")
    try:
        return int(usec) / 2_000_000 if usec else default
    except ValueError:
        return default


async def watchdog_loop(interval: float | None = None):
    """Announce READY=1, then send WATCHDOG=1 forever.  Run as a task."""
    interval = interval or watchdog_interval()
    if not sd_notify("READY=1"):
        return
    logger.info("Watchdog started (interval=%.0fs)", interval)
    while True:
        sd_notify("WATCHDOG=1")
        await asyncio.sleep(interval)
