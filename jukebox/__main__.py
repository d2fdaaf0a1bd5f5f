#!/usr/bin/env python3
# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Remote Jukebox (jukebox)

    jukebox --password SECRET [--source-path /media/music] [--port 3003]

Port: 3003
"""

import logging
import sys

from .lib.config import load_settings
from .lib.errors import ConfigError
from .service import JukeboxService


def main(argv=None):
    try:
        settings = load_settings(argv)
    except ConfigError as e:
        sys.exit(f"jukebox: {e}")

    logging.basicConfig(
        level=logging.DEBUG if settings.verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("jukebox").info(
        "Serving %s on %s:%d", settings.source_path, settings.host, settings.port)
    JukeboxService(settings).run()


if __name__ == "__main__":
    main()
