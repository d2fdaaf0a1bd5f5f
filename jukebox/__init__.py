"""
Remote jukebox: play music from a local library, controlled from a browser.

  service.py   aiohttp gateway + lifecycle
  lib/         process runner, library index, player/volume controllers,
                 ngrok tunnel, config, systemd watchdog
"""

__version__ = "1.0.0"
