# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
ALSA volume control via amixer.

Fire-and-forget: each request sets the mixer and nothing is remembered.
Override the card/control with volume.card / volume.control in config.json
or replace the whole argv with volume.command.
"""

import logging

from .errors import ValidationError
from .process import format_command

logger = logging.getLogger("jukebox.volume")

DEFAULT_CONTROL = "Master"


def validate_volume(value) -> int:
    """Return *value* as an int percentage or raise ValidationError."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("suspicious request")
    if value != value or value < 0 or value > 100:
        raise ValidationError("suspicious request")
    return round(value)


class AmixerVolume:
    """Sets the output volume through the process runner."""

    def __init__(self, runner, control: str = DEFAULT_CONTROL,
                 card: str | None = None, command=None):
        self._runner = runner
        if command:
            self._command = list(command)
        else:
            self._command = ["amixer"]
            if card:
                self._command += ["-c", card]
            self._command += ["sset", control, "{volume}%"]

    async def set_volume(self, level) -> None:
        level = validate_volume(level)
        await self._runner.run(format_command(self._command, volume=level))
        logger.info("-> volume: %d%%", level)
