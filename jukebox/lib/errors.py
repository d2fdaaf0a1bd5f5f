# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Error taxonomy for the jukebox service.

The HTTP gateway maps these onto status codes; everything else is logged
where it happens.
"""


class JukeboxError(Exception):
    """Base class for all jukebox errors."""

    status = 500


class AuthError(JukeboxError):
    """Missing or wrong shared secret."""

    status = 401


class ValidationError(JukeboxError):
    """Malformed request payload, path or volume."""

    status = 400


class ProcessError(JukeboxError):
    """An external command exited nonzero, died, or overflowed its output."""

    def __init__(self, message: str, returncode: int | None = None,
                 stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ProcessCancelled(ProcessError):
    """The command was terminated through its CancelToken.

    An expected interruption, never a fault.  Always catch it before
    ProcessError.
    """


class ScanError(JukeboxError):
    """The library listing command failed."""


class TunnelError(JukeboxError):
    """The tunnel relay could not be reached."""


class ConfigError(JukeboxError):
    """Startup configuration is unusable (e.g. no shared secret)."""
