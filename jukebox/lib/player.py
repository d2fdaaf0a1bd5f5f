# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Player controller: owns the single playback session.

States:

    idle     no session
    playing  one session: a player process for one track + its CancelToken

play() and stop() are plain (non-async) methods, so nothing can interleave
between changing the current session and acting on the old one.  Every
play() and stop() bumps a generation counter; a session task that resumes
with a stale generation was superseded and must leave the controller alone.

    natural exit      -> if still current: clear, play(successor) or go idle
    ProcessCancelled  -> superseded by a later play()/stop(), nothing to do
    ProcessError      -> logged, idle, no retry
    anything else     -> logged with traceback, idle
"""

import asyncio
import logging

from .errors import ProcessCancelled, ProcessError
from .process import CancelToken, format_command

logger = logging.getLogger("jukebox.player")

PLAYER_COMMAND = ["mpv", "--no-video", "--no-terminal", "{path}"]


class PlaybackSession:
    """A player process running for one track."""

    def __init__(self, track, generation: int):
        self.track = track
        self.generation = generation
        self.token = CancelToken()
        self.task: asyncio.Task | None = None


class PlayerController:
    """Starts, stops and auto-advances playback through the library."""

    def __init__(self, library, runner, command=None):
        self.library = library
        self._runner = runner
        self._command = list(command or PLAYER_COMMAND)
        self._session: PlaybackSession | None = None
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def session(self) -> PlaybackSession | None:
        return self._session

    @property
    def current(self):
        return self._session.track if self._session else None

    @property
    def state(self) -> str:
        return "playing" if self._session else "idle"

    def status(self) -> dict:
        track = self.current
        return {
            "state": self.state,
            "track": track.short_path if track else None,
            "index": track.index if track else None,
            "tracks": len(self.library),
        }

    def _is_current(self, session: PlaybackSession) -> bool:
        return session.generation == self._generation

    def play(self, track) -> PlaybackSession:
        """Preempt whatever is playing and start *track*.

        Returns as soon as the new session is recorded; playback continues
        in a background task.
        """
        self.stop()
        self._generation += 1
        session = PlaybackSession(track, self._generation)
        self._session = session
        session.task = asyncio.get_running_loop().create_task(self._run_session(session))
        self._tasks.add(session.task)
        session.task.add_done_callback(self._tasks.discard)
        logger.info("Playing [%d/%d] %s", track.index + 1, len(self.library), track.short_path)
        return session

    def stop(self) -> bool:
        """Cancel the current session, if any.  Returns True if one was live."""
        session = self._session
        if session is None:
            return False
        # clear before cancel: the old task must see itself as stale
        self._generation += 1
        self._session = None
        session.token.cancel()
        logger.info("Stopped %s", session.track.short_path)
        return True

    async def _run_session(self, session: PlaybackSession):
        try:
            command = format_command(self._command, path=session.track.path)
            await self._runner.run(command, session.token)
        except ProcessCancelled:
            logger.debug("Session %d cancelled (%s)", session.generation,
                         session.track.short_path)
            return
        except ProcessError as e:
            logger.error("Playback of %s failed: %s", session.track.short_path, e)
            if self._is_current(session):
                self._session = None
            return
        except Exception:
            logger.exception("Playback of %s crashed", session.track.short_path)
            if self._is_current(session):
                self._session = None
            return

        if not self._is_current(session):
            logger.debug("Session %d finished after being superseded", session.generation)
            return

        self._session = None
        successor = self.library.successor(session.track)
        if successor is None:
            logger.info("Reached end of library, idle")
            return
        logger.info("Auto-advance: track %d -> %d", session.track.index, successor.index)
        self.play(successor)

    async def shutdown(self):
        """Stop playback and wait for every session task to settle."""
        self.stop()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
