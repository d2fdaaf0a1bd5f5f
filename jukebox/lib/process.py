# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Process runner for external commands (tree, mpv, amixer, ngrok).

Every call spawns one process with asyncio.create_subprocess_exec, captures
its output up to a ceiling, and can be bound to a CancelToken:

    runner = ProcessRunner()
    token = CancelToken()
    task = asyncio.create_task(runner.run(["mpv", path], token))
    ...
    token.cancel()          # task now fails with ProcessCancelled

A cancelled call raises ProcessCancelled, a failed one ProcessError.  If the
process had already exited by the time cancellation is seen, the real
outcome wins.
"""

import asyncio
import logging

from .errors import ProcessCancelled, ProcessError

logger = logging.getLogger("jukebox.process")

MAX_OUTPUT = 4 * 1024 * 1024   # per stream
TERMINATE_GRACE = 2.0          # seconds between SIGTERM and SIGKILL
_READ_CHUNK = 64 * 1024


class CancelToken:
    """One-shot cancellation signal shared between a caller and run()."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def format_command(template, **values) -> list[str]:
    """Fill an argv template: ["mpv", "{path}"] -> ["mpv", "/music/a.mp3"]."""
    return [str(part).format(**values) for part in template]


async def _read_bounded(stream: asyncio.StreamReader, limit: int, name: str) -> bytes:
    chunks = []
    size = 0
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return b"".join(chunks)
        size += len(chunk)
        if size > limit:
            raise ProcessError(f"{name} exceeded {limit} bytes")
        chunks.append(chunk)


class ProcessRunner:
    """Runs argv commands without a shell."""

    def __init__(self, max_output: int = MAX_OUTPUT,
                 terminate_grace: float = TERMINATE_GRACE, env: dict | None = None):
        self.max_output = max_output
        self.terminate_grace = terminate_grace
        self._env = env

    async def run(self, command, token: CancelToken | None = None) -> str:
        """Run *command* and return its stdout.

        Raises ProcessError on nonzero exit, signal death, a missing
        executable or output overflow; ProcessCancelled if *token* fires
        while the process is still running.
        """
        argv = [str(arg) for arg in command]
        name = argv[0]
        if token is not None and token.cancelled:
            raise ProcessCancelled(f"{name} cancelled before start")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env,
            )
        except OSError as e:
            raise ProcessError(f"{name}: {e}") from e
        logger.debug("Started pid %d: %s", proc.pid, " ".join(argv))

        collect = asyncio.ensure_future(self._collect(proc))
        waiters = {collect}
        if token is not None:
            waiters.add(asyncio.ensure_future(token.wait()))
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            if not collect.done():
                logger.debug("Cancelling pid %d (%s)", proc.pid, name)
                await self._terminate(proc)
                raise ProcessCancelled(f"{name} cancelled", returncode=proc.returncode)
            stdout, stderr = collect.result()
        except BaseException:
            # overflow, or the awaiting task itself was cancelled
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
            raise
        finally:
            for fut in waiters:
                if not fut.done():
                    fut.cancel()

        rc = proc.returncode
        if rc != 0:
            err = stderr.decode("utf-8", errors="replace").strip()
            if rc < 0:
                message = f"{name} killed by signal {-rc}"
            else:
                message = f"{name} exited with status {rc}"
            if err:
                message = f"{message}: {err[-500:]}"
            raise ProcessError(message, returncode=rc, stderr=err)
        return stdout.decode("utf-8", errors="replace")

    async def _collect(self, proc: asyncio.subprocess.Process):
        stdout, stderr = await asyncio.gather(
            _read_bounded(proc.stdout, self.max_output, "stdout"),
            _read_bounded(proc.stderr, self.max_output, "stderr"),
        )
        await proc.wait()
        return stdout, stderr

    async def _terminate(self, proc: asyncio.subprocess.Process):
        try:
            proc.terminate()
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(proc.wait(), self.terminate_grace)
        except asyncio.TimeoutError:
            logger.warning("pid %d ignored SIGTERM, killing", proc.pid)
            proc.kill()
            await proc.wait()
