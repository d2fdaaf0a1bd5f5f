"""Test doubles for the process runner."""

import asyncio

from jukebox.lib.errors import ProcessCancelled

ROOT = "/media/music"

LISTING = """\
/media/music
/media/music/ABBA
/media/music/ABBA/1976 - Arrival
/media/music/ABBA/1976 - Arrival/01 - Tiger.mp3
/media/music/ABBA/1976 - Arrival/02 - Dancing Queen.mp3
/media/music/ABBA/1976 - Arrival/cover.jpg
/media/music/Кино
/media/music/Кино/1988 - Группа крови
/media/music/Кино/1988 - Группа крови/01 - Группа крови.mp3
"""


class Call:
    def __init__(self, command, token, done):
        self.command = command
        self.token = token
        self.done = done

    @property
    def path(self):
        return self.command[-1]

    def finish(self, output=""):
        self.done.set_result(output)

    def fail(self, error):
        self.done.set_exception(error)


class FakeRunner:
    """Records commands.  Token-bound calls block until finished or cancelled.

    Mirrors ProcessRunner: if the call already finished when the token
    fires, the real outcome wins.
    """

    def __init__(self, error=None):
        self.calls: list[Call] = []
        self.commands: list[list[str]] = []
        self.error = error

    async def run(self, command, token=None):
        self.commands.append(list(command))
        if token is None:
            if self.error:
                raise self.error
            return ""
        done = asyncio.get_running_loop().create_future()
        self.calls.append(Call(list(command), token, done))
        cancelled = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({done, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
        if done.done():
            return done.result()
        raise ProcessCancelled(f"{command[0]} cancelled")


async def settle(rounds: int = 10):
    """Let scheduled tasks run up to their next real suspension."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ListingRunner(FakeRunner):
    """Answers the library listing command with LISTING."""

    async def run(self, command, token=None):
        output = await super().run(command, token)
        return LISTING if command[0] == "tree" else output
