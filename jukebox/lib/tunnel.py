# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Public URL for the local HTTP port via an ngrok agent.

The agent runs as a long-lived process (``ngrok start --none``) owned by
the process runner, and the tunnel is created through the agent's local
REST API:

    POST http://127.0.0.1:4040/api/tunnels
    {"name": "jukebox", "proto": "http", "addr": "3003"}
    -> {"public_url": "https://....ngrok-free.app", ...}

The agent needs a few seconds to come up, so the POST is retried.
"""

import asyncio
import logging
import os

import aiohttp

from .errors import ProcessCancelled, ProcessError, TunnelError
from .process import CancelToken

logger = logging.getLogger("jukebox.tunnel")

AGENT_API_URL = "http://127.0.0.1:4040"
TUNNEL_NAME = "jukebox"


class NgrokTunnel:
    """Starts the ngrok agent and opens one HTTP tunnel through it."""

    def __init__(self, runner, session: aiohttp.ClientSession,
                 binary: str = "ngrok", api_url: str = AGENT_API_URL,
                 authtoken: str | None = None, retries: int = 5,
                 retry_delay: float = 1.0):
        self._runner = runner
        self._session = session
        self._binary = binary
        self._api_url = api_url.rstrip("/")
        self._authtoken = authtoken if authtoken is not None else os.getenv("NGROK_AUTHTOKEN")
        self._retries = retries
        self._retry_delay = retry_delay
        self._token: CancelToken | None = None
        self._agent_task: asyncio.Task | None = None
        self.public_url: str | None = None

    def _agent_command(self) -> list[str]:
        cmd = [self._binary, "start", "--none", "--log", "false"]
        if self._authtoken:
            cmd += ["--authtoken", self._authtoken]
        return cmd

    async def connect(self, port: int) -> str:
        """Open a tunnel to *port* and return its public URL.  Raises TunnelError."""
        if self._agent_task is None:
            self._token = CancelToken()
            self._agent_task = asyncio.create_task(
                self._runner.run(self._agent_command(), self._token))

        payload = {"name": TUNNEL_NAME, "proto": "http", "addr": str(port)}
        for attempt in range(self._retries):
            if self._agent_task.done():
                await self._raise_agent_exit()
            try:
                async with self._session.post(
                    f"{self._api_url}/api/tunnels", json=payload,
                    timeout=aiohttp.ClientTimeout(total=5),
                ) as resp:
                    data = await resp.json(content_type=None)
                    if not isinstance(data, dict):
                        raise TunnelError(f"ngrok agent sent unexpected reply (HTTP {resp.status})")
                    if resp.status < 300 and data.get("public_url"):
                        self.public_url = data["public_url"]
                        logger.info("Tunnel open: %s -> localhost:%d", self.public_url, port)
                        return self.public_url
                    message = data.get("msg") or f"HTTP {resp.status}"
                    raise TunnelError(f"ngrok agent refused tunnel: {message}")
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                if attempt < self._retries - 1:
                    delay = self._retry_delay * (attempt + 1)
                    logger.debug("ngrok agent not ready (attempt %d/%d, retry in %.1fs): %s",
                                 attempt + 1, self._retries, delay, e)
                    await asyncio.sleep(delay)
                else:
                    raise TunnelError(
                        f"ngrok agent unreachable after {self._retries} attempts: {e}") from e
        raise TunnelError("ngrok agent unreachable")

    async def _raise_agent_exit(self):
        try:
            await self._agent_task
        except ProcessError as e:
            raise TunnelError(f"ngrok agent failed: {e}") from e
        raise TunnelError("ngrok agent exited")

    async def close(self):
        """Stop the agent, which tears the tunnel down with it."""
        if self._agent_task is None:
            return
        self._token.cancel()
        try:
            await self._agent_task
        except ProcessCancelled:
            pass
        except ProcessError as e:
            logger.debug("ngrok agent ended with error: %s", e)
        self._agent_task = None
        self.public_url = None
