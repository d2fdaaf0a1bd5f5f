# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Jukebox HTTP service.

Serves the track list and accepts playback commands from the browser.
Every route except the page itself needs the shared secret in the
Authorization header.

    GET  /         track-list page
    POST /         {"file": base64(short path)}  play a track
    POST /stop     stop playback
    POST /volume   {"volume": 0..100}
    GET  /status   current state as JSON

Errors come back as a JSON string with 400 (bad payload), 401 (wrong
password) or 500 (external command failed).  Play requests return as soon
as the session is recorded, never when the song ends.
"""

import asyncio
import contextlib
import hmac
import logging

import aiohttp
from aiohttp import web

from .lib.config import Settings, cfg
from .lib.errors import AuthError, JukeboxError, ScanError, TunnelError, ValidationError
from .lib.library import AUDIO_EXTENSIONS, LIST_COMMAND, Library, build_index
from .lib.page import render_page
from .lib.player import PLAYER_COMMAND, PlayerController
from .lib.process import ProcessRunner
from .lib.tunnel import AGENT_API_URL, NgrokTunnel
from .lib.volume import DEFAULT_CONTROL, AmixerVolume
from .lib.watchdog import watchdog_loop

logger = logging.getLogger("jukebox.http")

SERVICE_KEY = web.AppKey("jukebox.service", object)

# Routes reachable without the shared secret
PUBLIC_ROUTES = {("GET", "/"), ("HEAD", "/")}


async def _json_body(request: web.Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        raise ValidationError("invalid json")
    if not isinstance(data, dict):
        raise ValidationError("invalid json")
    return data


class JukeboxService:
    """Owns the controllers and the aiohttp app that fronts them."""

    def __init__(self, settings: Settings, runner: ProcessRunner | None = None,
                 library: Library | None = None):
        self.settings = settings
        self.runner = runner or ProcessRunner()
        self._preloaded = library is not None
        self.extensions = tuple(cfg("library", "extensions", default=AUDIO_EXTENSIONS))
        self.player = PlayerController(
            library if library is not None else Library(settings.source_path, (), self.extensions),
            self.runner,
            cfg("player", "command", default=PLAYER_COMMAND),
        )
        self.volume = AmixerVolume(
            self.runner,
            control=cfg("volume", "control", default=DEFAULT_CONTROL),
            card=cfg("volume", "card"),
            command=cfg("volume", "command"),
        )
        self.tunnel: NgrokTunnel | None = None
        self._http_session: aiohttp.ClientSession | None = None
        self._watchdog_task: asyncio.Task | None = None
        self._tunnel_task: asyncio.Task | None = None

    @property
    def library(self) -> Library:
        return self.player.library

    # ── App ──

    def create_app(self) -> web.Application:
        app = web.Application(middlewares=[self._error_middleware, self._auth_middleware])
        app[SERVICE_KEY] = self
        app.router.add_get("/", self._handle_page)
        app.router.add_post("/", self._handle_play)
        app.router.add_post("/stop", self._handle_stop)
        app.router.add_post("/volume", self._handle_volume)
        app.router.add_get("/status", self._handle_status)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    def run(self):
        web.run_app(self.create_app(), host=self.settings.host, port=self.settings.port,
                    print=lambda msg: logger.info(msg))

    # ── Middleware ──

    @web.middleware
    async def _error_middleware(self, request: web.Request, handler):
        try:
            return await handler(request)
        except JukeboxError as e:
            if e.status >= 500:
                logger.error("%s %s failed: %s", request.method, request.path, e)
            return web.json_response(str(e), status=e.status)
        except web.HTTPException:
            raise
        except Exception:
            logger.exception("Unhandled error in %s %s", request.method, request.path)
            return web.json_response("internal error", status=500)

    @web.middleware
    async def _auth_middleware(self, request: web.Request, handler):
        if request.match_info.http_exception is not None:
            raise request.match_info.http_exception
        if (request.method, request.path) not in PUBLIC_ROUTES:
            supplied = request.headers.get("Authorization", "")
            if not hmac.compare_digest(supplied.encode(), self.settings.password.encode()):
                logger.warning("wrong password from %s (%s %s)",
                               request.remote, request.method, request.path)
                raise AuthError("wrong password")
        return await handler(request)

    # ── Handlers ──

    async def _handle_page(self, request: web.Request) -> web.Response:
        return web.Response(text=render_page(self.library), content_type="text/html")

    async def _handle_play(self, request: web.Request) -> web.Response:
        data = await _json_body(request)
        logger.info("Song request: %s", data.get("file"))
        track = self.library.resolve(data.get("file"))
        # don't wait for the song to end
        self.player.play(track)
        return web.Response()

    async def _handle_stop(self, request: web.Request) -> web.Response:
        logger.info("Stop request")
        self.player.stop()
        return web.Response()

    async def _handle_volume(self, request: web.Request) -> web.Response:
        data = await _json_body(request)
        logger.info("Volume request: %s", data.get("volume"))
        await self.volume.set_volume(data.get("volume"))
        return web.Response()

    async def _handle_status(self, request: web.Request) -> web.Response:
        status = self.player.status()
        status["public_url"] = self.tunnel.public_url if self.tunnel else None
        return web.json_response(status)

    # ── Lifecycle ──

    async def _on_startup(self, app: web.Application):
        self._http_session = aiohttp.ClientSession()
        # runs alongside the server, never holds up startup
        self._tunnel_task = asyncio.create_task(self._open_tunnel())
        await self._load_library()
        self._watchdog_task = asyncio.create_task(watchdog_loop())

    async def _load_library(self):
        if self._preloaded:
            return
        try:
            library = await build_index(
                self.settings.source_path, self.runner,
                command=cfg("library", "command", default=LIST_COMMAND),
                extensions=self.extensions,
            )
        except ScanError as e:
            logger.error("%s; track list will be empty", e)
            return
        self.player.library = library

    async def _open_tunnel(self):
        if not self.settings.tunnel:
            logger.info("Tunnel disabled, serving on port %d only", self.settings.port)
            return
        self.tunnel = NgrokTunnel(
            self.runner, self._http_session,
            binary=cfg("tunnel", "binary", default="ngrok"),
            api_url=cfg("tunnel", "api_url", default=AGENT_API_URL),
        )
        try:
            url = await self.tunnel.connect(self.settings.port)
        except TunnelError as e:
            logger.error("Tunnel unavailable, serving locally only: %s", e)
            return
        logger.info("Public URL: %s", url)

    async def _on_cleanup(self, app: web.Application):
        if self._watchdog_task:
            self._watchdog_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watchdog_task
            self._watchdog_task = None
        if self._tunnel_task:
            self._tunnel_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._tunnel_task
            self._tunnel_task = None
        await self.player.shutdown()
        if self.tunnel:
            await self.tunnel.close()
        if self._http_session:
            await self._http_session.close()
            self._http_session = None
