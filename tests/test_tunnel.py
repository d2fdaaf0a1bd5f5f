import unittest

import aiohttp
from aiohttp import web
from aiohttp.test_utils import TestServer, unused_port

from jukebox.lib.errors import ProcessCancelled, ProcessError, TunnelError
from jukebox.lib.tunnel import NgrokTunnel

from .fakes import settle


class AgentRunner:
    """Stands in for a long-running ngrok agent."""

    def __init__(self, error=None):
        self.commands = []
        self.tokens = []
        self.error = error

    async def run(self, command, token=None):
        self.commands.append(command)
        self.tokens.append(token)
        if self.error:
            raise self.error
        await token.wait()
        raise ProcessCancelled("ngrok cancelled")


class NgrokTunnelTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.requests = []
        self.reply = (201, {"name": "jukebox", "public_url": "https://abc.ngrok.app"})
        app = web.Application()
        app.router.add_post("/api/tunnels", self._handle_tunnels)
        self.server = TestServer(app)
        await self.server.start_server()
        self.session = aiohttp.ClientSession()

    async def asyncTearDown(self):
        await self.session.close()
        await self.server.close()

    async def _handle_tunnels(self, request):
        self.requests.append(await request.json())
        status, body = self.reply
        return web.json_response(body, status=status)

    def _tunnel(self, runner, api_url=None, **kwargs):
        return NgrokTunnel(runner, self.session,
                           api_url=api_url or str(self.server.make_url("/")),
                           retry_delay=0.01, **kwargs)

    async def test_connect_returns_public_url(self):
        runner = AgentRunner()
        tunnel = self._tunnel(runner, authtoken="tok")
        url = await tunnel.connect(3003)
        self.assertEqual(url, "https://abc.ngrok.app")
        self.assertEqual(tunnel.public_url, url)
        self.assertEqual(self.requests, [{"name": "jukebox", "proto": "http", "addr": "3003"}])
        await settle()
        self.assertEqual(runner.commands,
                         [["ngrok", "start", "--none", "--log", "false", "--authtoken", "tok"]])
        await tunnel.close()
        self.assertTrue(runner.tokens[0].cancelled)
        self.assertIsNone(tunnel.public_url)

    async def test_agent_refuses(self):
        self.reply = (502, {"error_code": 102, "msg": "invalid tunnel configuration"})
        tunnel = self._tunnel(AgentRunner(), authtoken="")
        with self.assertRaises(TunnelError) as ctx:
            await tunnel.connect(3003)
        self.assertIn("invalid tunnel configuration", str(ctx.exception))
        await tunnel.close()

    async def test_agent_reply_not_an_object(self):
        for body in (["jukebox"], "https://abc.ngrok.app", None):
            with self.subTest(body=body):
                self.reply = (201, body)
                tunnel = self._tunnel(AgentRunner(), authtoken="")
                with self.assertRaises(TunnelError) as ctx:
                    await tunnel.connect(3003)
                self.assertIn("unexpected reply", str(ctx.exception))
                self.assertIsNone(tunnel.public_url)
                await tunnel.close()

    async def test_agent_unreachable(self):
        tunnel = self._tunnel(AgentRunner(), api_url=f"http://127.0.0.1:{unused_port()}",
                              authtoken="", retries=2)
        with self.assertRaises(TunnelError):
            await tunnel.connect(3003)
        await tunnel.close()

    async def test_agent_fails_to_start(self):
        runner = AgentRunner(error=ProcessError("ngrok: No such file or directory"))
        tunnel = self._tunnel(runner, api_url=f"http://127.0.0.1:{unused_port()}",
                              authtoken="", retries=3)
        with self.assertRaises(TunnelError) as ctx:
            await tunnel.connect(3003)
        self.assertIn("ngrok agent failed", str(ctx.exception))
        await tunnel.close()

    async def test_close_without_connect(self):
        await self._tunnel(AgentRunner()).close()
