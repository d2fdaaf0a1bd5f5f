import os
import socket
import tempfile
import unittest

from jukebox.lib.watchdog import sd_notify, watchdog_interval


class SdNotifyTests(unittest.TestCase):
    def test_no_socket_is_noop(self):
        self.assertFalse(sd_notify("READY=1", environ={}))

    def test_sends_datagram(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "notify")
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
            self.addCleanup(sock.close)
            sock.bind(path)
            self.assertTrue(sd_notify("READY=1", environ={"NOTIFY_SOCKET": path}))
            self.assertEqual(sock.recv(64), b"READY=1")


class IntervalTests(unittest.TestCase):
    def test_half_of_watchdog_usec(self):
        self.assertEqual(watchdog_interval({"WATCHDOG_USEC": "30000000"}), 15.0)

    def test_default(self):
        self.assertEqual(watchdog_interval({}), 20.0)
        self.assertEqual(watchdog_interval({"WATCHDOG_USEC": "bogus"}), 20.0)
