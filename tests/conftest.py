import pytest

from jukebox.lib import config


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """No config.json from the host, no systemd socket."""
    monkeypatch.setattr(config, "_config", {})
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)
    monkeypatch.delenv("JUKEBOX_PASSWORD", raising=False)
    monkeypatch.delenv("NGROK_AUTHTOKEN", raising=False)
