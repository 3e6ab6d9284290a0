from urllib.parse import parse_qs

import httpx
import pytest

from animetracker.config import Settings
from animetracker.services.qbittorrent_client import (
    QBittorrentClient,
    TorrentClientError,
    TorrentClientNotConfigured,
    TorrentStatus,
    extract_info_hash,
    is_transfer_complete,
)


def test_extract_info_hash():
    assert extract_info_hash("magnet:?xt=urn:btih:0123456789ABCDEF0123456789ABCDEF01234567&dn=x") == \
        "0123456789abcdef0123456789abcdef01234567"
    assert extract_info_hash("magnet:?dn=x&xt=urn:btih:" + "A" * 32) == "00" * 20
    assert extract_info_hash("magnet:?xt=urn:btih:" + "7" * 32) == "ff" * 20
    assert extract_info_hash("magnet:?xt=urn:btih:nothash") is None
    assert extract_info_hash("magnet:?dn=x") is None
    assert extract_info_hash(None) is None


def test_is_transfer_complete():
    assert not is_transfer_complete(None)
    assert is_transfer_complete(TorrentStatus(1.0, "downloading"))
    assert is_transfer_complete(TorrentStatus(0.99, "stalledUP"))
    assert is_transfer_complete(TorrentStatus(None, "pausedUP"))
    assert not is_transfer_complete(TorrentStatus(0.5, "downloading"))


def test_from_settings_requires_configuration():
    with pytest.raises(TorrentClientNotConfigured):
        QBittorrentClient.from_settings(Settings(qbittorrent_url="http://qbit:8080"))

    client = QBittorrentClient.from_settings(Settings(
        qbittorrent_url="http://qbit:8080/", qbittorrent_username="admin", qbittorrent_password="pw"))
    assert client.base_url == "http://qbit:8080"


class FakeQBittorrent:
    def __init__(self, add_answer="Ok.", login_answer="Ok.", expire_once=False):
        self.add_answer = add_answer
        self.login_answer = login_answer
        self.expire_once = expire_once
        self.logins = 0
        self.added = []

    def __call__(self, request):
        if request.url.path == "/api/v2/auth/login":
            self.logins += 1
            form = parse_qs(request.content.decode())
            assert form == {"username": ["admin"], "password": ["pw"]}
            return httpx.Response(200, text=self.login_answer)
        if self.expire_once:
            self.expire_once = False
            return httpx.Response(403)
        if request.url.path == "/api/v2/torrents/add":
            self.added.append(parse_qs(request.content.decode())["urls"][0])
            return httpx.Response(200, text=self.add_answer)
        if request.url.path == "/api/v2/torrents/info":
            return httpx.Response(200, json=[{"progress": 1, "state": "uploading", "name": "Sample"}])
        return httpx.Response(404)


def make_client(server):
    transport = httpx.MockTransport(server)
    return QBittorrentClient("http://qbit:8080", "admin", "pw",
                             client_factory=lambda **kwargs: httpx.AsyncClient(transport=transport, **kwargs))


async def test_add_magnet():
    server = FakeQBittorrent()
    client = make_client(server)

    assert await client.add_magnet("magnet:?xt=urn:btih:abc")
    assert server.added == ["magnet:?xt=urn:btih:abc"]
    assert server.logins == 1
    await client.close()


async def test_add_magnet_fails_answer():
    client = make_client(FakeQBittorrent(add_answer="Fails."))
    assert not await client.add_magnet("magnet:?xt=urn:btih:abc")
    await client.close()


async def test_login_failure():
    client = make_client(FakeQBittorrent(login_answer="Fails."))
    with pytest.raises(TorrentClientError):
        await client.add_magnet("magnet:?xt=urn:btih:abc")
    await client.close()


async def test_expired_session_logs_in_again():
    server = FakeQBittorrent(expire_once=True)
    client = make_client(server)

    status = await client.get_status("0123")

    assert server.logins == 2
    assert status == TorrentStatus(progress=1.0, state="uploading", name="Sample")
    await client.close()
