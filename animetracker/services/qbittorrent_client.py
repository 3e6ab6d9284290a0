"""
qBittorrent WebUI API v2 client
"""
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import unquote

import httpx

from animetracker.config import Settings
from animetracker.utils.network import create_httpx_client

logger = logging.getLogger(__name__)

COMPLETED_STATES = {"pausedup", "queuedup", "forcedup", "completed"}


class TorrentClientError(Exception):
    """qBittorrent rejected a request or could not be reached."""


class TorrentClientNotConfigured(TorrentClientError):
    pass


@dataclass
class TorrentStatus:
    progress: Optional[float]
    state: str
    name: Optional[str] = None


def extract_info_hash(magnet: str) -> Optional[str]:
    """
    Info hash (lower-case hex) from a magnet link's xt=urn:btih: parameter.
    Accepts 40-char hex or 32-char base32 hashes.
    """
    match = re.search(r'(?:\?|&)xt=urn:btih:([^&]+)', str(magnet or ''), re.IGNORECASE)
    if not match:
        return None
    raw = unquote(match.group(1)).strip()
    if re.fullmatch(r'[a-fA-F0-9]{40}', raw):
        return raw.lower()
    if re.fullmatch(r'[a-zA-Z2-7]{32}', raw):
        try:
            return binascii.hexlify(base64.b32decode(raw.upper())).decode('ascii')
        except (binascii.Error, ValueError):
            return None
    return None


def is_transfer_complete(status: Optional[TorrentStatus]) -> bool:
    if status is None:
        return False
    if status.progress is not None and status.progress >= 1:
        return True
    state = (status.state or '').lower()
    return 'uploading' in state or 'stalledup' in state or state in COMPLETED_STATES


class QBittorrentClient:

    def __init__(self, url: str, username: str, password: str,
                 client_factory: Callable[..., httpx.AsyncClient] = create_httpx_client):
        self.base_url = url.rstrip('/')
        self.username = username
        self.password = password
        self.client_factory = client_factory
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "QBittorrentClient":
        if not settings.has_torrent_client():
            raise TorrentClientNotConfigured(
                "qBittorrent not configured (QBITTORRENT_URL, QBITTORRENT_USERNAME, QBITTORRENT_PASSWORD)"
            )
        return cls(settings.qbittorrent_url, settings.qbittorrent_username, settings.qbittorrent_password, **kwargs)

    async def _session(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self.client_factory(base_url=self.base_url, headers={"Referer": self.base_url})
            await self.login()
        return self._client

    async def login(self):
        try:
            resp = await self._client.post(
                "/api/v2/auth/login",
                data={"username": self.username, "password": self.password},
            )
        except httpx.HTTPError as e:
            raise TorrentClientError(f"qBittorrent unreachable: {e}")

        if resp.status_code != 200 or resp.text.strip() != "Ok.":
            raise TorrentClientError(f"qBittorrent login failed: HTTP {resp.status_code} {resp.text[:100]!r}")
        logger.debug("✓ qBittorrent login ok")

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = await self._session()
        try:
            resp = await client.request(method, path, **kwargs)
            if resp.status_code == 403:
                # Session expired
                await self.login()
                resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise TorrentClientError(f"qBittorrent request failed: {e}")

        if resp.status_code != 200:
            raise TorrentClientError(f"qBittorrent HTTP {resp.status_code} for {path}")
        return resp

    async def add_magnet(self, magnet: str) -> bool:
        """Hand a magnet to qBittorrent. False when it answers "Fails."."""
        resp = await self._request("POST", "/api/v2/torrents/add", data={"urls": magnet})
        return resp.text.strip() != "Fails."

    async def get_status(self, info_hash: str) -> Optional[TorrentStatus]:
        resp = await self._request("GET", "/api/v2/torrents/info", params={"hashes": info_hash})
        torrents = resp.json()
        if not isinstance(torrents, list) or not torrents:
            return None
        info = torrents[0]
        progress = info.get("progress")
        return TorrentStatus(
            progress=float(progress) if isinstance(progress, (int, float)) else None,
            state=str(info.get("state") or ""),
            name=info.get("name"),
        )

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
