"""
Push notifications via ntfy, with Download/Ignore action buttons
"""
import json
import logging
import re
import unicodedata
from typing import Callable, Dict, List, Optional

import httpx

from animetracker.config import Settings
from animetracker.models.episode import TrackedEpisode
from animetracker.models.release import CandidateRelease
from animetracker.utils.network import create_httpx_client

logger = logging.getLogger(__name__)

NOTIFICATION_TAGS = "video,anime"


def header_safe(value) -> str:
    """Reduce a header value to printable ASCII (diacritics folded, the rest dropped)."""
    if value is None:
        return ""
    text = unicodedata.normalize('NFKD', str(value))
    text = text.encode('ascii', 'ignore').decode('ascii')
    return re.sub(r'[^\x20-\x7e]', '', text).strip()


class Notifier:
    """Sends messages to a single ntfy topic URL"""

    def __init__(self, settings: Settings, client_factory: Callable[[], httpx.AsyncClient] = create_httpx_client):
        self.settings = settings
        self.client_factory = client_factory

    def _build_actions(self, episode: TrackedEpisode, release: CandidateRelease) -> Optional[List[Dict]]:
        api_base_url = self.settings.api_base_url
        if not api_base_url:
            return None

        actions = []
        if release.magnet and release.file_list:
            actions.append({
                "action": "http",
                "label": "Download",
                "url": f"{api_base_url}/download",
                "method": "POST",
                "headers": {
                    "Content-Type": "application/json",
                    "X-Download-Token": self.settings.download_token or "",
                },
                "body": json.dumps({
                    "magnet": release.magnet,
                    "title": release.title,
                    "episodeId": episode.shoko_eid,
                    "fileList": [f.to_dict() for f in release.file_list],
                }),
                "clear": True,
            })

        actions.append({
            "action": "http",
            "label": "Ignore",
            "url": f"{api_base_url}/ignore",
            "method": "POST",
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"releaseId": release.id, "title": release.title}),
            "clear": True,
        })
        return actions

    async def _post(self, message: str, headers: Dict[str, str]) -> bool:
        if not self.settings.has_notifications():
            logger.warning("⚠ NTFY_URL not configured, skipping notification")
            return False

        safe_headers = {key: header_safe(value) for key, value in headers.items() if value}
        if self.settings.ntfy_auth:
            safe_headers["Authorization"] = header_safe(self.settings.ntfy_auth)

        try:
            async with self.client_factory() as client:
                resp = await client.post(self.settings.ntfy_url, content=message.encode('utf-8'), headers=safe_headers)
                resp.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"✗ Failed to send ntfy notification: {e}")
            return False

    async def send_release_notification(self, episode: TrackedEpisode, release: CandidateRelease,
                                        group_name: Optional[str]) -> bool:
        message = (
            f"Group: {group_name or 'Unknown'}\n"
            f"Codec: {release.codec.value}\n"
            f"Size: {release.file_size or 'Unknown'}\n"
            f"Seeders: {release.seeders if release.seeders is not None else 'Unknown'}"
        )
        headers = {
            "Title": release.title,
            "Tags": NOTIFICATION_TAGS,
            "Click": release.url or release.magnet,
        }
        actions = self._build_actions(episode, release)
        if actions:
            headers["Actions"] = json.dumps(actions)

        sent = await self._post(message, headers)
        if sent:
            logger.info(f"✓ Ntfy notification sent for {episode}")
        return sent

    async def send_simple_notification(self, title: str, message: str, click_url: str = "") -> bool:
        headers = {"Title": title, "Tags": NOTIFICATION_TAGS}
        if click_url:
            headers["Click"] = click_url

        sent = await self._post(message, headers)
        if sent:
            logger.info(f"✓ Ntfy message sent: {title}")
        return sent
