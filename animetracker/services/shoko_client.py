"""
Shoko Server API v3 Client
Used to: (1) get today's airing episodes, (2) find downloaded files, (3) link files to episodes
"""
import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from animetracker.models.episode import TrackedEpisode
from animetracker.models.library import FileLocation, FileSearchResult, LibraryFile
from animetracker.utils.network import create_httpx_client

logger = logging.getLogger(__name__)


class LibraryError(Exception):
    """Transport or server failure talking to the library server."""

    def __init__(self, message: str, status_code: int = 0):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def _unwrap_list(data: Any) -> list:
    """Shoko returns either a bare list or a paged {List|Items} envelope."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("List") or data.get("Items") or []
    return []


def _series_id(series: Any) -> Optional[int]:
    if series is None:
        return None
    if isinstance(series, int):
        return series
    ids = series.get("IDs") or {}
    for value in (series.get("ID"), series.get("Id"), ids.get("Shoko"), ids.get("ShokoSeries"), series.get("ShokoID")):
        if value is not None:
            return value
    return None


def _series_anidb_id(series: Dict) -> Optional[int]:
    ids = series.get("IDs") or {}
    return series.get("AniDBID") if series.get("AniDBID") is not None else ids.get("AniDB")


def to_tracked_episode(item: Dict) -> TrackedEpisode:
    ids = item.get("IDs") or {}
    return TrackedEpisode(
        anidb_aid=ids.get("Series"),
        ep_number=item.get("Number"),
        anime_title=item.get("SeriesTitle") or "",
        shoko_eid=ids.get("ShokoEpisode"),
        anidb_eid=ids.get("ID"),
        shoko_aid=ids.get("ShokoSeries"),
        episode_title=item.get("Title"),
        air_date=item.get("AirDate"),
    )


def to_file_search_result(data: Any) -> FileSearchResult:
    files = []
    for raw in _unwrap_list(data):
        locations = [
            FileLocation(
                import_folder_id=loc.get("ImportFolderID"),
                relative_path=loc.get("RelativePath"),
            )
            for loc in (raw.get("Locations") or [])
        ]
        files.append(LibraryFile(id=raw.get("ID"), name=raw.get("Name"), locations=locations))
    return FileSearchResult(files=files)


def _link_errors(data: Any) -> List[str]:
    if not data:
        return []
    if isinstance(data, list):
        return [str(item) for item in data]
    if isinstance(data, dict) and data.get("errors"):
        errors = data["errors"]
        if isinstance(errors, dict):
            return [f"{field}: {message}" for field, messages in errors.items() for message in messages]
        return [str(error) for error in errors]
    return []


class ShokoClient:

    def __init__(self, base_url: str, api_key: str = "", client_factory: Callable[..., httpx.AsyncClient] = create_httpx_client):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.client_factory = client_factory
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["apikey"] = api_key

    def _client(self) -> httpx.AsyncClient:
        return self.client_factory(base_url=self.base_url, headers=self.headers)

    async def _get(self, path: str, params: Optional[Dict] = None) -> Optional[Any]:
        """GET returning parsed JSON, or None on 404."""
        try:
            async with self._client() as client:
                resp = await client.get(path, params=params)
        except httpx.HTTPError as e:
            raise LibraryError(f"Connection error: {e}")

        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise LibraryError(f"HTTP {resp.status_code} for {path}", status_code=resp.status_code)
        return resp.json() if resp.content else None

    async def get_calendar_episodes(self, show_all: bool = False, number_of_days: int = 1) -> List[TrackedEpisode]:
        start = date.today()
        end = start + timedelta(days=number_of_days)
        data = await self._get("/api/v3/Dashboard/CalendarEpisodes", params={
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "includeMissing": "True" if show_all else "False",
        })
        return [to_tracked_episode(item) for item in _unwrap_list(data)]

    async def get_series_by_anidb_id(self, anidb_id: int) -> Optional[Dict]:
        try:
            series = await self._get(f"/api/v3/Series/AniDB/{anidb_id}")
            if series is None:
                return None
            if _series_id(series) is not None:
                return series
            # Direct response had no Shoko series ID; fall back to the series list
        except LibraryError as e:
            logger.debug(f"Direct series lookup for AniDB {anidb_id} failed: {e}")

        try:
            series_list = _unwrap_list(await self._get("/api/v3/Series", params={"pageSize": 5000}))
        except LibraryError as e:
            logger.error(f"Series list lookup failed: {e}")
            return None
        return next((s for s in series_list if _series_anidb_id(s) == anidb_id), None)

    async def get_episodes_for_series(self, series_id: Optional[int]) -> List[Dict]:
        if series_id is None:
            return []
        data = await self._get(f"/api/v3/Series/{series_id}/Episode", params={
            "page": 1,
            "pageSize": 500,
            "includeWatched": "True",
            "includeManuallyLinked": "True",
            "includeDataFrom": "AniDB",
        })
        return _unwrap_list(data)

    async def search_files(self, file_name: str) -> FileSearchResult:
        data = await self._get(f"/api/v3/File/Search/{quote(file_name, safe='')}", params={
            "pageSize": 1,
            "page": 1,
            "fuzzy": "true",
        })
        return to_file_search_result(data)

    async def link_file(self, file_id: int, episode_id: int) -> List[str]:
        """Link a file to an episode. Returns the server's error list (empty = linked)."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"/api/v3/File/{file_id}/Link",
                    json={"EpisodeIDs": [episode_id]},
                    headers={"Content-Type": "application/json-patch+json", "Accept": "*/*"},
                )
        except httpx.HTTPError as e:
            raise LibraryError(f"Connection error: {e}")

        if resp.status_code not in (200, 201, 204):
            raise LibraryError(f"Link failed: HTTP {resp.status_code} {resp.text[:200]}", status_code=resp.status_code)
        if not resp.content:
            return []
        try:
            return _link_errors(resp.json())
        except ValueError:
            return []


class ShokoService:
    """Shoko service - wraps the client with logging and safe defaults"""

    def __init__(self, client: ShokoClient):
        self.client = client

    async def get_today_episodes(self, show_all: bool = False) -> List[TrackedEpisode]:
        try:
            episodes = await self.client.get_calendar_episodes(show_all, 1)
        except Exception as e:
            logger.error(f"✗ Error getting today episodes from Shoko: {e}")
            return []

        if not episodes:
            logger.info("ℹ No anime releases scheduled for today")
            return []

        logger.info(f"✓ Found {len(episodes)} episode(s) airing today")
        return episodes

    async def get_series_by_anidb_id(self, anidb_id: int) -> Optional[Dict]:
        try:
            return await self.client.get_series_by_anidb_id(anidb_id)
        except Exception as e:
            logger.error(f"✗ Error getting series info for anidb id {anidb_id}: {e}")
            return None

    async def get_series_episodes(self, series_id: int) -> List[Dict]:
        try:
            return await self.client.get_episodes_for_series(series_id)
        except Exception as e:
            logger.error(f"✗ Error getting episodes for series {series_id}: {e}")
            return []
