import asyncio
from typing import Dict, List, Optional

import pytest

from animetracker.models.episode import TrackedEpisode
from animetracker.models.library import FileLocation, FileSearchResult, LibraryFile
from animetracker.models.release import CandidateRelease, Codec, ReleaseDetail, SourceChannel
from animetracker.modules.sources.base import ReleaseSource
from animetracker.services.qbittorrent_client import TorrentStatus


class FakeNotifier:
    def __init__(self, fail: bool = False, delay: float = 0):
        self.fail = fail
        self.delay = delay
        self.releases = []
        self.messages = []

    async def send_release_notification(self, episode, release, group_name):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("ntfy unreachable")
        self.releases.append((episode, release, group_name))
        return True

    async def send_simple_notification(self, title, message, click_url=""):
        self.messages.append((title, message))
        return True


class FakeSource(ReleaseSource):
    name = "fake"

    def __init__(self, releases: List[CandidateRelease], details: Optional[Dict[str, ReleaseDetail]] = None):
        self.releases = releases
        self.details = details or {}
        self.queries = []
        self.detail_calls = []

    async def find_releases(self, query_title):
        self.queries.append(query_title)
        return list(self.releases)

    async def fetch_detail(self, url):
        self.detail_calls.append(url)
        return self.details.get(url, ReleaseDetail())


class FakeLibrary:
    """Returns queued search results in order; the last one repeats."""

    def __init__(self, search_results=None, link_results=None):
        self.search_results = list(search_results or [])
        self.link_results = list(link_results or [[]])
        self.searches = []
        self.links = []

    async def search_files(self, file_name):
        self.searches.append(file_name)
        result = self.search_results.pop(0) if len(self.search_results) > 1 else self.search_results[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def link_file(self, file_id, episode_id):
        self.links.append((file_id, episode_id))
        result = self.link_results.pop(0) if len(self.link_results) > 1 else self.link_results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeTorrentClient:
    def __init__(self, statuses=None, add_result=True):
        self.statuses = list(statuses or [TorrentStatus(progress=1.0, state="uploading", name="Sample")])
        self.add_result = add_result
        self.added = []
        self.closed = False

    async def add_magnet(self, magnet):
        self.added.append(magnet)
        return self.add_result

    async def get_status(self, info_hash):
        return self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]

    async def close(self):
        self.closed = True


def library_result(file_id=42, path="Sample Anime - 05.mkv", folder=1, name=None):
    return FileSearchResult(files=[LibraryFile(
        id=file_id,
        name=name,
        locations=[FileLocation(import_folder_id=folder, relative_path=path)],
    )])


def make_release(release_id="2073640", title="[GroupX] Sample Anime - 05 [1080p][HEVC]", episode=5,
                 channel=SourceChannel.RSS, **kwargs):
    return CandidateRelease(
        id=release_id,
        title=title,
        url=f"https://nyaa.si/view/{release_id}",
        channel=channel,
        episode=episode,
        codec=kwargs.pop("codec", Codec.HEVC),
        **kwargs,
    )


@pytest.fixture
def episode():
    return TrackedEpisode(anidb_aid=123, ep_number=5, anime_title="Sample Anime", shoko_eid=9001)


@pytest.fixture
def notifier():
    return FakeNotifier()


async def no_sleep(seconds):
    return None
