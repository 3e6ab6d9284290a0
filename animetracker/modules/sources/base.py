from abc import ABC, abstractmethod
from typing import List

from animetracker.models.release import CandidateRelease, ReleaseDetail


class SourceError(Exception):
    """The release site answered with an error or an unparseable page."""

    def __init__(self, message: str, status_code: int = 0, url: str = ""):
        self.message = message
        self.status_code = status_code
        self.url = url
        super().__init__(self.message)


class RateLimitedError(SourceError):
    """HTTP 429 from the release site."""

    def __init__(self, url: str = ""):
        super().__init__(f"Rate limited (429): {url}", status_code=429, url=url)


class ReleaseSource(ABC):
    """Base class for candidate producers"""

    name: str = "Unknown"
    description: str = ""

    @abstractmethod
    async def find_releases(self, query_title: str) -> List[CandidateRelease]:
        """All candidates for a query title (not yet narrowed to one episode)"""
        pass

    @abstractmethod
    async def fetch_detail(self, url: str) -> ReleaseDetail:
        """Detail page for a single candidate"""
        pass
