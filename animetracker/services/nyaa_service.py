"""
Nyaa service - feed/search lookups with rate-limited detail enrichment
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from animetracker.models.release import CandidateRelease, ReleaseDetail
from animetracker.modules.sources.base import RateLimitedError, ReleaseSource
from animetracker.modules.sources.nyaa import NyaaModule
from animetracker.services.release_processor import select_for_episode

logger = logging.getLogger(__name__)

INITIAL_DELAY = 0.2
DELAY_STEP = 0.5


class RateLimitedScraper:
    """
    Sequential detail fetcher with adaptive backoff.

    A single delay value is shared across one batch: every 429 grows it by
    DELAY_STEP, and later candidates in the same batch keep the larger delay.
    """

    def __init__(
        self,
        scrape: Callable[[str], Awaitable[ReleaseDetail]],
        initial_delay: float = INITIAL_DELAY,
        step: float = DELAY_STEP,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.scrape = scrape
        self.delay = initial_delay
        self.step = step
        self.sleep = sleep

    async def scrape_with_retry(self, url: str) -> ReleaseDetail:
        """Fetch one detail page, retrying forever on 429; other errors propagate."""
        while True:
            try:
                return await self.scrape(url)
            except RateLimitedError:
                self.delay += self.step
                logger.warning(f"⚠ Rate limited (429). Retrying in {self.delay:.1f}s...")
                await self.sleep(self.delay)

    async def enrich_all(self, releases: List[CandidateRelease]) -> List[CandidateRelease]:
        """Enrich candidates one by one, sleeping the current delay between requests."""
        enriched = []
        fetched = False
        for release in releases:
            if not release.url:
                enriched.append(release)
                continue

            # Delay only between two page requests
            if fetched:
                await self.sleep(self.delay)
            fetched = True

            try:
                detail = await self.scrape_with_retry(release.url)
                enriched.append(release.with_detail(detail))
            except Exception as e:
                logger.warning(f"⚠ Could not scrape data for: {release.title}, error: {e}")
                enriched.append(release)

        return enriched


async def scrape_with_retry(
    url: str,
    initial_delay: float = INITIAL_DELAY,
    scrape: Optional[Callable[[str], Awaitable[ReleaseDetail]]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ReleaseDetail:
    """One-off detail fetch with 429 backoff."""
    if scrape is None:
        scrape = NyaaModule().fetch_detail
    return await RateLimitedScraper(scrape, initial_delay, sleep=sleep).scrape_with_retry(url)


class NyaaService:
    """Wraps the feed and search sources with episode selection and enrichment"""

    def __init__(
        self,
        rss_source: ReleaseSource,
        search_source: ReleaseSource,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.rss_source = rss_source
        self.search_source = search_source
        self.sleep = sleep

    def _scraper(self, source: ReleaseSource) -> RateLimitedScraper:
        return RateLimitedScraper(source.fetch_detail, sleep=self.sleep)

    async def check_rss_for_episode(self, anime_title: str, ep_number: int) -> List[CandidateRelease]:
        """Feed candidates for one episode, enriched. Errors are logged, never raised."""
        try:
            found = await self.rss_source.find_releases(anime_title)
            matches = select_for_episode(found, ep_number)
            return await self._scraper(self.rss_source).enrich_all(matches)
        except Exception as e:
            logger.error(f"✗ RSS check failed for {anime_title}: {e}")
            return []

    async def scrape_for_episode(self, anime_title: str, ep_number: int) -> List[CandidateRelease]:
        """Search candidates for one episode, enriched. Errors are logged, never raised."""
        try:
            found = await self.search_source.find_releases(anime_title)
            matches = select_for_episode(found, ep_number)
            return await self._scraper(self.search_source).enrich_all(matches)
        except Exception as e:
            logger.error(f"✗ Scrape check failed for {anime_title}: {e}")
            return []
