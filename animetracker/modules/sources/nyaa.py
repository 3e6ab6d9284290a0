"""
Nyaa Source Modules
RSS feed reader, search-results scraper and detail-page enrichment
"""
import logging
import re
from typing import List, Optional, Union
from urllib.parse import quote
from xml.etree import ElementTree as ET

from bs4 import BeautifulSoup

from animetracker.models.release import CandidateRelease, FileEntry, ReleaseDetail, SourceChannel
from animetracker.modules.sources.base import RateLimitedError, ReleaseSource, SourceError
from animetracker.services.title_parser import (
    detect_codec,
    extract_season_episode,
    matches_title,
    normalize_for_match,
    strip_release_year,
)
from animetracker.utils.network import create_aiohttp_session

logger = logging.getLogger(__name__)

NYAA_NS = {"nyaa": "https://nyaa.si/xmlns/nyaa"}
# Anime - English-translated
ANIME_CATEGORY = "1_2"
RESOLUTION_MARKER = "1080"


def _last_path_segment(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    return url.split('#')[0].rstrip('/').split('/')[-1] or None


def _to_number(text: Optional[str]) -> Union[int, str, None]:
    """Numeric value of a counter cell, raw text when it holds no digits."""
    if text is None:
        return None
    digits = re.sub(r'[^0-9]', '', text)
    return int(digits) if digits else text


def _to_int(text: str) -> int:
    try:
        return int(text.strip())
    except (ValueError, AttributeError):
        return 0


def parse_feed(content: str, query_title: str) -> List[CandidateRelease]:
    """
    Parse the RSS feed and keep 1080p anime items whose title contains
    every token of the query title.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise SourceError(f"Invalid RSS feed: {e}")

    query_tokens = normalize_for_match(strip_release_year(query_title))
    candidates = []

    for item in root.findall('.//item'):
        title = (item.findtext('title') or '').strip()
        category = (item.findtext('nyaa:categoryId', '', NYAA_NS) or '').strip()

        if RESOLUTION_MARKER not in title.lower() or category != ANIME_CATEGORY:
            continue
        if not matches_title(query_tokens, title):
            continue

        url = (item.findtext('guid') or '').strip() or None
        release_id = _last_path_segment(url)
        if not release_id:
            logger.debug(f"Skipping feed item without guid: {title}")
            continue

        season, episode = extract_season_episode(title)
        candidates.append(CandidateRelease(
            id=release_id,
            title=title,
            url=url,
            channel=SourceChannel.RSS,
            season=season,
            episode=episode,
            codec=detect_codec(title),
            file_size=item.findtext('nyaa:size', None, NYAA_NS),
            seeders=_to_number(item.findtext('nyaa:seeders', None, NYAA_NS)),
            leechers=_to_number(item.findtext('nyaa:leechers', None, NYAA_NS)),
            date=item.findtext('pubDate'),
        ))
        logger.debug(f"Feed match: {title}")

    return candidates


def parse_search_results(html: str, base_url: str) -> List[CandidateRelease]:
    """Parse a search-results page into 1080p candidates."""
    soup = BeautifulSoup(html, "html.parser")
    results = []

    for row in soup.select('table.table tbody tr'):
        cols = row.find_all('td', recursive=False)
        # category, title, links, size, date, seeders, leechers, completed
        if len(cols) < 8:
            continue

        title_link = None
        for a in cols[1].find_all('a', href=True):
            href = a['href']
            if href.startswith('/view/') and '#' not in href and 'comments' not in (a.get('class') or []):
                title_link = a
                break
        if title_link is None:
            continue

        title = (title_link.get('title') or title_link.get_text()).strip()
        if not title or RESOLUTION_MARKER not in title.lower():
            continue

        href = title_link['href']
        magnet_link = cols[2].select_one('a[href^="magnet:"]')
        season, episode = extract_season_episode(title)

        results.append(CandidateRelease(
            id=_last_path_segment(href),
            title=title,
            url=f"{base_url}{href}",
            channel=SourceChannel.SCRAPE,
            season=season,
            episode=episode,
            codec=detect_codec(title),
            file_size=cols[3].get_text(strip=True),
            date=cols[4].get_text(strip=True),
            seeders=_to_int(cols[5].get_text()),
            leechers=_to_int(cols[6].get_text()),
            completed=_to_int(cols[7].get_text()),
            magnet=magnet_link['href'] if magnet_link else None,
        ))

    return results


def parse_detail_page(html: str) -> ReleaseDetail:
    """Parse a release detail page (title, stats, magnet, description, files)."""
    soup = BeautifulSoup(html, "html.parser")

    panel = soup.select_one('div.panel')
    if panel is None:
        raise SourceError("Detail page has no release panel")

    title_node = panel.select_one('h3.panel-title')
    detail = ReleaseDetail(title=title_node.get_text(strip=True) if title_node else "")

    # Each row holds label/value column pairs
    for row in panel.select('.panel-body .row'):
        cols = row.select('[class*="col-md"]')
        for label_col, value_col in zip(cols[::2], cols[1::2]):
            label = label_col.get_text(strip=True)
            value = value_col.get_text(strip=True)
            if label == 'Date:':
                detail.date = value
            elif label == 'Seeders:':
                detail.seeders = _to_number(value)
            elif label == 'Leechers:':
                detail.leechers = _to_number(value)
            elif label == 'File size:':
                detail.file_size = value
            elif label == 'Information:':
                link = value_col.find('a')
                detail.information = link.get('href') if link else value

    magnet = soup.select_one('a[href^="magnet:"]')
    detail.magnet = magnet['href'] if magnet else None

    description = soup.select_one('#torrent-description')
    detail.description = description.get_text().strip() if description else ""
    detail.codec = detect_codec(detail.description)

    for li in soup.select('.torrent-file-list li'):
        # Folders nest another list; only leaf entries are files
        if li.find('ul'):
            continue
        size_node = li.select_one('span.file-size')
        size = size_node.get_text(strip=True).strip('()') if size_node else None
        name = ''.join(li.find_all(string=True, recursive=False)).strip()
        if name:
            detail.file_list.append(FileEntry(name=name, size=size or None))

    return detail


class NyaaModule:
    """Shared fetch and detail enrichment for nyaa.si"""

    def __init__(self, base_url: str = "https://nyaa.si"):
        self.base_url = base_url.rstrip('/')

    async def _fetch_text(self, url: str) -> str:
        async with create_aiohttp_session() as session:
            async with session.get(url) as resp:
                if resp.status == 429:
                    raise RateLimitedError(url)
                if resp.status != 200:
                    raise SourceError(f"HTTP {resp.status} from {url}", status_code=resp.status, url=url)
                return await resp.text()

    async def fetch_detail(self, url: str) -> ReleaseDetail:
        html = await self._fetch_text(url)
        return parse_detail_page(html)


class NyaaRSSSource(NyaaModule, ReleaseSource):
    name = "Nyaa RSS"
    description = "Latest uploads feed"

    async def find_releases(self, query_title: str) -> List[CandidateRelease]:
        url = f"{self.base_url}/?page=rss"
        logger.debug(f"Fetching RSS feed: {url}")
        content = await self._fetch_text(url)
        releases = parse_feed(content, query_title)
        logger.info(f"✓ RSS: {len(releases)} item(s) match '{query_title}'")
        return releases


class NyaaSearchSource(NyaaModule, ReleaseSource):
    name = "Nyaa Search"
    description = "Search results scraper"

    async def find_releases(self, query_title: str) -> List[CandidateRelease]:
        query = strip_release_year(query_title)
        url = f"{self.base_url}/?f=0&c={ANIME_CATEGORY}&q={quote(query)}"
        logger.debug(f"Searching: {url}")
        html = await self._fetch_text(url)
        releases = parse_search_results(html, self.base_url)
        logger.info(f"✓ Search: {len(releases)} 1080p result(s) for '{query}'")
        return releases
