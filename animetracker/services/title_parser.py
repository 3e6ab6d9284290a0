"""
Title Parser - metadata extraction from release titles
Extracts: match tokens, season/episode, codec
"""
import logging
import re
import unicodedata
from typing import Iterable, List, Optional, Tuple

from animetracker.models.release import Codec

logger = logging.getLogger(__name__)

# Table order is the tie-break: AV1 before H264 before HEVC
CODEC_ALIASES = [
    (Codec.AV1, ["av1"]),
    (Codec.H264, ["h264", "h.264", "h 264", "h/264", "avc", "x264"]),
    (Codec.HEVC, ["h265", "h.265", "h 265", "hevc", "h/265", "x265"]),
]

RESOLUTION_NUMBERS = {720, 1080, 2160}

SEASON_EPISODE_PATTERN = re.compile(r'S(\d{1,2})E(\d{1,3})', re.IGNORECASE)
SEASON_PATTERNS = [
    re.compile(r'\b(\d{1,2})(?:st|nd|rd|th)\s+season\b', re.IGNORECASE),
    re.compile(r'\bseason\s+(\d{1,2})\b', re.IGNORECASE),
]
# Standalone 1-3 digit number bounded by whitespace, brackets or the string edges
STANDALONE_NUMBER_PATTERN = re.compile(r'(?:^|(?<=[\s\[\]\(\)]))(\d{1,3})(?=$|[\s\[\]\(\)])')
YEAR_PATTERN = re.compile(r'\(?\b(?:19|20)\d{2}\b\)?')


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(c for c in decomposed if not unicodedata.combining(c))


def normalize_title(title: str) -> str:
    """
    Normalisiert Titel für Token-Matching:
    - lowercase
    - Diakritika entfernen
    - alle nicht-alphanumerischen Folgen zu einem Space
    """
    if not title:
        return ""
    text = _strip_diacritics(title.lower())
    text = re.sub(r'[^a-z0-9]+', ' ', text)
    return text.strip()


def normalize_for_match(title: str) -> List[str]:
    """Normalized whitespace-split tokens of a title."""
    normalized = normalize_title(title)
    return normalized.split() if normalized else []


def strip_release_year(title: str) -> str:
    """Remove a release year ("2026", "(2026)") from a library title before searching."""
    cleaned = YEAR_PATTERN.sub(' ', title or '')
    return re.sub(r'\s+', ' ', cleaned).strip()


def matches_title(query_tokens: Iterable[str], candidate_title: str) -> bool:
    """
    True when every query token appears in the candidate's own token set.
    Order-independent; an empty query never matches.
    """
    query = list(query_tokens)
    if not query:
        return False
    candidate_tokens = set(normalize_for_match(candidate_title))
    return all(token in candidate_tokens for token in query)


def _extract_season(title: str) -> Tuple[Optional[int], List[Tuple[int, int]]]:
    """Season from ordinal/"season N" wording plus the spans it consumed."""
    season = None
    spans = []
    for pattern in SEASON_PATTERNS:
        for match in pattern.finditer(title):
            spans.append(match.span())
            if season is None:
                season = int(match.group(1))
    return season, spans


def _extract_episode(title: str, excluded_spans: List[Tuple[int, int]]) -> Optional[int]:
    for match in STANDALONE_NUMBER_PATTERN.finditer(title):
        start = match.start(1)
        if any(span_start <= start < span_end for span_start, span_end in excluded_spans):
            continue
        value = int(match.group(1))
        if value in RESOLUTION_NUMBERS:
            continue
        return value
    return None


def extract_season_episode(title: str) -> Tuple[Optional[int], Optional[int]]:
    """
    Extract (season, episode) from a free-text release title.

    Order:
    1. Explicit SxxEyy - returned as-is, nothing else is consulted
    2. "2nd Season" / "Season 2" for the season
    3. First standalone 1-3 digit number for the episode (never 720/1080/2160)
    """
    if not title:
        return None, None

    match = SEASON_EPISODE_PATTERN.search(title)
    if match:
        return int(match.group(1)), int(match.group(2))

    season, season_spans = _extract_season(title)
    episode = _extract_episode(title, season_spans)
    return season, episode


def detect_codec(text: str) -> Codec:
    """First codec family whose alias appears in the punctuation-free text."""
    if not text:
        return Codec.UNKNOWN
    compact = re.sub(r'[^a-z0-9]', '', text.lower())
    for codec, aliases in CODEC_ALIASES:
        if any(re.sub(r'[^a-z0-9]', '', alias) in compact for alias in aliases):
            return codec
    return Codec.UNKNOWN


def extract_group_name(title: str) -> Optional[str]:
    """Release group from the first [bracketed] segment."""
    match = re.search(r'\[([^\]]+)\]', title or '')
    if match:
        return match.group(1)
    # VARYG releases carry no brackets
    if title and "VARYG" in title:
        return "VARYG"
    return None
