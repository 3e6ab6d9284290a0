from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Union


class Codec(str, Enum):
    AV1 = "AV1"
    H264 = "H264"
    HEVC = "HEVC"
    UNKNOWN = "unknown"


class SourceChannel(str, Enum):
    RSS = "rss"
    SCRAPE = "scrape"


@dataclass
class FileEntry:
    name: str
    size: Optional[str] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "size": self.size}


@dataclass
class ReleaseDetail:
    """Everything recovered from a release's detail page."""
    title: str = ""
    date: Optional[str] = None
    seeders: Union[int, str, None] = None
    leechers: Union[int, str, None] = None
    information: Optional[str] = None
    file_size: Optional[str] = None
    magnet: Optional[str] = None
    description: str = ""
    file_list: List[FileEntry] = field(default_factory=list)
    codec: Codec = Codec.UNKNOWN


@dataclass
class CandidateRelease:
    """A discovered release, not yet matched to a tracked episode."""
    id: str
    title: str
    url: Optional[str]
    channel: SourceChannel
    season: Optional[int] = None
    episode: Optional[int] = None
    codec: Codec = Codec.UNKNOWN
    file_size: Optional[str] = None
    seeders: Union[int, str, None] = None
    leechers: Union[int, str, None] = None
    completed: Optional[int] = None
    date: Optional[str] = None
    magnet: Optional[str] = None
    file_list: List[FileEntry] = field(default_factory=list)

    def with_detail(self, detail: ReleaseDetail) -> "CandidateRelease":
        """
        Merge a detail page into this candidate.

        Identity (id, url, title) and the extracted season/episode always stay
        as discovered; the title codec wins unless it is unknown.
        """
        codec = self.codec if self.codec != Codec.UNKNOWN else detail.codec
        return replace(
            self,
            codec=codec,
            file_size=detail.file_size or self.file_size,
            seeders=detail.seeders if detail.seeders is not None else self.seeders,
            leechers=detail.leechers if detail.leechers is not None else self.leechers,
            date=detail.date or self.date,
            magnet=detail.magnet or self.magnet,
            file_list=list(detail.file_list) or list(self.file_list),
        )
