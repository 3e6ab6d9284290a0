from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TrackedEpisode:
    """One episode the library expects to air today."""
    anidb_aid: int
    ep_number: int
    anime_title: str
    shoko_eid: Optional[int] = None
    anidb_eid: Optional[int] = None
    shoko_aid: Optional[int] = None
    episode_title: Optional[str] = None
    air_date: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.anidb_aid}-{self.ep_number}"

    def __str__(self):
        return f"{self.anime_title} Ep {self.ep_number}"
