from animetracker.modules.sources.base import RateLimitedError, ReleaseSource, SourceError
from animetracker.modules.sources.nyaa import NyaaRSSSource, NyaaSearchSource

__all__ = ["RateLimitedError", "ReleaseSource", "SourceError", "NyaaRSSSource", "NyaaSearchSource"]
