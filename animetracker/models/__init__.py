from animetracker.models.episode import TrackedEpisode
from animetracker.models.release import Codec, FileEntry, CandidateRelease, ReleaseDetail, SourceChannel
from animetracker.models.library import FileLocation, LibraryFile, FileSearchResult
from animetracker.models.download import DownloadRequest, DownloadWorkflowState

__all__ = [
    "TrackedEpisode",
    "Codec",
    "FileEntry",
    "CandidateRelease",
    "ReleaseDetail",
    "SourceChannel",
    "FileLocation",
    "LibraryFile",
    "FileSearchResult",
    "DownloadRequest",
    "DownloadWorkflowState",
]
