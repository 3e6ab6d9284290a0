from dataclasses import dataclass, field
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from animetracker.models.release import FileEntry


class DownloadFile(BaseModel):
    name: str
    # ntfy action bodies carry the display string, other callers send bytes
    size: Optional[Union[str, int, float]] = None


class DownloadRequest(BaseModel):
    """Body of POST /download"""
    magnet: str = Field(min_length=1)
    fileList: List[DownloadFile] = Field(min_length=1)
    episodeId: int
    title: Optional[str] = None
    token: Optional[str] = None


@dataclass
class DownloadWorkflowState:
    """Per-request state threaded through the download workflow."""
    magnet: str
    file_name: str
    episode_id: int
    title: Optional[str] = None
    info_hash: Optional[str] = None
    file_list: List[FileEntry] = field(default_factory=list)
    file_id: Optional[int] = None
    import_folder_id: Optional[int] = None
    transfer_complete: bool = False
    linked: bool = False
    imported: bool = False

    @property
    def display_title(self) -> str:
        return self.title or f"Episode {self.episode_id}"
