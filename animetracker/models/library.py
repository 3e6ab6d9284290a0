from dataclasses import dataclass, field
from typing import List, Optional

# Import folder sentinels reported by the library server
IMPORTED_FOLDER_ID = 1
STAGING_FOLDER_ID = 2


@dataclass
class FileLocation:
    import_folder_id: Optional[int]
    relative_path: Optional[str]

    @property
    def file_name(self) -> Optional[str]:
        if not self.relative_path:
            return None
        return self.relative_path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass
class LibraryFile:
    id: Optional[int]
    name: Optional[str]
    locations: List[FileLocation] = field(default_factory=list)

    @property
    def location(self) -> Optional[FileLocation]:
        return self.locations[0] if self.locations else None

    @property
    def lookup_name(self) -> Optional[str]:
        """Name to search for when re-querying this file."""
        if self.name:
            return self.name
        return self.location.relative_path if self.location else None


@dataclass
class FileSearchResult:
    files: List[LibraryFile] = field(default_factory=list)

    @property
    def first(self) -> Optional[LibraryFile]:
        return self.files[0] if self.files else None

    @property
    def location(self) -> Optional[FileLocation]:
        return self.first.location if self.first else None

    @property
    def import_folder_id(self) -> Optional[int]:
        loc = self.location
        return loc.import_folder_id if loc else None

    @property
    def is_staged(self) -> bool:
        return self.import_folder_id == STAGING_FOLDER_ID

    @property
    def is_imported(self) -> bool:
        return self.import_folder_id == IMPORTED_FOLDER_ID

    def __bool__(self):
        return bool(self.files)
