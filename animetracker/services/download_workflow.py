"""
Download workflow - drives an accepted release from magnet to linked library episode.

Phases (each bounded or retried on its own, none aborts the later ones):
    transfer -> file discovery -> import folder -> linking -> import completion
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from animetracker.models.download import DownloadWorkflowState
from animetracker.models.library import FileSearchResult
from animetracker.services.notifier import Notifier
from animetracker.services.qbittorrent_client import QBittorrentClient, TorrentStatus, is_transfer_complete
from animetracker.services.shoko_client import ShokoClient

logger = logging.getLogger(__name__)


class WorkflowCancelled(Exception):
    pass


@dataclass
class DownloadPolicy:
    """Intervals and bounds, in seconds unless named otherwise."""
    transfer_interval: float = 15
    transfer_max_wait: float = 6 * 60 * 60
    discovery_interval: float = 30
    rename_max_wait: float = 5 * 60
    staging_interval: float = 60
    staging_max_wait: float = 2 * 60
    link_retry_interval: float = 30
    import_interval: float = 60
    import_max_checks: int = 60


class DownloadWorkflow:

    def __init__(self, state: DownloadWorkflowState, torrent_client: QBittorrentClient,
                 library: ShokoClient, notifier: Notifier, policy: Optional[DownloadPolicy] = None):
        self.state = state
        self.torrent_client = torrent_client
        self.library = library
        self.notifier = notifier
        self.policy = policy or DownloadPolicy()
        self._cancelled = asyncio.Event()

    def cancel(self):
        """Stop at the next wait; used to abort a stuck workflow."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def _sleep(self, seconds: float):
        if self._cancelled.is_set():
            raise WorkflowCancelled()
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise WorkflowCancelled()

    async def run(self) -> DownloadWorkflowState:
        try:
            await self.wait_for_transfer()
            file_info = await self.wait_for_library_file()
            if file_info is None:
                return self.state

            file_info = await self.wait_for_import_folder(file_info)
            if not file_info.first or file_info.first.id is None:
                logger.error("No file ID available to link.")
                return self.state
            self.state.file_id = file_info.first.id

            await self.ensure_linked(file_info)
            await self.wait_for_import(file_info)
        except WorkflowCancelled:
            logger.warning(f"Download workflow for {self.state.file_name} cancelled")
        finally:
            await self.torrent_client.close()
        return self.state

    # Phase: transfer

    async def wait_for_transfer(self) -> Optional[TorrentStatus]:
        info_hash = self.state.info_hash
        if not info_hash:
            logger.warning("Could not extract torrent infohash from magnet; skipping completion wait")
            return None

        started = time.monotonic()
        while time.monotonic() - started < self.policy.transfer_max_wait:
            try:
                status = await self.torrent_client.get_status(info_hash)
                if is_transfer_complete(status):
                    self.state.transfer_complete = True
                    name = status.name or self.state.title or self.state.file_name or "torrent"
                    logger.info(f"✓ Download finished: {name}")
                    await self.notifier.send_simple_notification(
                        f"Download finished: {name}",
                        f"qBittorrent finished downloading {name}.",
                    )
                    return status
            except Exception as e:
                logger.warning(f"Failed while polling qBittorrent: {e}")
            await self._sleep(self.policy.transfer_interval)

        logger.warning(f"Timed out waiting for qBittorrent completion for hash {info_hash}")
        return None

    # Phase: library visibility

    async def _search(self, file_name: str) -> Optional[FileSearchResult]:
        try:
            return await self.library.search_files(file_name)
        except Exception as e:
            logger.warning(f"Error while querying Shoko for file {file_name}: {e}")
            return None

    async def poll_for_file(self, file_name: str) -> FileSearchResult:
        """Poll the library until the file shows up. No upper bound."""
        while True:
            info = await self._search(file_name)
            if info:
                return info
            logger.info(f"File {file_name} not found in Shoko, retrying in {self.policy.discovery_interval}s...")
            await self._sleep(self.policy.discovery_interval)

    async def wait_for_matching_file(self, expected_name: str) -> Optional[FileSearchResult]:
        """Poll by expected name until the reported path contains it, up to rename_max_wait."""
        waited = 0.0
        while waited <= self.policy.rename_max_wait:
            info = await self._search(expected_name)
            location = info.location if info else None
            if location and location.relative_path and expected_name in location.relative_path:
                return info
            logger.info(f"Expected file {expected_name} not yet matched in Shoko, retrying in {self.policy.discovery_interval}s...")
            await self._sleep(self.policy.discovery_interval)
            waited += self.policy.discovery_interval
        return await self._search(expected_name)

    async def wait_for_library_file(self) -> Optional[FileSearchResult]:
        expected = self.state.file_name
        file_info = await self.poll_for_file(expected)

        location = file_info.location
        if not location or not location.relative_path:
            logger.warning("File found but no location data; skipping linking/import workflow.")
            return None

        if location.file_name != expected:
            logger.warning(f"Downloaded file name mismatch (expected: {expected}, found: {location.relative_path}). "
                           f"Waiting until Shoko reports the correct file.")
            matched = await self.wait_for_matching_file(expected)
            file_info = matched or file_info

        self.state.import_folder_id = file_info.import_folder_id
        return file_info

    # Phase: import folder

    async def _refresh(self, file_info: FileSearchResult) -> FileSearchResult:
        lookup = file_info.first.lookup_name if file_info.first else None
        if not lookup:
            return file_info
        refreshed = await self._search(lookup)
        return refreshed or file_info

    async def wait_for_import_folder(self, file_info: FileSearchResult) -> FileSearchResult:
        """While the file sits in the staging folder, re-check up to staging_max_wait."""
        elapsed = 0.0
        while file_info.is_staged:
            if elapsed >= self.policy.staging_max_wait:
                logger.info(f"File still in staging folder after {elapsed:.0f}s, proceeding to manual linking.")
                break
            logger.info(f"File is in the staging import folder. Re-checking in {self.policy.staging_interval}s...")
            await self._sleep(self.policy.staging_interval)
            elapsed += self.policy.staging_interval
            file_info = await self._refresh(file_info)

        self.state.import_folder_id = file_info.import_folder_id
        return file_info

    # Phase: linking

    async def ensure_linked(self, file_info: FileSearchResult) -> bool:
        """Link the staged file to the episode, retrying until the library accepts it."""
        if not file_info.is_staged:
            logger.info("Already linked")
            self.state.linked = True
            return True

        file_id, episode_id = self.state.file_id, self.state.episode_id
        while True:
            try:
                errors = await self.library.link_file(file_id, episode_id)
                if not errors:
                    logger.info(f"✓ Successfully linked file {file_id} to episode {episode_id}")
                    self.state.linked = True
                    return True
                logger.warning(f"Linking returned error, retrying in {self.policy.link_retry_interval}s: {errors}")
            except Exception as e:
                logger.warning(f"Error while attempting to link file with episode: {e}")
            await self._sleep(self.policy.link_retry_interval)

    # Phase: import completion

    async def wait_for_import(self, file_info: FileSearchResult) -> bool:
        checks = 0
        while checks < self.policy.import_max_checks:
            if file_info.is_imported:
                self.state.imported = True
                self.state.import_folder_id = file_info.import_folder_id
                title = self.state.display_title
                await self.notifier.send_simple_notification(
                    f"Episode {title} imported",
                    f"Episode {title} has been successfully imported.",
                )
                return True
            await self._sleep(self.policy.import_interval)
            file_info = await self._refresh(file_info)
            checks += 1

        logger.info(f"Gave up waiting for import of {self.state.file_name} after {checks} checks")
        return False
