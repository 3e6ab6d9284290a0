"""
Release processor - decides whether a found release gets a notification.

Every candidate passes the same gate: ignored group -> already notified ->
notify. Once a (episode, release) key is in the history it stays there until
the daily cleanup clears it, even when delivery failed.
"""
import logging
from typing import Iterable, List

from animetracker.models.episode import TrackedEpisode
from animetracker.models.release import CandidateRelease
from animetracker.services.notifier import Notifier
from animetracker.services.state import NotificationHistory
from animetracker.services.title_parser import extract_group_name

logger = logging.getLogger(__name__)

# Groups whose releases are not useful for us
IGNORED_RELEASE_GROUPS = ['New-raws', 'SubsPlease']


def should_ignore_release(title: str, ignored_groups: Iterable[str] = IGNORED_RELEASE_GROUPS) -> bool:
    return any(f"[{group}]" in (title or '') for group in ignored_groups)


def generate_release_key(episode: TrackedEpisode, release: CandidateRelease) -> str:
    return f"{episode.anidb_aid}-{episode.ep_number}-{release.id}"


def select_for_episode(releases: Iterable[CandidateRelease], ep_number: int) -> List[CandidateRelease]:
    """Keep only candidates whose extracted episode is the target episode."""
    return [release for release in releases if release.episode == ep_number]


def format_release(release: CandidateRelease) -> str:
    return f"{release.title} ({release.codec.value}, {release.file_size})"


class ReleaseProcessor:

    def __init__(self, history: NotificationHistory, notifier: Notifier,
                 ignored_groups: Iterable[str] = IGNORED_RELEASE_GROUPS):
        self.history = history
        self.notifier = notifier
        self.ignored_groups = list(ignored_groups)

    async def process_found_release(self, episode: TrackedEpisode, release: CandidateRelease,
                                    source: str = "unknown") -> bool:
        """
        Notify about a release unless it is ignored or already notified.

        Returns True when the release was accepted (notification attempted).
        """
        if should_ignore_release(release.title, self.ignored_groups):
            logger.info(f"⊘ Ignoring release from blocked group: {release.title}")
            return False

        release_key = generate_release_key(episode, release)

        # Claim the key before awaiting delivery so overlapping jobs cannot both pass
        if not self.history.check_and_set(release_key):
            logger.info(f"ℹ Already notified for: {release.title}")
            return False

        group_name = extract_group_name(release.title) or 'Unknown'

        logger.info(f"✓ Notifying: {format_release(release)} [{source}]")
        try:
            await self.notifier.send_release_notification(episode, release, group_name)
        except Exception as e:
            logger.error(f"✗ Notification for {release.title} failed: {e}", exc_info=True)

        return True

    async def process_all(self, episode: TrackedEpisode, releases: Iterable[CandidateRelease],
                          source: str = "unknown") -> int:
        accepted = 0
        for release in releases:
            if await self.process_found_release(episode, release, source):
                accepted += 1
        return accepted

    def clear_notification_history(self) -> int:
        cleared = self.history.clear()
        if cleared > 0:
            logger.info(f"✓ Cleared {cleared} notified release(s) from history")
        return cleared
