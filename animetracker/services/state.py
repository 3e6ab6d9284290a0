"""
In-memory release state: notification history and per-episode job sets.
Both live for the process lifetime and are reset by the daily cleanup.
"""
import logging
from typing import Dict, Iterable, List, Set

logger = logging.getLogger(__name__)


class NotificationHistory:
    """Keys of (episode, release) pairs that were already notified today."""

    def __init__(self):
        self._keys: Set[str] = set()

    def check_and_set(self, key: str) -> bool:
        """Add key; True when it was new. Runs without awaiting, so it is atomic on the event loop."""
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def contains(self, key: str) -> bool:
        return key in self._keys

    def clear(self) -> int:
        cleared = len(self._keys)
        self._keys.clear()
        return cleared

    def keys(self) -> List[str]:
        return sorted(self._keys)

    def __len__(self):
        return len(self._keys)


class EpisodeJobRegistry:
    """Episode key -> active scheduler jobs for that episode."""

    def __init__(self):
        self._jobs: Dict[str, list] = {}

    def replace(self, key: str, jobs: Iterable) -> list:
        """Store a new job set and hand back the previous one (empty if none)."""
        previous = self._jobs.pop(key, [])
        self._jobs[key] = list(jobs)
        return previous

    def pop(self, key: str) -> list:
        return self._jobs.pop(key, [])

    def pop_all(self) -> Dict[str, list]:
        jobs = self._jobs
        self._jobs = {}
        return jobs

    def jobs_for(self, key: str) -> list:
        return list(self._jobs.get(key, []))

    def keys(self) -> List[str]:
        return list(self._jobs.keys())

    def __contains__(self, key: str):
        return key in self._jobs

    def __len__(self):
        return len(self._jobs)
