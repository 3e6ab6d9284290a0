"""
Episode monitor
Main workflow: get today's episodes, check for releases, schedule periodic checks
"""
import logging
from datetime import datetime
from typing import Dict, List

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from animetracker.models.episode import TrackedEpisode
from animetracker.services.nyaa_service import NyaaService
from animetracker.services.release_processor import ReleaseProcessor
from animetracker.services.shoko_client import ShokoService
from animetracker.services.state import EpisodeJobRegistry

logger = logging.getLogger(__name__)

RSS_CHECK_MINUTES = "*/30"
FINAL_CHECK_HOUR = 22
DAILY_CLEANUP_HOUR = 5


class EpisodeMonitor:

    def __init__(self, scheduler: BaseScheduler, registry: EpisodeJobRegistry, processor: ReleaseProcessor,
                 nyaa: NyaaService, shoko: ShokoService):
        self.scheduler = scheduler
        self.registry = registry
        self.processor = processor
        self.nyaa = nyaa
        self.shoko = shoko

    async def rss_check(self, episode: TrackedEpisode):
        logger.info(f"[{datetime.now():%H:%M:%S}] Checking RSS for {episode}...")
        try:
            releases = await self.nyaa.check_rss_for_episode(episode.anime_title, episode.ep_number)
            await self.processor.process_all(episode, releases, "RSS")
        except Exception as e:
            logger.error(f"✗ RSS check failed for {episode}: {e}", exc_info=True)

    async def final_check(self, episode: TrackedEpisode):
        logger.info(f"[{datetime.now():%H:%M:%S}] Final check (scrape) for {episode}...")
        try:
            releases = await self.nyaa.scrape_for_episode(episode.anime_title, episode.ep_number)
            await self.processor.process_all(episode, releases, "Scrape")
        except Exception as e:
            logger.error(f"✗ Final scrape check failed for {episode}: {e}", exc_info=True)

    def schedule_episode_jobs(self, episode: TrackedEpisode) -> list:
        """
        Schedule the recurring checks for one episode, replacing any existing set:
        - every 30 minutes: RSS check
        - 22:00: final check via search scrape
        """
        key = episode.key
        self._cancel_jobs(self.registry.pop(key), key)

        jobs = [
            self.scheduler.add_job(
                self.rss_check,
                CronTrigger(minute=RSS_CHECK_MINUTES),
                args=[episode],
                id=f"{key}:rss",
                name=f"RSS check {episode}",
                replace_existing=True,
                coalesce=True,
            ),
            self.scheduler.add_job(
                self.final_check,
                CronTrigger(hour=FINAL_CHECK_HOUR, minute=0),
                args=[episode],
                id=f"{key}:final",
                name=f"Final check {episode}",
                replace_existing=True,
                coalesce=True,
            ),
        ]
        self.registry.replace(key, jobs)
        logger.info(f"✓ Scheduled jobs for {episode} (RSS every 30 min, final check at {FINAL_CHECK_HOUR}:00)")
        return jobs

    def _cancel_jobs(self, jobs: list, key: str) -> int:
        cancelled = 0
        for job in jobs:
            try:
                job.remove()
                cancelled += 1
            except Exception as e:
                # JobLookupError when the job already fired for the last time or was removed
                logger.debug(f"Could not cancel job {getattr(job, 'id', job)} for {key}: {e}")
        if cancelled:
            logger.info(f"✓ Cancelled {cancelled} existing job(s) for {key}")
        return cancelled

    def get_scheduled_episodes(self) -> List[str]:
        return self.registry.keys()

    def cleanup_all_episode_jobs(self) -> Dict[str, int]:
        """Cancel every episode job. One failed cancellation does not stop the rest."""
        all_jobs = self.registry.pop_all()
        cancelled = 0
        for key, jobs in all_jobs.items():
            cancelled += self._cancel_jobs(jobs, key)
        return {"episode_count": len(all_jobs), "cancelled_count": cancelled}

    async def check_episode(self, episode: TrackedEpisode):
        """Initial RSS + search check for one episode, then schedule its recurring jobs."""
        logger.info(f"📺 Processing: {episode.anime_title} - {episode.episode_title}")
        try:
            rss_releases = await self.nyaa.check_rss_for_episode(episode.anime_title, episode.ep_number)
            scrape_releases = await self.nyaa.scrape_for_episode(episode.anime_title, episode.ep_number)
            all_releases = rss_releases + scrape_releases

            if all_releases:
                logger.info(f"  Found {len(all_releases)} potential release(s)")
                await self.processor.process_all(episode, all_releases, "Initial")
            else:
                logger.info("  No releases found yet")
        except Exception as e:
            logger.error(f"  ✗ Error checking for releases: {e}", exc_info=True)

        self.schedule_episode_jobs(episode)

    async def check_today(self):
        """Daily check: get today's episodes, look for releases, schedule monitoring."""
        logger.info(f"[{datetime.now():%H:%M:%S}] Starting daily anime check...")
        try:
            episodes = await self.shoko.get_today_episodes(False)
            for episode in episodes:
                await self.check_episode(episode)
            logger.info("✓ Daily check complete")
        except Exception as e:
            logger.error(f"✗ Fatal error in daily check: {e}", exc_info=True)

    async def daily_cleanup_and_restart(self):
        """Remove all episode jobs, reset notification history and run the daily check again."""
        logger.info(f"[{datetime.now():%H:%M:%S}] ⚙️  Daily cleanup started...")
        try:
            scheduled = self.get_scheduled_episodes()
            if scheduled:
                logger.info(f"📋 Removing {len(scheduled)} scheduled episode(s): {', '.join(scheduled)}")
                result = self.cleanup_all_episode_jobs()
                logger.info(f"✓ Cancelled {result['cancelled_count']} job(s) for {result['episode_count']} episode(s)")
            else:
                logger.info("ℹ No scheduled jobs to clean up")

            self.processor.clear_notification_history()
        except Exception as e:
            logger.error(f"✗ Daily cleanup failed: {e}", exc_info=True)

        logger.info("🔄 Restarting anime check...")
        await self.check_today()

    def schedule_daily_cleanup(self):
        self.scheduler.add_job(
            self.daily_cleanup_and_restart,
            CronTrigger(hour=DAILY_CLEANUP_HOUR, minute=0),
            id="daily_cleanup",
            name="Daily Cleanup (05:00)",
            replace_existing=True,
            coalesce=True,
        )
        logger.info(f"✓ Daily cleanup scheduled for {DAILY_CLEANUP_HOUR}:00")
