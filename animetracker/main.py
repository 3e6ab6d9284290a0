from contextlib import asynccontextmanager
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from animetracker import __version__
from animetracker.config import Settings, load_settings
from animetracker.modules.sources.nyaa import NyaaRSSSource, NyaaSearchSource
from animetracker.services.download_workflow import DownloadPolicy
from animetracker.services.episode_monitor import EpisodeMonitor
from animetracker.services.notifier import Notifier
from animetracker.services.nyaa_service import NyaaService
from animetracker.services.qbittorrent_client import QBittorrentClient
from animetracker.services.release_processor import ReleaseProcessor
from animetracker.services.shoko_client import ShokoClient, ShokoService
from animetracker.services.state import EpisodeJobRegistry, NotificationHistory
from animetracker.services.task_tracker import TaskTracker
from animetracker.utils.logger import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state
    setup_logging(state.settings.log_level, state.settings.log_dir)

    # Startup
    logger.info(f"🚀 Anime Release Tracker v{__version__} starting...")

    if not state.settings.has_library():
        logger.warning("⚠ SHOKO_BASE_URL not configured - episode monitoring disabled")
    else:
        try:
            state.monitor.schedule_daily_cleanup()
            state.scheduler.start()
            logger.info("✓ Scheduler started (daily cleanup, episode checks)")

            # Initial check runs in the background
            state.task_tracker.spawn(state.monitor.check_today(), name="initial-check")
        except Exception as e:
            logger.error(f"✗ Scheduler init failed: {e}", exc_info=True)

    yield

    # Shutdown
    logger.info("Shutting down Anime Release Tracker...")
    if state.scheduler.running:
        state.scheduler.shutdown(wait=False)
    await state.task_tracker.cancel_all()


def create_app(settings: Settings = None, torrent_client_factory=None, shoko_client: ShokoClient = None,
               notifier: Notifier = None, download_policy: DownloadPolicy = None) -> FastAPI:
    """Build the FastAPI app and every long-lived component."""
    settings = settings or load_settings()

    app = FastAPI(
        title="Anime Release Tracker",
        description="Tracks anime episode releases and imports them into Shoko",
        version=__version__,
        lifespan=lifespan,
    )

    state = app.state
    state.settings = settings
    state.history = NotificationHistory()
    state.registry = EpisodeJobRegistry()
    state.scheduler = AsyncIOScheduler(timezone=settings.timezone) if settings.timezone else AsyncIOScheduler()
    state.notifier = notifier or Notifier(settings)
    state.shoko_client = shoko_client or ShokoClient(settings.shoko_base_url, settings.shoko_api_key)
    state.processor = ReleaseProcessor(state.history, state.notifier)
    state.nyaa = NyaaService(NyaaRSSSource(settings.nyaa_base_url), NyaaSearchSource(settings.nyaa_base_url))
    state.monitor = EpisodeMonitor(state.scheduler, state.registry, state.processor, state.nyaa,
                                   ShokoService(state.shoko_client))
    state.task_tracker = TaskTracker()
    state.torrent_client_factory = torrent_client_factory or QBittorrentClient.from_settings
    state.download_policy = download_policy or DownloadPolicy()

    # Routes
    from animetracker.api import downloads
    app.include_router(downloads.router)

    @app.get("/health")
    async def health_check():
        return {"ok": True}

    return app


app = create_app()
