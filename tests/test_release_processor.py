import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from animetracker.models.release import ReleaseDetail, SourceChannel
from animetracker.services.episode_monitor import EpisodeMonitor
from animetracker.services.nyaa_service import NyaaService
from animetracker.services.release_processor import (
    ReleaseProcessor,
    generate_release_key,
    select_for_episode,
    should_ignore_release,
)
from animetracker.services.state import EpisodeJobRegistry, NotificationHistory
from tests.conftest import FakeNotifier, FakeSource, make_release, no_sleep


def test_should_ignore_release():
    assert should_ignore_release("[SubsPlease] Sample Anime - 05 (1080p)")
    assert should_ignore_release("[New-raws] Sample Anime - 05 [1080p]")
    assert not should_ignore_release("[GroupX] Sample Anime - 05 [1080p]")
    # only the bracketed group counts
    assert not should_ignore_release("SubsPlease fan edit - 05 [1080p]")


def test_release_key(episode):
    assert generate_release_key(episode, make_release(release_id="2073640")) == "123-5-2073640"


def test_select_for_episode():
    releases = [make_release(release_id="1", episode=5), make_release(release_id="2", episode=6),
                make_release(release_id="3", episode=None)]
    assert [r.id for r in select_for_episode(releases, 5)] == ["1"]


async def test_same_release_notifies_once(episode, notifier):
    processor = ReleaseProcessor(NotificationHistory(), notifier)
    release = make_release()

    assert await processor.process_found_release(episode, release, "RSS")
    assert not await processor.process_found_release(episode, release, "Scrape")
    assert len(notifier.releases) == 1
    assert notifier.releases[0][2] == "GroupX"


async def test_ignored_group_is_not_recorded(episode, notifier):
    history = NotificationHistory()
    processor = ReleaseProcessor(history, notifier)

    accepted = await processor.process_found_release(
        episode, make_release(title="[SubsPlease] Sample Anime - 05 (1080p)"))

    assert not accepted
    assert notifier.releases == []
    assert len(history) == 0


async def test_clear_history_allows_renotification(episode, notifier):
    processor = ReleaseProcessor(NotificationHistory(), notifier)
    release = make_release()

    await processor.process_found_release(episode, release)
    assert processor.clear_notification_history() == 1
    assert await processor.process_found_release(episode, release)
    assert len(notifier.releases) == 2


async def test_failed_delivery_still_marks_release(episode):
    history = NotificationHistory()
    processor = ReleaseProcessor(history, FakeNotifier(fail=True))
    release = make_release()

    assert await processor.process_found_release(episode, release)
    assert history.contains("123-5-2073640")
    assert not await processor.process_found_release(episode, release)


async def test_process_all_counts_accepted(episode, notifier):
    processor = ReleaseProcessor(NotificationHistory(), notifier)
    releases = [
        make_release(release_id="1"),
        make_release(release_id="1"),
        make_release(release_id="2", title="[SubsPlease] Sample Anime - 05 (1080p)"),
        make_release(release_id="3", title="[GroupY] Sample Anime - 05 [1080p]"),
    ]
    assert await processor.process_all(episode, releases) == 2


async def test_found_release_is_enriched_and_notified_once(episode, notifier):
    url = "https://nyaa.si/view/2073640"
    detail = ReleaseDetail(magnet="magnet:?xt=urn:btih:0123456789abcdef0123456789abcdef01234567")
    rss = FakeSource([make_release(), make_release(release_id="999", episode=6)], {url: detail})
    search = FakeSource([make_release(channel=SourceChannel.SCRAPE)], {url: detail})

    processor = ReleaseProcessor(NotificationHistory(), notifier)
    monitor = EpisodeMonitor(AsyncIOScheduler(), EpisodeJobRegistry(), processor,
                             NyaaService(rss, search, sleep=no_sleep), shoko=None)

    await monitor.check_episode(episode)

    assert rss.queries == ["Sample Anime"]
    assert search.queries == ["Sample Anime"]
    # episode 6 is never enriched
    assert rss.detail_calls == [url]
    assert len(notifier.releases) == 1
    notified_episode, notified, group = notifier.releases[0]
    assert notified_episode == episode
    assert notified.id == "2073640"
    assert notified.magnet == detail.magnet
    assert group == "GroupX"
    assert monitor.get_scheduled_episodes() == ["123-5"]


async def test_overlapping_checks_notify_once(episode):
    notifier = FakeNotifier(delay=0.01)
    processor = ReleaseProcessor(NotificationHistory(), notifier)
    release = make_release()

    results = await asyncio.gather(*[processor.process_found_release(episode, release, "RSS") for _ in range(3)])

    assert sorted(results) == [False, False, True]
    assert len(notifier.releases) == 1
