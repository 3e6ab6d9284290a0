import asyncio

from animetracker.models.download import DownloadWorkflowState
from animetracker.models.library import FileSearchResult
from animetracker.services.download_workflow import DownloadPolicy, DownloadWorkflow
from animetracker.services.qbittorrent_client import TorrentStatus
from animetracker.services.shoko_client import LibraryError
from tests.conftest import FakeLibrary, FakeNotifier, FakeTorrentClient, library_result

FILE_NAME = "Sample Anime - 05.mkv"

FAST = DownloadPolicy(
    transfer_interval=0,
    transfer_max_wait=5,
    discovery_interval=0,
    rename_max_wait=0,
    staging_interval=0.001,
    staging_max_wait=0.0015,
    link_retry_interval=0,
    import_interval=0,
    import_max_checks=3,
)


def make_state(info_hash="0123456789abcdef0123456789abcdef01234567"):
    return DownloadWorkflowState(
        magnet="magnet:?xt=urn:btih:0123456789abcdef0123456789abcdef01234567",
        file_name=FILE_NAME,
        episode_id=9001,
        title="[GroupX] Sample Anime - 05 [1080p]",
        info_hash=info_hash,
    )


async def test_already_imported_file():
    torrent = FakeTorrentClient([TorrentStatus(0.4, "downloading", "Sample"), TorrentStatus(1.0, "uploading", "Sample")])
    library = FakeLibrary([library_result(folder=1)])
    notifier = FakeNotifier()

    state = await DownloadWorkflow(make_state(), torrent, library, notifier, policy=FAST).run()

    assert state.transfer_complete
    assert state.file_id == 42
    assert state.linked and state.imported
    assert library.links == []
    assert [title for title, _ in notifier.messages] == [
        "Download finished: Sample",
        "Episode [GroupX] Sample Anime - 05 [1080p] imported",
    ]
    assert torrent.closed


async def test_staged_file_is_linked_with_retries():
    staged = library_result(folder=2)
    library = FakeLibrary(
        [staged, staged, staged, library_result(folder=1)],
        link_results=[LibraryError("HTTP 500", 500), ["EpisodeIDs: not ready"], []],
    )
    notifier = FakeNotifier()

    state = await DownloadWorkflow(make_state(), FakeTorrentClient(), library, notifier, policy=FAST).run()

    assert library.links == [(42, 9001)] * 3
    assert state.linked
    assert state.imported
    assert state.import_folder_id == 1
    assert notifier.messages[-1][0].endswith("imported")


async def test_renamed_download_waits_for_expected_name():
    library = FakeLibrary([
        library_result(file_id=7, path="Sample Anime - 05 (1).mkv"),
        library_result(file_id=42, path=f"Anime/{FILE_NAME}"),
    ])

    state = await DownloadWorkflow(make_state(), FakeTorrentClient(), library, FakeNotifier(), policy=FAST).run()

    assert state.file_id == 42
    assert library.searches[:2] == [FILE_NAME, FILE_NAME]
    assert state.imported


async def test_missing_info_hash_skips_transfer_wait():
    notifier = FakeNotifier()
    library = FakeLibrary([library_result(folder=1)])

    state = await DownloadWorkflow(make_state(info_hash=None), FakeTorrentClient(), library, notifier, policy=FAST).run()

    assert not state.transfer_complete
    assert state.imported
    assert [title for title, _ in notifier.messages] == ["Episode [GroupX] Sample Anime - 05 [1080p] imported"]


async def test_import_gives_up_after_bounded_checks():
    library = FakeLibrary([library_result(folder=3)])
    notifier = FakeNotifier()

    state = await DownloadWorkflow(make_state(), FakeTorrentClient(), library, notifier, policy=FAST).run()

    assert state.linked
    assert not state.imported
    # initial lookup plus one refresh per import check
    assert len(library.searches) == 1 + FAST.import_max_checks


async def test_cancel_stops_unbounded_polling():
    library = FakeLibrary([FileSearchResult()])
    torrent = FakeTorrentClient()
    policy = DownloadPolicy(transfer_interval=0, discovery_interval=30)
    workflow = DownloadWorkflow(make_state(), torrent, library, FakeNotifier(), policy=policy)

    task = asyncio.create_task(workflow.run())
    while not library.searches:
        await asyncio.sleep(0)
    workflow.cancel()
    state = await asyncio.wait_for(task, timeout=1)

    assert workflow.cancelled
    assert state.file_id is None
    assert torrent.closed


async def test_transfer_timeout_proceeds_to_linking():
    stuck = FakeTorrentClient([TorrentStatus(0.3, "downloading", "Sample")])
    library = FakeLibrary([library_result(folder=2), library_result(folder=1)])
    notifier = FakeNotifier()
    policy = DownloadPolicy(
        transfer_interval=0.001,
        transfer_max_wait=0.01,
        discovery_interval=0,
        rename_max_wait=0,
        staging_interval=0.001,
        staging_max_wait=0,
        link_retry_interval=0,
        import_interval=0,
        import_max_checks=3,
    )

    state = await DownloadWorkflow(make_state(), stuck, library, notifier, policy=policy).run()

    assert state.transfer_complete is False
    assert library.links == [(42, 9001)]
    assert state.linked and state.imported
    assert [title for title, _ in notifier.messages] == ["Episode [GroupX] Sample Anime - 05 [1080p] imported"]
    assert stuck.closed
