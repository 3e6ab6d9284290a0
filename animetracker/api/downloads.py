import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from animetracker.models.download import DownloadRequest, DownloadWorkflowState
from animetracker.models.release import FileEntry
from animetracker.services.download_workflow import DownloadWorkflow
from animetracker.services.qbittorrent_client import TorrentClientError, TorrentClientNotConfigured, extract_info_hash

logger = logging.getLogger(__name__)

router = APIRouter(tags=["downloads"])


async def _read_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _read_token(request: Request, body: dict) -> str:
    header_token = request.headers.get("x-download-token")
    if header_token:
        return header_token
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return str(body.get("token") or "")


@router.post("/download")
async def start_download(request: Request):
    """
    Start a download for a single episode.

    Answers as soon as the magnet is accepted by qBittorrent (notification
    action buttons have short timeouts); the rest of the workflow runs in the
    background.
    """
    state = request.app.state
    body = await _read_body(request)

    expected_token = state.settings.download_token
    if not expected_token:
        logger.warning("DOWNLOAD_TOKEN not configured; rejecting public download requests")
        raise HTTPException(status_code=503, detail="Server not configured for public downloads")

    token = _read_token(request, body)
    if not token or token != expected_token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        payload = DownloadRequest.model_validate(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Missing required fields: magnet, fileList, episodeId")

    try:
        torrent_client = state.torrent_client_factory(state.settings)
    except TorrentClientNotConfigured as e:
        logger.error(f"✗ {e}")
        raise HTTPException(status_code=502, detail="Failed to add magnet to qBittorrent")

    try:
        added = await torrent_client.add_magnet(payload.magnet)
    except TorrentClientError as e:
        logger.error(f"✗ Error adding magnet to qBittorrent: {e}")
        await torrent_client.close()
        raise HTTPException(status_code=502, detail="Failed to add magnet to qBittorrent")

    if not added:
        logger.warning("qBittorrent answered 'Fails.' for magnet")
        await torrent_client.close()
        raise HTTPException(status_code=400, detail="Failed to add magnet to qBittorrent")

    workflow_state = DownloadWorkflowState(
        magnet=payload.magnet,
        file_name=payload.fileList[0].name,
        episode_id=payload.episodeId,
        title=payload.title,
        info_hash=extract_info_hash(payload.magnet),
        file_list=[FileEntry(name=f.name, size=None if f.size is None else str(f.size)) for f in payload.fileList],
    )
    workflow = DownloadWorkflow(workflow_state, torrent_client, state.shoko_client, state.notifier,
                                policy=state.download_policy)
    state.task_tracker.spawn(workflow.run(), name=f"download:{payload.episodeId}")

    logger.info(f"✓ Download started: {payload.title or workflow_state.file_name}")
    return {"ok": True, "message": "Download started in qBittorrent"}


@router.post("/ignore")
async def ignore_release(request: Request):
    body = await _read_body(request)
    release_id: Optional[str] = body.get("releaseId")
    title: Optional[str] = body.get("title")
    logger.info(f"Ignoring release{f' {release_id}' if release_id else ''}{f': {title}' if title else ''}")
    return {"ok": True}
