"""API routes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from clipwatch.api.schemas import (
    HealthResponse,
    QueueResponse,
    RetryResponse,
    VideoResponse,
)
from clipwatch.db.state_store import StateStore, StateStoreError
from clipwatch.models.video import VideoStatus
from clipwatch.utils.ffmpeg import check_ffmpeg_available
from clipwatch.workers.watcher import FolderWatcher

router = APIRouter()
logger = logging.getLogger(__name__)


def get_store(request: Request) -> StateStore:
    return request.app.state.store


def get_watcher(request: Request) -> Optional[FolderWatcher]:
    return getattr(request.app.state, "watcher", None)


def _reject_in_flight(name: str, watcher: Optional[FolderWatcher]):
    if watcher is not None and watcher.is_tracked(name):
        raise HTTPException(status_code=409, detail="Video is queued or being processed")


# =============================================================================
# Health
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(store: StateStore = Depends(get_store)):
    """Check API health and the state document."""
    ffmpeg_ok = check_ffmpeg_available()
    message = None
    try:
        store.all()
        state_ok = True
    except StateStoreError as e:
        state_ok = False
        message = str(e)

    if not ffmpeg_ok and message is None:
        message = "ffmpeg not found on PATH"

    return HealthResponse(
        status="healthy" if ffmpeg_ok and state_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        state_file=str(store.path),
        message=message,
    )


# =============================================================================
# Videos
# =============================================================================

@router.get("/videos", response_model=List[VideoResponse])
async def list_videos(
    status: Optional[VideoStatus] = Query(None, description="Only records in this status"),
    store: StateStore = Depends(get_store),
):
    """List every tracked video."""
    try:
        records = store.all()
    except StateStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return [
        VideoResponse.from_record(name, record)
        for name, record in records.items()
        if status is None or record.status == status
    ]


@router.get("/videos/{name}", response_model=VideoResponse)
async def get_video(name: str, store: StateStore = Depends(get_store)):
    """Get the state of one video."""
    try:
        record = store.get(name)
    except StateStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if record is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return VideoResponse.from_record(name, record)


@router.delete("/videos/{name}")
async def delete_video(
    name: str,
    store: StateStore = Depends(get_store),
    watcher: Optional[FolderWatcher] = Depends(get_watcher),
):
    """Forget a video's state so the next run processes it from scratch."""
    _reject_in_flight(name, watcher)
    try:
        removed = store.delete(name)
    except StateStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail="Video not found")
    return {"message": f"State for {name} removed"}


@router.post("/videos/{name}/retry", response_model=RetryResponse)
async def retry_video(
    name: str,
    store: StateStore = Depends(get_store),
    watcher: Optional[FolderWatcher] = Depends(get_watcher),
):
    """Forget a video's state and queue it again if the watcher is running."""
    _reject_in_flight(name, watcher)
    try:
        if watcher is None:
            removed = store.delete(name)
            queued = False
        else:
            removed = store.get(name) is not None
            queued = watcher.retry(name)
    except StateStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(f"Retry requested for {name}: removed={removed}, queued={queued}")
    return RetryResponse(name=name, removed=removed, queued=queued)


# =============================================================================
# Queue
# =============================================================================

@router.get("/queue", response_model=QueueResponse)
async def queue_status(watcher: Optional[FolderWatcher] = Depends(get_watcher)):
    """Work queue occupancy."""
    if watcher is None:
        return QueueResponse(watching=False)
    return QueueResponse(
        watching=True,
        max_concurrent=watcher.queue.max_concurrent,
        active=watcher.queue.active_count,
        pending=watcher.queue.pending_count,
    )
