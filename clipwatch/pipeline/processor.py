"""Per-file pipeline: analyze -> render -> publish, resumable from the state document."""
import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from clipwatch.config import settings
from clipwatch.db.state_store import InvalidTransitionError, StateStore, StateStoreError
from clipwatch.models.video import (
    TERMINAL_STATUSES,
    VideoRecord,
    VideoStatus,
    can_transition,
    utcnow,
)
from clipwatch.pipeline.stitcher import build_montage_filter

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ILLEGAL_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]+')
_WHITESPACE = re.compile(r"\s+")


class StageTimeoutError(Exception):
    """An external call did not finish within the configured stage timeout."""
    pass


def sanitize_filename(title: str, now: Optional[datetime] = None) -> str:
    """
    Make a montage file stem from a video title.

    Illegal path characters become "-", a UTC timestamp is appended so
    re-renders never collide, and the result is lowercased with whitespace
    collapsed to "-".
    """
    now = now or utcnow()
    safe_name = _ILLEGAL_FILENAME_CHARS.sub("-", title)
    safe_name = f"{safe_name} - {now.strftime('%Y%m%dT%H%M%SZ')}"
    safe_name = _WHITESPACE.sub("-", safe_name.strip().lower())
    return safe_name.strip(".") or "untitled_montage"


class VideoPipeline:
    """
    Drives one watched file through analysis, rendering and upload.

    Each expensive result (analysis, rendered file) is persisted as soon as it
    exists and reused on later runs, so a restart resumes at the first stage
    that has not completed.
    """

    def __init__(
        self,
        store: StateStore,
        analyzer,
        encoder,
        uploader=None,
        watch_path: Optional[Path] = None,
        output_dir: Optional[Path] = None,
        stage_timeout: Optional[float] = None,
        upload_description: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.analyzer = analyzer
        self.encoder = encoder
        self.uploader = uploader
        self.watch_path = Path(watch_path or settings.watch_path)
        self.output_dir = Path(output_dir or self.watch_path / settings.processed_dir_name)
        self.stage_timeout = stage_timeout
        self.upload_description = upload_description or settings.upload_description
        self.clock = clock

    async def _call(self, stage: str, awaitable: Awaitable[T]) -> T:
        if self.stage_timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, self.stage_timeout)
        except asyncio.TimeoutError:
            raise StageTimeoutError(f"{stage} timed out after {self.stage_timeout:g}s")

    async def process(self, filename: str) -> Optional[VideoRecord]:
        """
        Run (or resume) the pipeline for one file in the watch folder.

        Per-file failures are recorded on the record and never raised.
        StateStoreError is fatal and propagates.

        Returns:
            The record as left by this run
        """
        file_path = self.watch_path / filename
        logger.info(f"[START] Processing: {filename}")

        state = self.store.get(filename)

        if state is not None and state.status in TERMINAL_STATUSES:
            if state.status == VideoStatus.UPLOADED:
                logger.info(f"[SKIP] Already uploaded: {state.upload_id}")
            elif state.status == VideoStatus.FAILED:
                logger.info(f"[SKIP] {filename} marked as FAILED. Delete its entry to retry.")
            else:
                logger.info(f"[SKIP] {filename} already rendered: {state.output_file_path}")
            return state

        try:
            return await self._run(filename, file_path, state)
        except StateStoreError:
            raise
        except Exception as e:
            logger.exception(f"[ERROR] Pipeline failed for {filename}: {e}")
            return self._record_failure(filename, e)

    def _record_failure(self, filename: str, error: Exception) -> Optional[VideoRecord]:
        try:
            return self.store.update(
                filename,
                status=VideoStatus.FAILED,
                error_message=str(error) or type(error).__name__,
            )
        except InvalidTransitionError as e:
            # Record was moved on by someone else, e.g. hand-edited to UPLOADED
            logger.warning(f"[ERROR] Could not mark {filename} as FAILED: {e}")
            return self.store.get(filename)

    async def _run(
        self,
        filename: str,
        file_path: Path,
        state: Optional[VideoRecord],
    ) -> VideoRecord:
        # Step 1: analysis
        analysis = state.analysis if state else None
        if analysis is None:
            logger.info(f"[ANALYZE] Analyzing {filename}...")
            if state is None or can_transition(state.status, VideoStatus.ANALYZING):
                self.store.update(filename, status=VideoStatus.ANALYZING)

            analysis = await self._call("Analysis", self.analyzer.analyze(file_path))

            # Persist the expensive result before anything else can fail
            self.store.update(filename, analysis=analysis)
        else:
            logger.info("[ANALYZE] Using cached analysis.")

        if not analysis.highlights:
            logger.warning(f"[STOP] No highlights found in {filename}.")
            return self.store.update(
                filename,
                status=VideoStatus.FAILED,
                error_message="No highlights found",
            )

        logger.info(f'Title: "{analysis.title}" ({len(analysis.highlights)} clips)')

        # Step 2: rendering
        output_path = state.output_file_path if state else None
        if output_path is None:
            logger.info("[RENDER] Rendering montage...")
            graph = build_montage_filter(
                analysis.highlights,
                padding=settings.segment_padding_seconds,
                crossfade=settings.crossfade_seconds,
                fps=settings.montage_fps,
                pixel_format=settings.montage_pixel_format,
            )
            stem = sanitize_filename(analysis.title, self.clock())
            target = self.output_dir / f"{stem}{settings.montage_marker}{file_path.suffix}"

            rendered = await self._call("Render", self.encoder.encode(graph, file_path, target))
            output_path = str(rendered)

            self.store.update(
                filename,
                status=VideoStatus.RENDERED,
                output_file_path=output_path,
            )
            logger.info(f"[SAVED] {output_path}")
        else:
            logger.info("[RENDER] Using cached video file.")

        # Step 3: upload
        if self.uploader is None:
            logger.info("[INFO] YouTube config missing. Stopping at render.")
            return self.store.update(filename, status=VideoStatus.RENDERED_NO_UPLOAD, error_message=None)

        logger.info("[UPLOAD] Uploading...")
        try:
            video_id = await self._call(
                "Upload",
                self.uploader.upload(output_path, analysis.title, self.upload_description),
            )
        except StateStoreError:
            raise
        except Exception as e:
            logger.error(f"[ERROR] Upload failed for {filename}: {e}")
            return self.store.update(
                filename,
                status=VideoStatus.UPLOAD_FAILED,
                error_message=str(e) or type(e).__name__,
            )

        logger.info(f"[SUCCESS] Video is live: https://youtu.be/{video_id}")
        return self.store.update(
            filename,
            status=VideoStatus.UPLOADED,
            upload_id=video_id,
            error_message=None,
        )
