"""Watch-folder reconciliation and polling.

At startup every video in the folder that has not reached a terminal status
is queued. Afterwards the folder is polled; a newly appeared file is queued
once its size has stopped changing and it has no record yet.
"""
import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Set

from clipwatch.config import settings
from clipwatch.db.state_store import StateStore, StateStoreError
from clipwatch.models.video import TERMINAL_STATUSES
from clipwatch.pipeline.processor import VideoPipeline
from clipwatch.workers.job_runner import WorkQueue

logger = logging.getLogger(__name__)


def is_video_candidate(name: str, extensions: Iterable[str], marker: str) -> bool:
    """True for source videos; our own rendered montages are ignored."""
    suffix = Path(name).suffix.lower()
    return suffix in {ext.lower() for ext in extensions} and marker not in name


async def wait_for_file_ready(
    path: Path,
    interval: float = 1.0,
    max_retries: int = 60,
) -> bool:
    """
    Wait until a file is non-empty and its size is unchanged between two checks.

    Returns:
        False if the file never stabilized within `max_retries` checks
    """
    last_size = -1
    for _ in range(max_retries):
        try:
            size = path.stat().st_size
        except OSError:
            # Still being created, or locked by the recorder
            size = None

        if size is not None:
            if size > 0 and size == last_size:
                return True
            last_size = size

        await asyncio.sleep(interval)
    return False


class FolderWatcher:
    """Feeds files from the watch folder into the work queue."""

    def __init__(
        self,
        pipeline: VideoPipeline,
        queue: WorkQueue,
        store: StateStore,
        watch_path: Optional[Path] = None,
        extensions: Optional[List[str]] = None,
        marker: Optional[str] = None,
        poll_interval: Optional[float] = None,
        stability_interval: Optional[float] = None,
        stability_max_retries: Optional[int] = None,
    ):
        self.pipeline = pipeline
        self.queue = queue
        self.store = store
        self.watch_path = Path(watch_path or settings.watch_path)
        self.extensions = extensions or settings.video_extensions
        self.marker = marker or settings.montage_marker
        self.poll_interval = settings.poll_interval_seconds if poll_interval is None else poll_interval
        self.stability_interval = (
            settings.stability_interval_seconds if stability_interval is None else stability_interval
        )
        self.stability_max_retries = stability_max_retries or settings.stability_max_retries

        self._tracked: Set[str] = set()  # queued or running
        self._known: Set[str] = set()  # present in the folder at the last poll
        self._stabilizing: Set[asyncio.Task] = set()
        self._stop = asyncio.Event()
        self._fatal: Optional[BaseException] = None

    def list_candidates(self) -> List[str]:
        """Names of source videos currently in the watch folder."""
        return sorted(
            entry.name
            for entry in self.watch_path.iterdir()
            if entry.is_file() and is_video_candidate(entry.name, self.extensions, self.marker)
        )

    def _fail(self, error: StateStoreError):
        logger.critical(f"State document failure, stopping watcher: {error}")
        if self._fatal is None:
            self._fatal = error
        self._stop.set()

    def _enqueue(self, name: str) -> bool:
        if name in self._tracked:
            return False
        self._tracked.add(name)

        async def task():
            try:
                await self.pipeline.process(name)
            except StateStoreError as e:
                self._fail(e)
            finally:
                self._tracked.discard(name)

        self.queue.enqueue(task)
        return True

    def reconcile(self) -> List[str]:
        """
        Queue every unfinished video already in the folder.

        Returns:
            Names that were queued
        """
        logger.info(f"Scanning {self.watch_path} for unfinished work...")
        records = self.store.all()
        queued = []
        for name in self.list_candidates():
            self._known.add(name)
            record = records.get(name)
            if record is not None and record.status in TERMINAL_STATUSES:
                continue
            if self._enqueue(name):
                logger.info(f"Adding existing file to queue: {name}")
                queued.append(name)
        return queued

    async def _admit_new(self, name: str):
        logger.info(f"New file detected: {name}")
        ready = await wait_for_file_ready(
            self.watch_path / name,
            interval=self.stability_interval,
            max_retries=self.stability_max_retries,
        )
        if not ready:
            logger.warning(f"File {name} timed out or was locked.")
            return
        # Double check the record, the file may have been handled meanwhile
        try:
            record = self.store.get(name)
        except StateStoreError as e:
            self._fail(e)
            return
        if record is None:
            self._enqueue(name)

    def poll_once(self) -> List[str]:
        """
        Look for files that appeared since the last poll.

        Each new file gets its own stability check running in the background.

        Returns:
            Names of newly detected files
        """
        current = set(self.list_candidates())
        new = sorted(current - self._known)
        self._known = current
        for name in new:
            task = asyncio.create_task(self._admit_new(name))
            self._stabilizing.add(task)
            task.add_done_callback(self._stabilizing.discard)
        return new

    def is_tracked(self, name: str) -> bool:
        """True while `name` is queued or running."""
        return name in self._tracked

    def retry(self, name: str) -> bool:
        """
        Forget the stored state for `name` and queue it again.

        A file that is queued or running is left alone.

        Returns:
            False if the file is in flight or not in the watch folder
        """
        if self.is_tracked(name):
            logger.info(f"Retry ignored, {name} is already queued")
            return False
        self.store.delete(name)
        if not (self.watch_path / name).is_file():
            return False
        return self._enqueue(name)

    def stop(self):
        self._stop.set()

    async def run(self):
        """
        Reconcile, then poll until stopped.

        Raises:
            StateStoreError: If a pipeline run hit a fatal state document error
        """
        self.reconcile()
        logger.info(f"Watching {self.watch_path} for new files...")

        try:
            while not self._stop.is_set():
                self.poll_once()
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            for task in list(self._stabilizing):
                task.cancel()
            if self._stabilizing:
                await asyncio.gather(*self._stabilizing, return_exceptions=True)

        if self._fatal is not None:
            raise self._fatal
