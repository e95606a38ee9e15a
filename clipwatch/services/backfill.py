"""Mark videos already in the watch folder as done without processing them."""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from clipwatch.config import settings
from clipwatch.db.state_store import StateStore
from clipwatch.models.video import VideoRecord, VideoStatus
from clipwatch.workers.watcher import is_video_candidate

logger = logging.getLogger(__name__)

BACKFILL_NOTE = "Manually backfilled via script"


@dataclass
class BackfillResult:
    """Names added to and skipped from the state document."""
    added: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def backfill(
    store: StateStore,
    watch_path: Optional[Path] = None,
    extensions: Optional[List[str]] = None,
    marker: Optional[str] = None,
) -> BackfillResult:
    """
    Record every existing video as UPLOADED so the watcher skips it.

    Files that already have a record are left untouched.
    """
    watch_path = Path(watch_path or settings.watch_path)
    extensions = extensions or settings.backfill_extensions
    marker = marker or settings.montage_marker

    result = BackfillResult()
    for entry in sorted(watch_path.iterdir()):
        if not entry.is_file() or not is_video_candidate(entry.name, extensions, marker):
            continue

        record = VideoRecord(
            status=VideoStatus.UPLOADED,
            original_name=entry.name,
            note=BACKFILL_NOTE,
        )
        if store.insert_if_absent(entry.name, record):
            logger.info(f"Marked as DONE: {entry.name}")
            result.added.append(entry.name)
        else:
            logger.info(f"Skipping {entry.name} (already in state document)")
            result.skipped.append(entry.name)

    logger.info(f"Backfill complete: added {len(result.added)}, skipped {len(result.skipped)}")
    return result
