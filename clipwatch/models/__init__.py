# Models module
from clipwatch.models.video import (
    Analysis,
    Highlight,
    VideoRecord,
    VideoStatus,
    TERMINAL_STATUSES,
)

__all__ = ["Analysis", "Highlight", "VideoRecord", "VideoStatus", "TERMINAL_STATUSES"]
