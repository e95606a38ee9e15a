"""Video record model tracked in the state document."""
import enum
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from clipwatch.utils.timecode import timecode_to_seconds


class VideoStatus(str, enum.Enum):
    """Pipeline status of a watched file."""
    PENDING = "PENDING"
    ANALYZING = "ANALYZING"
    RENDERED = "RENDERED"
    UPLOADED = "UPLOADED"
    FAILED = "FAILED"
    RENDERED_NO_UPLOAD = "RENDERED_NO_UPLOAD"
    UPLOAD_FAILED = "UPLOAD_FAILED"


# Statuses the pipeline never leaves on its own
TERMINAL_STATUSES: FrozenSet[VideoStatus] = frozenset({
    VideoStatus.UPLOADED,
    VideoStatus.FAILED,
    VideoStatus.RENDERED_NO_UPLOAD,
})

ALLOWED_TRANSITIONS: Dict[VideoStatus, FrozenSet[VideoStatus]] = {
    # PENDING is equivalent to "no record yet", so any later status may follow
    VideoStatus.PENDING: frozenset(VideoStatus) - {VideoStatus.PENDING},
    VideoStatus.ANALYZING: frozenset({VideoStatus.RENDERED, VideoStatus.FAILED}),
    VideoStatus.RENDERED: frozenset({
        VideoStatus.UPLOADED,
        VideoStatus.UPLOAD_FAILED,
        VideoStatus.RENDERED_NO_UPLOAD,
        VideoStatus.FAILED,
    }),
    VideoStatus.UPLOAD_FAILED: frozenset({
        VideoStatus.UPLOADED,
        VideoStatus.RENDERED_NO_UPLOAD,
        VideoStatus.FAILED,
    }),
    VideoStatus.UPLOADED: frozenset(),
    VideoStatus.FAILED: frozenset(),
    VideoStatus.RENDERED_NO_UPLOAD: frozenset(),
}


def can_transition(current: VideoStatus, new: VideoStatus) -> bool:
    """Whether a record may move from `current` to `new`."""
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS[current]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Highlight(BaseModel):
    """A time range of interest reported by the analyzer."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    description: str = ""

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _check_timecode(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        # Raises TimecodeError (a ValueError) on malformed input
        timecode_to_seconds(value)
        return value

    @property
    def start_seconds(self) -> float:
        return timecode_to_seconds(self.start_time)

    @property
    def end_seconds(self) -> float:
        return timecode_to_seconds(self.end_time)


class Analysis(BaseModel):
    """Title and ordered highlights for one source video."""
    title: str
    highlights: List[Highlight]


class VideoRecord(BaseModel):
    """Persisted pipeline state for one watched file."""

    model_config = ConfigDict(populate_by_name=True)

    status: VideoStatus = VideoStatus.PENDING
    original_name: str = Field(alias="originalName")
    analysis: Optional[Analysis] = Field(
        None,
        validation_alias=AliasChoices("analysis", "geminiAnalysis"),
    )
    output_file_path: Optional[str] = Field(None, alias="outputFilePath")
    upload_id: Optional[str] = Field(None, alias="uploadId")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    note: Optional[str] = None
    last_updated: datetime = Field(default_factory=utcnow, alias="lastUpdated")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_document(self) -> dict:
        """Serialize to the camelCase shape stored on disk."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __repr__(self):
        return f"<VideoRecord(name={self.original_name!r}, status={self.status.value})>"
