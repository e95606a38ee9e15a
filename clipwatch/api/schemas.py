"""Pydantic schemas for API responses."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from clipwatch.models.video import VideoRecord


class HighlightResponse(BaseModel):
    """Highlight response."""
    start_time: str
    end_time: str
    description: str


class VideoResponse(BaseModel):
    """Pipeline state of one watched file."""
    name: str
    status: str
    title: Optional[str] = None
    highlights: List[HighlightResponse] = Field(default_factory=list)
    output_file_path: Optional[str] = None
    upload_id: Optional[str] = None
    error_message: Optional[str] = None
    note: Optional[str] = None
    last_updated: datetime

    @classmethod
    def from_record(cls, name: str, record: VideoRecord) -> "VideoResponse":
        analysis = record.analysis
        return cls(
            name=name,
            status=record.status.value,
            title=analysis.title if analysis else None,
            highlights=[
                HighlightResponse(
                    start_time=h.start_time,
                    end_time=h.end_time,
                    description=h.description,
                )
                for h in (analysis.highlights if analysis else [])
            ],
            output_file_path=record.output_file_path,
            upload_id=record.upload_id,
            error_message=record.error_message,
            note=record.note,
            last_updated=record.last_updated,
        )


class RetryResponse(BaseModel):
    """Result of a manual retry."""
    name: str
    removed: bool
    queued: bool


class QueueResponse(BaseModel):
    """Work queue occupancy."""
    watching: bool
    max_concurrent: Optional[int] = None
    active: int = 0
    pending: int = 0


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    state_file: str
    message: Optional[str] = None
