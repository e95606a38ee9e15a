"""Turn an ordered list of highlights into an ffmpeg filter graph.

Each highlight is padded on both sides, trimmed out of the single source
stream and normalized (timestamps reset, constant frame rate, pixel format).
Two or more segments are then chained left to right with video cross-dissolves
and audio cross-fades. The result is deterministic for a given input.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from clipwatch.models.video import Highlight

logger = logging.getLogger(__name__)

SEGMENT_PADDING_SECONDS = 2.0
CROSSFADE_SECONDS = 0.5
MONTAGE_FPS = 60
PIXEL_FORMAT = "yuv420p"

VIDEO_OUTPUT_LABEL = "v"
AUDIO_OUTPUT_LABEL = "a"


class StitchError(ValueError):
    """Highlights cannot be turned into a montage."""
    pass


@dataclass(frozen=True)
class Segment:
    """A padded highlight range in source seconds."""
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def __repr__(self):
        return f"Segment({self.start:.2f}-{self.end:.2f}, dur={self.duration:.2f}s)"


@dataclass
class FilterGraph:
    """Resolved filter_complex plus the labels to map into the output."""
    filters: List[str]
    video_label: str
    audio_label: str
    segments: List[Segment] = field(default_factory=list)
    total_duration: float = 0.0

    @property
    def description(self) -> str:
        return ";".join(self.filters)

    @property
    def has_transitions(self) -> bool:
        return any("xfade=" in f for f in self.filters)


def format_number(value: float) -> str:
    """Render seconds with at most millisecond precision and no trailing zeros."""
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def build_segments(
    highlights: Sequence[Highlight],
    padding: float = SEGMENT_PADDING_SECONDS,
) -> List[Segment]:
    """
    Convert highlights to padded segments, preserving order.

    Raises:
        StitchError: If a highlight ends before it starts
    """
    segments = []
    for i, highlight in enumerate(highlights):
        start = highlight.start_seconds
        end = highlight.end_seconds
        if end < start:
            raise StitchError(
                f"Highlight {i} ends before it starts "
                f"({highlight.start_time} -> {highlight.end_time})"
            )
        segments.append(Segment(start=max(0.0, start - padding), end=end + padding))
    return segments


def _trim_filters(index: int, segment: Segment, fps: int, pixel_format: str) -> List[str]:
    start = format_number(segment.start)
    end = format_number(segment.end)
    return [
        f"[0:v]trim=start={start}:end={end},setpts=PTS-STARTPTS,"
        f"fps={fps},format={pixel_format}[v{index}]",
        f"[0:a]atrim=start={start}:end={end},asetpts=PTS-STARTPTS[a{index}]",
    ]


def build_montage_filter(
    highlights: Sequence[Highlight],
    padding: float = SEGMENT_PADDING_SECONDS,
    crossfade: float = CROSSFADE_SECONDS,
    fps: int = MONTAGE_FPS,
    pixel_format: str = PIXEL_FORMAT,
) -> FilterGraph:
    """
    Build the filter graph for a highlight montage.

    Args:
        highlights: Ordered highlights (kept in the given order)
        padding: Seconds added before and after each highlight
        crossfade: Transition length between consecutive segments
        fps: Output frame rate for every trimmed segment
        pixel_format: Output pixel format

    Returns:
        FilterGraph whose outputs are labelled [v] and [a]

    Raises:
        StitchError: On empty input or a reversed highlight
    """
    if not highlights:
        raise StitchError("No highlights to process")

    segments = build_segments(highlights, padding)

    filters: List[str] = []
    for i, segment in enumerate(segments):
        filters.extend(_trim_filters(i, segment, fps, pixel_format))

    if len(segments) == 1:
        filters.append(f"[v0]format={pixel_format}[{VIDEO_OUTPUT_LABEL}]")
        filters.append(f"[a0]aformat=channel_layouts=stereo[{AUDIO_OUTPUT_LABEL}]")
        return FilterGraph(
            filters=filters,
            video_label=VIDEO_OUTPUT_LABEL,
            audio_label=AUDIO_OUTPUT_LABEL,
            segments=segments,
            total_duration=segments[0].duration,
        )

    current_video = "v0"
    current_audio = "a0"
    accumulated = segments[0].duration
    last = len(segments) - 1

    for i in range(1, len(segments)):
        segment = segments[i]
        # xfade needs the fade to fit inside both inputs
        fade = min(crossfade, accumulated, segment.duration)
        offset = accumulated - fade

        target_video = VIDEO_OUTPUT_LABEL if i == last else f"vm{i}"
        target_audio = AUDIO_OUTPUT_LABEL if i == last else f"am{i}"

        filters.append(
            f"[{current_video}][v{i}]xfade=transition=fade:"
            f"duration={format_number(fade)}:offset={format_number(offset)}[{target_video}]"
        )
        filters.append(
            f"[{current_audio}][a{i}]acrossfade=d={format_number(fade)}:c1=tri:c2=tri[{target_audio}]"
        )

        current_video = target_video
        current_audio = target_audio
        accumulated = accumulated + segment.duration - fade

    logger.debug(f"Built montage graph: {len(segments)} segments, {accumulated:.2f}s")

    return FilterGraph(
        filters=filters,
        video_label=VIDEO_OUTPUT_LABEL,
        audio_label=AUDIO_OUTPUT_LABEL,
        segments=segments,
        total_duration=accumulated,
    )
