"""FFmpeg utilities."""
import asyncio
import logging
import shutil
from pathlib import Path
from typing import List, Optional

from clipwatch.config import settings
from clipwatch.pipeline.stitcher import FilterGraph

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 2000


class FFmpegError(Exception):
    """FFmpeg related error."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def build_montage_command(
    graph: FilterGraph,
    input_path: str | Path,
    output_path: str | Path,
) -> List[str]:
    """Build the ffmpeg argument list that renders `graph` from `input_path`."""
    return [
        settings.ffmpeg_path,
        "-y",
        "-i", str(input_path),
        "-filter_complex", graph.description,
        "-map", f"[{graph.video_label}]",
        "-map", f"[{graph.audio_label}]",
        "-c:v", settings.export_video_codec,
        "-preset", settings.export_video_preset,
        "-crf", str(settings.export_video_crf),
        "-c:a", settings.export_audio_codec,
        "-b:a", settings.export_audio_bitrate,
        str(output_path),
    ]


class FFmpegEncoder:
    """Renders filter graphs with an external ffmpeg process."""

    async def encode(
        self,
        graph: FilterGraph,
        input_path: str | Path,
        output_path: str | Path,
    ) -> Path:
        """
        Render a montage.

        Args:
            graph: Filter graph produced by the stitcher
            input_path: Source video
            output_path: Destination file (parent directories are created)

        Returns:
            Path to the rendered file

        Raises:
            FFmpegError: If ffmpeg cannot be spawned or exits non-zero
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = build_montage_command(graph, input_path, output_path)
        logger.debug(f"Spawning ffmpeg with args: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise FFmpegError(f"Failed to start ffmpeg: {e}")

        _, stderr = await proc.communicate()

        if proc.returncode != 0:
            tail = stderr.decode("utf-8", errors="ignore")[-STDERR_TAIL_CHARS:]
            logger.error(f"FFmpeg error:\n{tail}")
            raise FFmpegError(f"ffmpeg exited with code {proc.returncode}", returncode=proc.returncode)

        return output_path
