"""Application configuration."""
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Missing or invalid configuration; fatal at startup."""
    pass


class YouTubeSettings(BaseModel):
    """OAuth client credentials for the YouTube publisher."""
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLIPWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # App settings
    app_name: str = "ClipWatch"
    debug: bool = False

    # Server settings (status API)
    host: str = "127.0.0.1"
    port: int = 8000

    # Watch folder
    watch_path: Path = Path("./watch")
    processed_dir_name: str = "processed"
    video_extensions: List[str] = [".mp4", ".mkv", ".mov"]
    backfill_extensions: List[str] = [".mp4", ".mkv", ".mov", ".avi"]
    montage_marker: str = "_montage"
    poll_interval_seconds: float = 2.0
    stability_interval_seconds: float = 1.0
    stability_max_retries: int = 60

    # State document
    state_file: Path = Path("./process-lock.json")

    # Work queue
    max_concurrent: int = 1
    stage_timeout_seconds: Optional[float] = None  # None = wait forever

    # Gemini analysis
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-3-flash-preview"
    gemini_temperature: float = 0.6
    gemini_poll_seconds: float = 2.0

    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"

    # Export settings
    export_video_codec: str = "libx264"
    export_video_preset: str = "slow"
    export_video_crf: int = 18
    export_audio_codec: str = "aac"
    export_audio_bitrate: str = "320k"

    # Montage assembly
    segment_padding_seconds: float = 2.0
    crossfade_seconds: float = 0.5
    montage_fps: int = 60
    montage_pixel_format: str = "yuv420p"

    # YouTube publishing
    youtube: YouTubeSettings = YouTubeSettings()
    upload_description: str = "Highlights automatically by Gemini 3 Flash."
    upload_tags: List[str] = ["Valorant", "Gaming", "Highlights", "Montage"]
    upload_category_id: str = "20"  # Gaming
    upload_privacy_status: str = "public"

    @property
    def processed_dir(self) -> Path:
        return self.watch_path / self.processed_dir_name

    def require_watch_config(self):
        """Raise ConfigError unless everything the watch loop needs is present."""
        if not self.watch_path.is_dir():
            raise ConfigError(f"Watch folder does not exist: {self.watch_path}")
        if not self.gemini_api_key:
            raise ConfigError("Gemini API key is missing (set CLIPWATCH_GEMINI_API_KEY)")
        if self.max_concurrent < 1:
            raise ConfigError(f"max_concurrent must be at least 1, got {self.max_concurrent}")


settings = Settings()
