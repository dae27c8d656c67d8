"""
Application configuration loaded from the environment.
"""
import tempfile
from pathlib import Path
from typing import List, Optional, Set

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from media.config import MediaSettings


class Settings(BaseSettings):
    """Clipchat API settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    VERSION: str = "1.0.0"

    # Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_WORKERS: int = 1
    API_RELOAD: bool = False
    API_LOG_LEVEL: str = "info"
    DEBUG: bool = False

    # Comma-separated origins
    CORS_ORIGINS: str = "*"

    ENABLE_METRICS: bool = True

    # Authentication
    ENABLE_API_KEYS: bool = False
    API_KEYS: str = Field(default="", description="Comma-separated list of accepted API keys")

    # FFmpeg
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    TEMP_DIR: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "clipchat")
    PROCESS_TIMEOUT: Optional[float] = 600.0
    PROBE_TIMEOUT: float = 30.0
    STREAM_CHUNK_SIZE: int = 64 * 1024

    # Limits
    MAX_UPLOAD_SIZE: int = 100 * 1024 * 1024
    MAX_TRANSITION_CLIPS: int = 10
    API_RATE_LIMIT: int = 100
    PROCESS_RATE_LIMIT: int = 20
    RATE_LIMIT_PERIOD: int = 900
    MAX_CONCURRENT_JOBS_PER_CALLER: int = 2

    # Silence generated for clips without audio in transitions
    SILENT_CHANNEL_LAYOUT: str = "stereo"
    SILENT_SAMPLE_RATE: int = 44100

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def api_keys_set(self) -> Set[str]:
        return {key.strip() for key in self.API_KEYS.split(",") if key.strip()}

    def media_settings(self) -> MediaSettings:
        """Settings for the media core."""
        return MediaSettings(
            ffmpeg_path=self.FFMPEG_PATH,
            ffprobe_path=self.FFPROBE_PATH,
            temp_dir=self.TEMP_DIR,
            max_upload_size=self.MAX_UPLOAD_SIZE,
            max_transition_clips=self.MAX_TRANSITION_CLIPS,
            process_timeout=self.PROCESS_TIMEOUT,
            probe_timeout=self.PROBE_TIMEOUT,
            stream_chunk_size=self.STREAM_CHUNK_SIZE,
            silent_channel_layout=self.SILENT_CHANNEL_LAYOUT,
            silent_sample_rate=self.SILENT_SAMPLE_RATE,
        )


settings = Settings()
