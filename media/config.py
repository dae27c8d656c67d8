"""
Runtime settings for the media core.

The HTTP layer builds one of these from its environment-driven settings and
hands it to every component, so nothing below ``media`` reads globals.
"""
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MediaSettings(BaseModel):
    """Immutable configuration shared by dispatch, probing and execution."""

    model_config = ConfigDict(frozen=True)

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))

    # Per-file upload ceiling (bytes)
    max_upload_size: int = Field(default=100 * 1024 * 1024, gt=0)
    max_transition_clips: int = Field(default=10, ge=2)

    # Buffered jobs are killed after this many seconds; None disables it
    process_timeout: Optional[float] = Field(default=600.0, gt=0)
    probe_timeout: float = Field(default=30.0, gt=0)
    stream_chunk_size: int = Field(default=64 * 1024, gt=0)

    # Shape of the silence generated for clips without audio
    silent_channel_layout: str = "stereo"
    silent_sample_rate: int = Field(default=44100, gt=0)
