"""
Stream introspection through ffprobe.
"""
import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog

from media.config import MediaSettings
from media.errors import ProbeError

logger = structlog.get_logger()


def parse_fps(fps_string: str) -> float:
    """Parse frame rate from FFmpeg format (e.g., '25/1')."""
    try:
        if '/' in fps_string:
            numerator, denominator = fps_string.split('/')
            return float(numerator) / float(denominator)
        return float(fps_string)
    except (ValueError, ZeroDivisionError):
        return 0.0


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class StreamDescriptor:
    """What the builders need to know about one input."""

    has_audio: bool = False
    has_video: bool = False
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    codec: Optional[str] = None
    frame_rate: Optional[float] = None

    @classmethod
    def from_probe(cls, probe_info: Dict[str, Any]) -> "StreamDescriptor":
        streams = probe_info.get('streams', [])
        video = next((s for s in streams if s.get('codec_type') == 'video'), None)
        has_audio = any(s.get('codec_type') == 'audio' for s in streams)

        duration = _to_float(probe_info.get('format', {}).get('duration'))
        if duration is None and video is not None:
            duration = _to_float(video.get('duration'))

        if video is None:
            return cls(has_audio=has_audio, duration=duration)

        return cls(
            has_audio=has_audio,
            has_video=True,
            duration=duration,
            width=video.get('width'),
            height=video.get('height'),
            codec=video.get('codec_name'),
            frame_rate=parse_fps(video.get('r_frame_rate', '0/1')),
        )


def summarize_probe(probe_info: Dict[str, Any]) -> Dict[str, Any]:
    """Condense ffprobe output into the metadata shape returned to callers."""
    format_info = probe_info.get('format', {})
    streams = probe_info.get('streams', [])
    video_stream = next((s for s in streams if s.get('codec_type') == 'video'), None)
    audio_streams = [s for s in streams if s.get('codec_type') == 'audio']

    summary: Dict[str, Any] = {
        'format_name': format_info.get('format_name', ''),
        'duration': _to_float(format_info.get('duration')) or 0.0,
        'size': _to_int(format_info.get('size')),
        'bit_rate': _to_int(format_info.get('bit_rate')),
        'video': None,
        'audio': [
            {
                'codec': stream.get('codec_name', ''),
                'channels': stream.get('channels', 0),
                'channel_layout': stream.get('channel_layout', ''),
                'sample_rate': _to_int(stream.get('sample_rate')),
                'bit_rate': _to_int(stream.get('bit_rate')),
                'language': stream.get('tags', {}).get('language', ''),
            }
            for stream in audio_streams
        ],
        'has_audio': bool(audio_streams),
        'metadata': format_info.get('tags', {}),
    }
    if video_stream is not None:
        summary['video'] = {
            'codec': video_stream.get('codec_name', ''),
            'width': video_stream.get('width', 0),
            'height': video_stream.get('height', 0),
            'fps': parse_fps(video_stream.get('r_frame_rate', '0/1')),
            'bit_rate': _to_int(video_stream.get('bit_rate')),
            'pixel_format': video_stream.get('pix_fmt', ''),
            'profile': video_stream.get('profile', ''),
        }
    return summary


class StreamIntrospector:
    """Runs ffprobe against staged files."""

    def __init__(self, settings: MediaSettings):
        self.settings = settings

    async def probe_file(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Return raw ffprobe JSON for ``file_path``. Raises ProbeError."""
        cmd = [
            self.settings.ffprobe_path,
            '-v', 'quiet',
            '-print_format', 'json',
            '-show_format',
            '-show_streams',
            str(file_path),
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeError(f"FFprobe could not be started: {e}", path=file_path) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.settings.probe_timeout
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise ProbeError("FFprobe timed out", path=file_path) from e

        if process.returncode != 0:
            logger.debug(
                "FFprobe failed",
                path=str(file_path),
                returncode=process.returncode,
                stderr=stderr.decode('utf-8', errors='ignore')[-500:],
            )
            raise ProbeError("Input could not be read as media", path=file_path)

        try:
            return json.loads(stdout.decode('utf-8', errors='ignore'))
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse FFprobe output: {e}", path=file_path) from e

    async def probe(self, file_path: Union[str, Path]) -> StreamDescriptor:
        """Describe ``file_path``. Raises ProbeError."""
        return StreamDescriptor.from_probe(await self.probe_file(file_path))

    async def describe(self, file_path: Union[str, Path]) -> StreamDescriptor:
        """Describe ``file_path``, treating an unreadable file as having no audio."""
        try:
            return await self.probe(file_path)
        except ProbeError as e:
            logger.warning("Probe failed, assuming no audio", path=str(file_path), error=e.message)
            return StreamDescriptor()

    async def has_audio_stream(self, file_path: Union[str, Path]) -> bool:
        return (await self.describe(file_path)).has_audio

    async def describe_all(self, paths: List[Path]) -> List[StreamDescriptor]:
        return list(await asyncio.gather(*(self.describe(p) for p in paths)))

    async def metadata(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Metadata for the info operation. Raises ProbeError."""
        probe_info = await self.probe_file(file_path)
        if not probe_info.get('streams'):
            raise ProbeError("Input contains no media streams", path=file_path)
        summary = summarize_probe(probe_info)
        summary['streams'] = probe_info.get('streams', [])
        return summary
