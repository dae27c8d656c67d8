"""
Supported containers, codecs and content types.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

SUPPORTED_VIDEO_FORMATS = ("mp4", "webm", "mov", "avi", "mkv", "flv", "ogv")
SUPPORTED_VIDEO_CODECS = ("libx264", "libx265", "libvpx-vp9", "auto")
SUPPORTED_AUDIO_FORMATS = ("mp3", "wav", "aac", "ogg", "flac", "m4a", "wma")
SUPPORTED_EXTRACT_FORMATS = ("mp3", "wav", "aac", "ogg", "flac", "m4a")
AUDIO_BITRATES = ("64k", "128k", "192k", "256k", "320k")
DEFAULT_AUDIO_BITRATE = "192k"

VIDEO_CONTENT_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "mkv": "video/x-matroska",
    "flv": "video/x-flv",
    "ogv": "video/ogg",
}

AUDIO_CONTENT_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "m4a": "audio/mp4",
    "wma": "audio/x-ms-wma",
}

# Extension -> ffmpeg muxer name
MUXERS = {
    "mp4": "mp4",
    "webm": "webm",
    "mov": "mov",
    "avi": "avi",
    "mkv": "matroska",
    "flv": "flv",
    "ogv": "ogg",
    "mp3": "mp3",
    "wav": "wav",
    "aac": "adts",
    "ogg": "ogg",
    "flac": "flac",
    "m4a": "ipod",
    "wma": "asf",
}

AUDIO_ENCODERS = {
    "mp3": "libmp3lame",
    "wav": "pcm_s16le",
    "aac": "aac",
    "ogg": "libvorbis",
    "flac": "flac",
    "m4a": "aac",
    "wma": "wmav2",
}

LOSSLESS_AUDIO_FORMATS = frozenset({"wav", "flac"})

# Containers that cannot carry arbitrary stream copies
CONTAINER_ENCODERS = {
    "webm": ("libvpx-vp9", "libopus"),
    "ogv": ("libtheora", "libvorbis"),
}

# MP4-family muxers need fragmenting to write to a non-seekable pipe
FRAGMENTED_MUXERS = frozenset({"mp4", "mov", "ipod"})
STREAMING_MOVFLAGS = "frag_keyframe+empty_moov+default_base_moof"

# Request content type -> ffmpeg demuxer name for piped input
MIME_TO_DEMUXER = {
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/webm": "webm",
    "video/x-matroska": "matroska",
    "video/x-msvideo": "avi",
    "video/x-flv": "flv",
    "video/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/aac": "aac",
    "audio/ogg": "ogg",
    "audio/flac": "flac",
    "audio/mp4": "mp4",
    "audio/x-m4a": "mp4",
}

MIME_TO_EXTENSION = {
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/webm": "webm",
    "video/x-matroska": "mkv",
    "video/x-msvideo": "avi",
    "video/x-flv": "flv",
    "video/ogg": "ogv",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/aac": "aac",
    "audio/ogg": "ogg",
    "audio/flac": "flac",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "application/x-subrip": "srt",
}

ASPECT_RATIO_PRESETS: Dict[str, Dict[str, Any]] = {
    "9:16": {"width": 1080, "height": 1920, "description": "Vertical (TikTok, Instagram Stories, YouTube Shorts)"},
    "16:9": {"width": 1920, "height": 1080, "description": "Landscape (YouTube, standard video)"},
    "1:1": {"width": 1080, "height": 1080, "description": "Square (Instagram posts)"},
    "2:3": {"width": 1080, "height": 1620, "description": "Portrait (Pinterest, Instagram portrait)"},
    "3:2": {"width": 1620, "height": 1080, "description": "Landscape photo ratio"},
}

TRANSITION_TYPES = (
    "crossfade",
    "dissolve",
    "fade",
    "wipe_left",
    "wipe_right",
    "wipe_up",
    "wipe_down",
    "slide_left",
    "slide_right",
    "slide_up",
    "slide_down",
)

SUBTITLE_STYLES = ("default", "white_on_black", "yellow")
SUBTITLE_POSITIONS = ("bottom", "top")


@dataclass(frozen=True)
class OutputSpec:
    """Container an operation writes, and how the boundary labels it."""

    extension: str
    muxer: str
    content_type: str

    @property
    def fragmented(self) -> bool:
        return self.muxer in FRAGMENTED_MUXERS

    @property
    def is_audio(self) -> bool:
        return self.content_type.startswith("audio/")


def output_for_format(fmt: str) -> OutputSpec:
    """Return the output description for a container extension."""
    fmt = fmt.lower()
    content_type = VIDEO_CONTENT_TYPES.get(fmt) or AUDIO_CONTENT_TYPES.get(fmt)
    if content_type is None or fmt not in MUXERS:
        raise KeyError(f"Unsupported output format: {fmt}")
    return OutputSpec(extension=fmt, muxer=MUXERS[fmt], content_type=content_type)


DEFAULT_VIDEO_OUTPUT = output_for_format("mp4")


def _base_mime(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def demuxer_for_mime(content_type: Optional[str]) -> Optional[str]:
    """Demuxer hint for piped input; None lets ffmpeg sniff the stream."""
    return MIME_TO_DEMUXER.get(_base_mime(content_type))


def extension_for_mime(content_type: Optional[str], default: str = "mp4") -> str:
    return MIME_TO_EXTENSION.get(_base_mime(content_type), default)


def supported_formats() -> Dict[str, Any]:
    """Catalogue served to clients that need to pick a target format."""
    return {
        "video": {
            "formats": list(SUPPORTED_VIDEO_FORMATS),
            "codecs": list(SUPPORTED_VIDEO_CODECS),
            "content_types": dict(VIDEO_CONTENT_TYPES),
        },
        "audio": {
            "formats": list(SUPPORTED_AUDIO_FORMATS),
            "extract_formats": list(SUPPORTED_EXTRACT_FORMATS),
            "bitrates": list(AUDIO_BITRATES),
            "default_bitrate": DEFAULT_AUDIO_BITRATE,
            "content_types": dict(AUDIO_CONTENT_TYPES),
        },
        "aspect_ratios": {
            ratio: dict(preset) for ratio, preset in ASPECT_RATIO_PRESETS.items()
        },
        "transitions": list(TRANSITION_TYPES),
        "subtitles": {
            "styles": list(SUBTITLE_STYLES),
            "positions": list(SUBTITLE_POSITIONS),
        },
    }
