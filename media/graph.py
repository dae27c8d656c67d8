"""
Filter graph description shared by builders and the executor.

Builders return a FilterGraph. The executor turns it into ffmpeg output
arguments without knowing which operation produced it.
"""
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from media.config import MediaSettings
from media.probe import StreamDescriptor

Number = Union[int, float]


def fmt_number(value: Number) -> str:
    """Render a number for a filter expression without trailing noise."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, float):
        return repr(round(value, 6))
    return str(value)


@dataclass
class BuildContext:
    """Inputs a builder may consult beyond its validated arguments."""

    settings: MediaSettings = field(default_factory=MediaSettings)
    streams: List[StreamDescriptor] = field(default_factory=list)
    attachments: Dict[str, Path] = field(default_factory=dict)

    @property
    def audio_presence(self) -> List[bool]:
        return [s.has_audio for s in self.streams]


@dataclass
class FilterGraph:
    """Filters, stream maps and codec choices for one job."""

    video_filters: List[str] = field(default_factory=list)
    audio_filters: List[str] = field(default_factory=list)
    complex_filters: List[str] = field(default_factory=list)
    output_labels: List[str] = field(default_factory=list)
    maps: List[str] = field(default_factory=list)
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    drop_video: bool = False
    # Placed before the first -i
    input_options: List[str] = field(default_factory=list)
    output_options: List[str] = field(default_factory=list)

    @property
    def video_filter_expression(self) -> str:
        return ",".join(self.video_filters)

    @property
    def audio_filter_expression(self) -> str:
        return ",".join(self.audio_filters)

    @property
    def filter_complex(self) -> str:
        return ";".join(self.complex_filters)

    def to_args(self) -> List[str]:
        """Output-side ffmpeg arguments, in order."""
        args: List[str] = []
        if self.complex_filters:
            args += ["-filter_complex", self.filter_complex]
        if self.video_filters:
            args += ["-vf", self.video_filter_expression]
        if self.audio_filters:
            args += ["-af", self.audio_filter_expression]
        for spec in self.maps:
            args += ["-map", spec]
        for label in self.output_labels:
            args += ["-map", f"[{label}]"]
        if self.drop_video:
            args.append("-vn")
        if self.video_codec and not self.drop_video:
            args += ["-c:v", self.video_codec]
        if self.audio_codec:
            args += ["-c:a", self.audio_codec]
        args += self.output_options
        return args


def atempo_chain(speed: float) -> List[float]:
    """Split a tempo factor into atempo stages each within [0.5, 2.0].

    The product of the stages equals ``speed``.
    """
    if not math.isfinite(speed) or speed <= 0:
        raise ValueError("speed must be a positive finite number")
    if 0.5 <= speed <= 2.0:
        return [speed]

    stages: List[float] = []
    remaining = speed
    if speed < 0.5:
        while remaining < 0.5:
            stages.append(0.5)
            remaining *= 2
    else:
        while remaining > 2.0:
            stages.append(2.0)
            remaining /= 2
    if remaining != 1.0:
        stages.append(remaining)
    return stages


def pan_gains(pan: float) -> Tuple[float, float]:
    """Left and right channel gains for a pan position in [-1, 1]."""
    if pan < 0:
        return 1.0, 1.0 + pan
    return 1.0 - pan, 1.0


def escape_drawtext(text: str) -> str:
    """Escape text for use inside a quoted drawtext value."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace(":", "\\:")
        .replace("\r", "")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )


def escape_filter_path(path: Union[str, Path]) -> str:
    """Escape a file path for use inside a quoted filter argument."""
    return str(path).replace("\\", "\\\\").replace("'", "\\'")
