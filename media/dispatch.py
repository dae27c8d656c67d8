"""
Dispatch table: operation identifiers mapped to their argument model,
builder, execution mode and output container.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Type

import structlog

from media.builders import Builder
from media.builders import audio, convert, multi, video
from media.config import MediaSettings
from media.errors import UnresolvedOperationError
from media.formats import DEFAULT_VIDEO_OUTPUT, OutputSpec, output_for_format
from media import params as p

logger = structlog.get_logger()


class ExecutionMode(str, Enum):
    """How an operation's input reaches ffmpeg."""
    STREAMING = "streaming"
    BUFFERED = "buffered"
    PROBE = "probe"


@dataclass
class Attachment:
    """Extra file staged for a job.

    Input attachments become additional ``-i`` inputs. Others are only
    referenced by path from inside the filter graph.
    """

    extension: str
    data: bytes
    as_input: bool = True


AttachmentFactory = Callable[[p.OperationParams, Sequence[Any]], Dict[str, Attachment]]


def video_output(params: p.OperationParams) -> OutputSpec:
    return DEFAULT_VIDEO_OUTPUT


@dataclass(frozen=True)
class OperationSpec:
    """Everything needed to run one operation."""

    name: str
    params: Type[p.OperationParams]
    builder: Builder
    mode: ExecutionMode
    description: str
    needs_probe: bool = False
    multi_input: bool = False
    attachments: Optional[AttachmentFactory] = None
    output: Callable[[p.OperationParams], OutputSpec] = video_output

    def validate(self, raw_args: Any) -> p.OperationParams:
        return p.validate_args(self.params, raw_args)

    @property
    def accepts_secondary(self) -> bool:
        return self.multi_input or self.attachments is not None

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "mode": self.mode.value,
            "needs_probe": self.needs_probe,
            "multi_input": self.multi_input,
            "accepts_secondary": self.accepts_secondary,
            "parameters": p.schema_for(self.params),
        }


class DispatchTable:
    """Operation registry with alias resolution."""

    def __init__(self, settings: Optional[MediaSettings] = None):
        self.settings = settings or MediaSettings()
        self._specs: Dict[str, OperationSpec] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, spec: OperationSpec) -> None:
        if spec.name in self._specs or spec.name in self._aliases:
            raise ValueError(f"Operation already registered: {spec.name}")
        if not callable(spec.builder):
            raise ValueError(f"Operation {spec.name} needs a builder")
        self._specs[spec.name] = spec

    def alias(self, name: str, target: str) -> None:
        if target not in self._specs:
            raise ValueError(f"Alias {name} points at unknown operation {target}")
        if name in self._specs or name in self._aliases:
            raise ValueError(f"Operation already registered: {name}")
        self._aliases[name] = target

    def resolve(self, operation: Optional[str]) -> OperationSpec:
        """Look up an operation or alias. Raises UnresolvedOperationError."""
        if not operation:
            raise UnresolvedOperationError(operation)
        name = self._aliases.get(operation, operation)
        spec = self._specs.get(name)
        if spec is None:
            logger.info("Unknown operation requested", operation=operation)
            raise UnresolvedOperationError(operation)
        return spec

    def canonical_name(self, operation: str) -> str:
        return self.resolve(operation).name

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def operations(self) -> List[str]:
        return sorted(self._specs)

    def __contains__(self, operation: str) -> bool:
        return operation in self._specs or operation in self._aliases

    def __iter__(self) -> Iterator[OperationSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


def _format_output(params: p.OperationParams) -> OutputSpec:
    return output_for_format(params.format)


def _audio_track_attachments(params: p.AudioTrackParams, secondary: Sequence[Any]) -> Dict[str, Attachment]:
    """Secondary upload wins over inline base64 audio."""
    if secondary:
        upload = secondary[0]
        return {"audio": Attachment(extension=upload.extension, data=upload.data)}
    extension, data = params.decode_audio()
    return {"audio": Attachment(extension=extension, data=data)}


def _subtitle_attachments(params: p.SubtitleParams, secondary: Sequence[Any]) -> Dict[str, Attachment]:
    files = {"subtitles": Attachment("srt", params.srt_content.encode("utf-8"), as_input=False)}
    if params.translated_srt_content and params.translated_srt_content.strip():
        files["translated_subtitles"] = Attachment(
            "srt", params.translated_srt_content.encode("utf-8"), as_input=False
        )
    return files


S = ExecutionMode.STREAMING
B = ExecutionMode.BUFFERED


def default_operations() -> List[OperationSpec]:
    return [
        # Video
        OperationSpec("resize_video", p.ResizeParams, video.build_resize, S, "Resize video to exact dimensions"),
        OperationSpec("resize_video_preset", p.ResizePresetParams, video.build_resize_preset, S,
                      "Resize video to a social media aspect ratio preset"),
        OperationSpec("resize_to_aspect_ratio", p.AspectRatioParams, video.build_aspect_ratio, S,
                      "Fit video to an aspect ratio by padding, cropping or stretching"),
        OperationSpec("crop_video", p.CropParams, video.build_crop, S, "Crop a region of the video"),
        OperationSpec("rotate_video", p.RotateParams, video.build_rotate, S, "Rotate video by an angle in degrees"),
        OperationSpec("flip_video_horizontal", p.NoParams, video.build_flip_horizontal, S,
                      "Mirror video horizontally"),
        OperationSpec("add_text", p.TextParams, video.build_add_text, S, "Draw a text overlay"),
        OperationSpec("adjust_brightness", p.BrightnessParams, video.build_brightness, S, "Adjust brightness"),
        OperationSpec("adjust_hue", p.HueParams, video.build_hue, S, "Rotate hue"),
        OperationSpec("adjust_saturation", p.SaturationParams, video.build_saturation, S, "Adjust saturation"),
        OperationSpec("trim_video", p.TrimParams, video.build_trim, B, "Cut video between two timestamps"),
        OperationSpec("fade_transition", p.FadeTransitionParams, video.build_fade_transition, B,
                      "Fade in from black and out to black", needs_probe=True),
        OperationSpec("speed_video", p.SpeedParams, video.build_speed, S,
                      "Change playback speed of video and audio"),
        # Audio
        OperationSpec("adjust_volume", p.VolumeParams, audio.build_volume, S, "Scale audio volume"),
        OperationSpec("audio_fade", p.AudioFadeParams, audio.build_audio_fade, S, "Fade audio in or out"),
        OperationSpec("highpass_filter", p.FrequencyParams, audio.build_highpass, S,
                      "Remove frequencies below a cutoff"),
        OperationSpec("lowpass_filter", p.FrequencyParams, audio.build_lowpass, S,
                      "Remove frequencies above a cutoff"),
        OperationSpec("echo_effect", p.EchoParams, audio.build_echo, S, "Add an echo"),
        OperationSpec("bass_adjustment", p.GainParams, audio.build_bass, S, "Boost or cut bass"),
        OperationSpec("treble_adjustment", p.GainParams, audio.build_treble, S, "Boost or cut treble"),
        OperationSpec("equalizer", p.EqualizerParams, audio.build_equalizer, S, "Adjust one frequency band"),
        OperationSpec("normalize_audio", p.NormalizeParams, audio.build_normalize, S,
                      "Normalize loudness (EBU R128)"),
        OperationSpec("delay_audio", p.DelayParams, audio.build_delay, S, "Delay audio against video"),
        OperationSpec("audio_chorus", p.ChorusParams, audio.build_chorus, S, "Chorus effect"),
        OperationSpec("audio_flanger", p.FlangerParams, audio.build_flanger, S, "Flanger effect"),
        OperationSpec("audio_phaser", p.PhaserParams, audio.build_phaser, S, "Phaser effect"),
        OperationSpec("audio_vibrato", p.ModulationParams, audio.build_vibrato, S, "Vibrato effect"),
        OperationSpec("audio_tremolo", p.ModulationParams, audio.build_tremolo, S, "Tremolo effect"),
        OperationSpec("audio_compressor", p.CompressorParams, audio.build_compressor, S,
                      "Dynamic range compression"),
        OperationSpec("audio_gate", p.GateParams, audio.build_gate, S, "Noise gate"),
        OperationSpec("audio_stereo_widen", p.StereoWidenParams, audio.build_stereo_widen, S,
                      "Widen the stereo image"),
        OperationSpec("audio_reverse", p.NoParams, audio.build_reverse, S, "Play audio backwards"),
        OperationSpec("audio_limiter", p.LimiterParams, audio.build_limiter, S, "Peak limiter"),
        OperationSpec("audio_silence_remove", p.SilenceRemoveParams, audio.build_silence_remove, S,
                      "Remove silent passages"),
        OperationSpec("audio_pan", p.PanParams, audio.build_pan, S, "Pan audio left or right"),
        # Conversion
        OperationSpec("convert_video_format", p.ConvertVideoParams, convert.build_convert_video, S,
                      "Convert to another video container or codec", output=_format_output),
        OperationSpec("convert_audio_format", p.ConvertAudioParams, convert.build_convert_audio, S,
                      "Convert audio to another format", output=_format_output),
        OperationSpec("extract_audio", p.ExtractAudioParams, convert.build_extract_audio, S,
                      "Extract the audio track", output=_format_output),
        # Metadata
        OperationSpec("get_video_info", p.NoParams, video.build_video_info, ExecutionMode.PROBE,
                      "Report duration, dimensions, codecs and audio streams"),
        # Multi-input
        OperationSpec("add_audio_track", p.AudioTrackParams, multi.build_audio_track, B,
                      "Replace or mix the soundtrack with another audio file",
                      needs_probe=True, attachments=_audio_track_attachments),
        OperationSpec("burn_subtitles", p.SubtitleParams, multi.build_burn_subtitles, B,
                      "Burn SRT subtitles into the video", attachments=_subtitle_attachments),
        OperationSpec("add_video_transition", p.TransitionParams, multi.build_transition, B,
                      "Join several clips with a transition", needs_probe=True, multi_input=True),
    ]


DEFAULT_ALIASES = {
    "adjust_speed": "speed_video",
    "adjust_audio_volume": "adjust_volume",
    "audio_highpass": "highpass_filter",
    "audio_lowpass": "lowpass_filter",
    "audio_echo": "echo_effect",
    "adjust_bass": "bass_adjustment",
    "adjust_treble": "treble_adjustment",
    "audio_equalizer": "equalizer",
    "audio_delay": "delay_audio",
    "get_video_dimensions": "get_video_info",
}


def create_dispatch_table(settings: Optional[MediaSettings] = None) -> DispatchTable:
    """Build the table of every supported operation."""
    table = DispatchTable(settings)
    for spec in default_operations():
        table.register(spec)
    for name, target in DEFAULT_ALIASES.items():
        table.alias(name, target)
    return table
