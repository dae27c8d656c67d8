"""
Argument models for every media operation.

Each operation validates its raw JSON arguments against one of these models.
Missing and zero are distinct: a required field that is absent fails, while
an explicit ``0`` is checked against the field's range like any other value.
"""
import base64
import binascii
import re
from typing import Any, Dict, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from media.errors import ValidationError

AspectRatio = Literal["9:16", "16:9", "1:1", "2:3", "3:2"]
VideoFormat = Literal["mp4", "webm", "mov", "avi", "mkv", "flv", "ogv"]
VideoCodec = Literal["libx264", "libx265", "libvpx-vp9", "auto"]
AudioFormat = Literal["mp3", "wav", "aac", "ogg", "flac", "m4a", "wma"]
ExtractFormat = Literal["mp3", "wav", "aac", "ogg", "flac", "m4a"]
AudioBitrate = Literal["64k", "128k", "192k", "256k", "320k"]
TransitionType = Literal[
    "crossfade", "dissolve", "fade",
    "wipe_left", "wipe_right", "wipe_up", "wipe_down",
    "slide_left", "slide_right", "slide_up", "slide_down",
]

DATA_URI_PATTERN = re.compile(r"^data:audio/([a-zA-Z0-9.+-]+);base64,(.+)$", re.DOTALL)
BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/\s]+={0,2}\s*$")
PIPE_LIST_PATTERN = r"^\d+(\.\d+)?(\|\d+(\.\d+)?)*$"
COLOR_PATTERN = r"^(#[0-9A-Fa-f]{6}([0-9A-Fa-f]{2})?|0x[0-9A-Fa-f]{6}([0-9A-Fa-f]{2})?|[A-Za-z]+)(@\d(\.\d+)?)?$"


class OperationParams(BaseModel):
    """Base class for operation arguments. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, allow_inf_nan=False)


class NoParams(OperationParams):
    pass


# Video geometry

class ResizeParams(OperationParams):
    width: int = Field(..., gt=0, description="Target width in pixels")
    height: int = Field(..., gt=0, description="Target height in pixels")


class ResizePresetParams(OperationParams):
    preset: AspectRatio = Field(..., description="Aspect ratio preset")


class AspectRatioParams(OperationParams):
    ratio: AspectRatio = Field(..., description="Target aspect ratio")
    fit: Literal["contain", "cover", "stretch"] = Field(
        "contain",
        description="contain pads to the frame, cover crops to fill it, stretch distorts",
    )


class CropParams(OperationParams):
    x: int = Field(..., ge=0, description="Left offset in pixels")
    y: int = Field(..., ge=0, description="Top offset in pixels")
    width: int = Field(..., gt=0, description="Crop width in pixels")
    height: int = Field(..., gt=0, description="Crop height in pixels")


class RotateParams(OperationParams):
    angle: float = Field(..., description="Rotation angle in degrees, clockwise")


class TextParams(OperationParams):
    text: str = Field(..., min_length=1, description="Text to draw")
    x: int = Field(10, ge=0, description="Horizontal position in pixels")
    y: int = Field(10, ge=0, description="Vertical position in pixels")
    fontsize: int = Field(24, gt=0, le=512, description="Font size")
    color: str = Field("white", pattern=COLOR_PATTERN, description="Font color name or hex value")


class TrimParams(OperationParams):
    start: float = Field(..., ge=0, description="Start time in seconds")
    end: float = Field(..., gt=0, description="End time in seconds")

    @field_validator("end")
    @classmethod
    def end_after_start(cls, v: float, info) -> float:
        start = info.data.get("start")
        if start is not None and v <= start:
            raise ValueError("end must be greater than start")
        return v


class SpeedParams(OperationParams):
    speed: float = Field(..., gt=0, le=100, description="Playback speed multiplier, 2 doubles speed")


class FadeTransitionParams(OperationParams):
    duration: float = Field(1.0, gt=0, description="Fade duration in seconds")


class BrightnessParams(OperationParams):
    brightness: float = Field(..., ge=-1, le=1, description="Brightness offset")


class HueParams(OperationParams):
    degrees: float = Field(..., ge=-360, le=360, description="Hue rotation in degrees")


class SaturationParams(OperationParams):
    saturation: float = Field(..., ge=0, le=3, description="Saturation multiplier")


# Audio

class VolumeParams(OperationParams):
    volume: float = Field(..., ge=0, description="Volume multiplier, 1.0 leaves it unchanged")


class AudioFadeParams(OperationParams):
    type: Literal["in", "out"] = Field(..., description="Fade direction")
    duration: float = Field(..., gt=0, description="Fade duration in seconds")
    start: Optional[float] = Field(
        None, ge=0,
        description="Fade start in seconds; a fade out without a start ends at the end of the track",
    )


class FrequencyParams(OperationParams):
    frequency: float = Field(..., gt=0, description="Cutoff frequency in Hz")


class EchoParams(OperationParams):
    delay: float = Field(..., gt=0, le=90000, description="Echo delay in milliseconds")
    decay: float = Field(..., gt=0, lt=1, description="Echo decay factor")


class GainParams(OperationParams):
    gain: float = Field(..., ge=-20, le=20, description="Gain in dB")


class EqualizerParams(OperationParams):
    frequency: float = Field(..., gt=0, description="Center frequency in Hz")
    gain: float = Field(..., ge=-900, le=900, description="Gain in dB")
    width: float = Field(200, gt=0, description="Band width in Hz")


class NormalizeParams(OperationParams):
    target: float = Field(-16, ge=-70, le=0, description="Integrated loudness target in LUFS")


class DelayParams(OperationParams):
    delay: float = Field(..., ge=0, description="Delay in milliseconds")


class ChorusParams(OperationParams):
    in_gain: float = Field(0.5, gt=0, le=1)
    out_gain: float = Field(0.9, gt=0, le=1)
    delays: str = Field("40|60|80", pattern=PIPE_LIST_PATTERN, description="Pipe-separated delays in ms")
    decays: str = Field("0.4|0.5|0.6", pattern=PIPE_LIST_PATTERN)
    speeds: str = Field("0.5|0.6|0.7", pattern=PIPE_LIST_PATTERN)
    depths: str = Field("0.25|0.4|0.35", pattern=PIPE_LIST_PATTERN)

    @field_validator("decays", "speeds", "depths")
    @classmethod
    def same_voice_count(cls, v: str, info) -> str:
        delays = info.data.get("delays")
        if delays is not None and len(v.split("|")) != len(delays.split("|")):
            raise ValueError("must list one value per delay")
        return v


class FlangerParams(OperationParams):
    delay: float = Field(0, ge=0, le=30)
    depth: float = Field(2, ge=0, le=10)
    regen: float = Field(0, ge=-95, le=95)
    width: float = Field(71, ge=0, le=100)
    speed: float = Field(0.5, ge=0.1, le=10)


class PhaserParams(OperationParams):
    in_gain: float = Field(0.4, ge=0, le=1)
    out_gain: float = Field(0.74, ge=0, le=1e9)
    delay: float = Field(3, ge=0, le=5)
    decay: float = Field(0.4, ge=0, le=0.99)
    speed: float = Field(0.5, ge=0.1, le=2)


class ModulationParams(OperationParams):
    frequency: float = Field(5, ge=0.1, le=20000, description="Modulation frequency in Hz")
    depth: float = Field(0.5, ge=0, le=1, description="Modulation depth")


class CompressorParams(OperationParams):
    threshold: float = Field(0, ge=-60, le=0, description="Threshold in dB")
    ratio: float = Field(4, ge=1, le=20)
    attack: float = Field(20, ge=0.01, le=2000, description="Attack in ms")
    release: float = Field(250, ge=0.01, le=9000, description="Release in ms")


class GateParams(OperationParams):
    threshold: float = Field(-50, ge=-60, le=0, description="Threshold in dB")
    ratio: float = Field(2, ge=1, le=9000)
    attack: float = Field(20, ge=0.01, le=9000, description="Attack in ms")
    release: float = Field(250, ge=0.01, le=9000, description="Release in ms")


class StereoWidenParams(OperationParams):
    delay: float = Field(20, ge=1, le=100, description="Delay in ms")
    feedback: float = Field(0.3, ge=0, le=0.9)
    crossfeed: float = Field(0.3, ge=0, le=0.8)


class LimiterParams(OperationParams):
    limit: float = Field(1.0, ge=0.0625, le=1, description="Linear ceiling")
    attack: float = Field(5, ge=0.1, le=80, description="Attack in ms")
    release: float = Field(50, ge=1, le=8000, description="Release in ms")


class SilenceRemoveParams(OperationParams):
    threshold: float = Field(-50, ge=-120, le=0, description="Silence threshold in dB")
    start_duration: float = Field(0.5, ge=0, description="Minimum leading silence in seconds")
    stop_duration: float = Field(0.5, ge=0, description="Minimum inner silence in seconds")


class PanParams(OperationParams):
    pan: float = Field(..., ge=-1, le=1, description="-1 is full left, 1 is full right")


# Conversion

class ConvertVideoParams(OperationParams):
    format: VideoFormat = Field(..., description="Target container")
    codec: VideoCodec = Field("auto", description="Video encoder; auto copies when the container allows it")


class ConvertAudioParams(OperationParams):
    format: AudioFormat = Field(..., description="Target audio format")
    bitrate: AudioBitrate = Field("192k", description="Target bitrate")


class ExtractAudioParams(OperationParams):
    format: ExtractFormat = Field("mp3", description="Target audio format")
    bitrate: AudioBitrate = Field("192k", description="Target bitrate")


# Multi-input

class AudioTrackParams(OperationParams):
    audio_file: Optional[str] = Field(
        None, alias="audioFile",
        description="Audio as a data URI or plain base64; may instead be uploaded as a second file",
    )
    mode: Literal["replace", "mix"] = Field("replace", description="Replace the original audio or mix with it")
    volume: float = Field(1.0, ge=0, le=2, description="Volume of the added track")

    @field_validator("audio_file")
    @classmethod
    def check_encoding(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if DATA_URI_PATTERN.match(v) or BASE64_PATTERN.match(v):
            return v
        raise ValueError("must be a base64 data URI or a base64 string")

    def decode_audio(self) -> Tuple[str, bytes]:
        """Return ``(extension, bytes)`` for the inline audio payload."""
        if self.audio_file is None:
            raise ValidationError("audioFile is required", field="audioFile", constraint="missing")
        extension = "mp3"
        payload = self.audio_file
        match = DATA_URI_PATTERN.match(payload)
        if match:
            extension = re.sub(r"[^a-z0-9]", "", match.group(1).lower()) or "mp3"
            if extension == "mpeg":
                extension = "mp3"
            payload = match.group(2)
        try:
            data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("audioFile is not valid base64", field="audioFile", constraint="encoding") from exc
        if not data:
            raise ValidationError("audioFile is empty", field="audioFile", constraint="non_empty")
        return extension, data


class SubtitleParams(OperationParams):
    srt_content: str = Field(..., alias="srtContent", min_length=1, description="SRT subtitles")
    translated_srt_content: Optional[str] = Field(
        None, alias="translatedSrtContent", description="Optional second subtitle track",
    )
    style: Literal["default", "white_on_black", "yellow"] = "default"
    position: Literal["bottom", "top"] = "bottom"

    @field_validator("srt_content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class TransitionParams(OperationParams):
    transition: TransitionType = Field(..., description="Transition type")
    duration: float = Field(1.0, gt=0, le=30, description="Transition duration in seconds")


def validate_args(model: Type[OperationParams], raw_args: Any) -> OperationParams:
    """Check raw arguments against ``model``.

    Raises ValidationError naming the first offending field and the
    constraint it broke.
    """
    if raw_args is None:
        raw_args = {}
    if not isinstance(raw_args, dict):
        raise ValidationError("Arguments must be a JSON object", field="args", constraint="type")
    try:
        return model.model_validate(raw_args)
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ())) or "args"
        constraint = error.get("type", "invalid")
        if constraint == "missing":
            message = f"Missing required argument '{field}'"
        else:
            message = f"Invalid value for '{field}': {error.get('msg')}"
        raise ValidationError(message, field=field, constraint=constraint) from exc


def schema_for(model: Type[OperationParams]) -> Dict[str, Any]:
    """JSON schema of ``model`` without pydantic's generated titles."""
    schema = model.model_json_schema(by_alias=True)
    return _strip_titles(schema)


def _strip_titles(node: Any) -> Any:
    if isinstance(node, dict):
        return {
            key: _strip_titles(value)
            for key, value in node.items()
            if not (key == "title" and isinstance(value, str))
        }
    if isinstance(node, list):
        return [_strip_titles(item) for item in node]
    return node
