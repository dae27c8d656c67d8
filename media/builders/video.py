"""
Builders for single-input video operations.
"""
from media.errors import BuildError
from media.formats import ASPECT_RATIO_PRESETS
from media.graph import BuildContext, FilterGraph, atempo_chain, escape_drawtext, fmt_number
from media.params import (
    AspectRatioParams,
    BrightnessParams,
    CropParams,
    FadeTransitionParams,
    HueParams,
    NoParams,
    ResizeParams,
    ResizePresetParams,
    RotateParams,
    SaturationParams,
    SpeedParams,
    TextParams,
    TrimParams,
)


def _video_only(*filters: str) -> FilterGraph:
    return FilterGraph(video_filters=list(filters), audio_codec="copy")


def build_resize(params: ResizeParams, ctx: BuildContext) -> FilterGraph:
    return _video_only(f"scale={params.width}:{params.height}")


def build_resize_preset(params: ResizePresetParams, ctx: BuildContext) -> FilterGraph:
    preset = ASPECT_RATIO_PRESETS[params.preset]
    return _video_only(f"scale={preset['width']}:{preset['height']}")


def build_aspect_ratio(params: AspectRatioParams, ctx: BuildContext) -> FilterGraph:
    preset = ASPECT_RATIO_PRESETS[params.ratio]
    w, h = preset["width"], preset["height"]
    if params.fit == "stretch":
        return _video_only(f"scale={w}:{h}", "setsar=1")
    if params.fit == "cover":
        return _video_only(
            f"scale={w}:{h}:force_original_aspect_ratio=increase",
            f"crop={w}:{h}",
            "setsar=1",
        )
    return _video_only(
        f"scale={w}:{h}:force_original_aspect_ratio=decrease",
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2",
        "setsar=1",
    )


def build_crop(params: CropParams, ctx: BuildContext) -> FilterGraph:
    return _video_only(f"crop={params.width}:{params.height}:{params.x}:{params.y}")


def build_rotate(params: RotateParams, ctx: BuildContext) -> FilterGraph:
    return _video_only(f"rotate={fmt_number(params.angle)}*PI/180")


def build_flip_horizontal(params: NoParams, ctx: BuildContext) -> FilterGraph:
    return _video_only("hflip")


def build_add_text(params: TextParams, ctx: BuildContext) -> FilterGraph:
    text = escape_drawtext(params.text)
    return _video_only(
        f"drawtext=text='{text}':x={params.x}:y={params.y}"
        f":fontsize={params.fontsize}:fontcolor={params.color}"
    )


def build_brightness(params: BrightnessParams, ctx: BuildContext) -> FilterGraph:
    return _video_only(f"eq=brightness={fmt_number(params.brightness)}")


def build_hue(params: HueParams, ctx: BuildContext) -> FilterGraph:
    return _video_only(f"hue=h={fmt_number(params.degrees)}")


def build_saturation(params: SaturationParams, ctx: BuildContext) -> FilterGraph:
    return _video_only(f"eq=saturation={fmt_number(params.saturation)}")


def build_trim(params: TrimParams, ctx: BuildContext) -> FilterGraph:
    """Cut [start, end) without re-encoding."""
    duration = params.end - params.start
    return FilterGraph(
        input_options=["-ss", fmt_number(params.start)],
        output_options=["-t", fmt_number(duration)],
        video_codec="copy",
        audio_codec="copy",
    )


def build_fade_transition(params: FadeTransitionParams, ctx: BuildContext) -> FilterGraph:
    """Fade in from black at the start and out to black at the end."""
    total = ctx.streams[0].duration if ctx.streams else None
    if not total:
        raise BuildError("Could not determine video duration for fade", operation="fade_transition")
    if 2 * params.duration > total:
        raise BuildError(
            f"Fade duration {fmt_number(params.duration)}s is too long for a {fmt_number(total)}s video",
            operation="fade_transition",
        )
    d = fmt_number(params.duration)
    out_start = fmt_number(round(total - params.duration, 6))
    return _video_only(f"fade=t=in:st=0:d={d}", f"fade=t=out:st={out_start}:d={d}")


def build_speed(params: SpeedParams, ctx: BuildContext) -> FilterGraph:
    """Retime video and audio together; audio pitch is preserved."""
    return FilterGraph(
        video_filters=[f"setpts=PTS/{fmt_number(params.speed)}"],
        audio_filters=[f"atempo={fmt_number(stage)}" for stage in atempo_chain(params.speed)],
    )


def build_video_info(params: NoParams, ctx: BuildContext) -> FilterGraph:
    """Metadata requests are answered by ffprobe, so the graph is empty."""
    return FilterGraph()
