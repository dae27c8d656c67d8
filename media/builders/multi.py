"""
Builders for operations that combine several inputs.
"""
from typing import List, Tuple

from media.errors import BuildError
from media.graph import BuildContext, FilterGraph, escape_filter_path, fmt_number
from media.params import AudioTrackParams, SubtitleParams, TransitionParams
from media.probe import StreamDescriptor

# ASS alignment codes (numpad layout)
ASS_ALIGN_BOTTOM = 2
ASS_ALIGN_TOP = 8

SUBTITLE_STYLE_OVERRIDES = {
    "white_on_black": (
        "PrimaryColour=&H00FFFFFF,OutlineColour=&H00000000,BackColour=&H80000000,"
        "BorderStyle=4,Outline=0,Shadow=0"
    ),
    "yellow": "PrimaryColour=&H0000FFFF,OutlineColour=&H00000000,Bold=1",
    "default": "PrimaryColour=&H00FFFFFF,OutlineColour=&H00000000,Bold=0",
}

TRANSITION_OUTPUT_OPTIONS = ["-pix_fmt", "yuv420p"]


def build_audio_track(params: AudioTrackParams, ctx: BuildContext) -> FilterGraph:
    """Replace or mix the soundtrack of input 0 with the attached audio input."""
    audio_index = max(len(ctx.streams), 1)
    source_has_audio = bool(ctx.streams) and ctx.streams[0].has_audio
    volume = fmt_number(params.volume)

    filters = [f"[{audio_index}:a]volume={volume}[newaudio]"]
    label = "newaudio"
    if params.mode == "mix" and source_has_audio:
        filters.append("[0:a][newaudio]amix=inputs=2:duration=shortest:dropout_transition=2[mixedaudio]")
        label = "mixedaudio"

    return FilterGraph(
        complex_filters=filters,
        maps=["0:v:0"],
        output_labels=[label],
        video_codec="copy",
        audio_codec="aac",
        output_options=["-shortest"],
    )


def subtitle_force_style(style: str, position: str, translated: bool = False) -> str:
    """ASS style override for a subtitle track.

    The translated track is smaller and sits at the opposite edge.
    """
    alignment = ASS_ALIGN_TOP if position == "top" else ASS_ALIGN_BOTTOM
    font_size = 20
    if translated:
        alignment = ASS_ALIGN_BOTTOM if alignment == ASS_ALIGN_TOP else ASS_ALIGN_TOP
        font_size = 18
    return f"FontSize={font_size},Alignment={alignment},{SUBTITLE_STYLE_OVERRIDES[style]}"


def build_burn_subtitles(params: SubtitleParams, ctx: BuildContext) -> FilterGraph:
    subtitles = ctx.attachments.get("subtitles")
    if subtitles is None:
        raise BuildError("Subtitle file was not staged", operation="burn_subtitles")

    filters = [
        f"subtitles='{escape_filter_path(subtitles)}'"
        f":force_style='{subtitle_force_style(params.style, params.position)}'"
    ]
    translated = ctx.attachments.get("translated_subtitles")
    if translated is not None:
        filters.append(
            f"subtitles='{escape_filter_path(translated)}'"
            f":force_style='{subtitle_force_style(params.style, params.position, translated=True)}'"
        )
    return FilterGraph(video_filters=filters, audio_codec="copy")


def _silent_pad(index: int, clip: StreamDescriptor, ctx: BuildContext) -> str:
    source = (
        f"anullsrc=channel_layout={ctx.settings.silent_channel_layout}"
        f":sample_rate={ctx.settings.silent_sample_rate}"
    )
    # Bound the silence so the audio concat terminates
    if clip.duration:
        source += f",atrim=duration={fmt_number(clip.duration)}"
    return f"{source}[silent{index}]"


def _fade_segments(
    params: TransitionParams, clips: List[StreamDescriptor]
) -> Tuple[List[str], List[str], List[str]]:
    """Per-clip fade filters; returns (filters, video labels, audio labels)."""
    d = fmt_number(params.duration)
    filters: List[str] = []
    video_labels: List[str] = []
    audio_labels: List[str] = []
    for i, clip in enumerate(clips):
        if i == 0:
            first = clips[0]
            if len(clips) == 2 and first.duration and first.duration > params.duration:
                out_start = fmt_number(round(first.duration - params.duration, 6))
                video_filter = f"fade=t=out:st={out_start}:d={d}"
                audio_filter = f"afade=t=out:st={out_start}:d={d}"
            else:
                video_filter, audio_filter = "copy", "acopy"
        else:
            video_filter = f"fade=t=in:st=0:d={d}"
            audio_filter = f"afade=t=in:st=0:d={d}"

        filters.append(f"[{i}:v]{video_filter}[v{i}fade]")
        video_labels.append(f"[v{i}fade]")
        if clip.has_audio:
            filters.append(f"[{i}:a]{audio_filter}[a{i}fade]")
            audio_labels.append(f"[a{i}fade]")
        else:
            audio_labels.append("")
    return filters, video_labels, audio_labels


def build_transition(params: TransitionParams, ctx: BuildContext) -> FilterGraph:
    """Join clips in order.

    Every transition type other than ``fade`` is a straight concatenation.
    Clips without audio get a silent pad when any clip has audio so the audio
    concat sees one segment per clip.
    """
    clips = ctx.streams
    count = len(clips)
    if count < 2:
        raise BuildError("At least two video clips are required for a transition", operation="add_video_transition")
    if count > ctx.settings.max_transition_clips:
        raise BuildError(
            f"At most {ctx.settings.max_transition_clips} clips can be joined",
            operation="add_video_transition",
        )

    any_audio = any(clip.has_audio for clip in clips)

    if params.transition == "fade":
        filters, video_labels, audio_labels = _fade_segments(params, clips)
    else:
        filters = []
        video_labels = [f"[{i}:v]" for i in range(count)]
        audio_labels = [f"[{i}:a]" if clip.has_audio else "" for i, clip in enumerate(clips)]

    output_labels = ["v"]
    if any_audio:
        for i, clip in enumerate(clips):
            if not clip.has_audio:
                filters.append(_silent_pad(i, clip, ctx))
                audio_labels[i] = f"[silent{i}]"
        output_labels.append("a")

    filters.append(f"{''.join(video_labels)}concat=n={count}:v=1:a=0[v]")
    if any_audio:
        filters.append(f"{''.join(audio_labels)}concat=n={count}:v=0:a=1[a]")

    return FilterGraph(
        complex_filters=filters,
        output_labels=output_labels,
        video_codec="libx264",
        audio_codec="aac" if any_audio else None,
        output_options=list(TRANSITION_OUTPUT_OPTIONS),
    )
