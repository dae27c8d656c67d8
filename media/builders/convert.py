"""
Builders for container and codec conversion.
"""
from media.errors import BuildError
from media.formats import AUDIO_ENCODERS, CONTAINER_ENCODERS, LOSSLESS_AUDIO_FORMATS
from media.graph import BuildContext, FilterGraph
from media.params import ConvertAudioParams, ConvertVideoParams, ExtractAudioParams

# Video encoders each restricted container accepts
CONTAINER_VIDEO_CODECS = {
    "webm": {"libvpx-vp9"},
    "ogv": set(),
}


def build_convert_video(params: ConvertVideoParams, ctx: BuildContext) -> FilterGraph:
    allowed = CONTAINER_VIDEO_CODECS.get(params.format)
    if params.codec != "auto" and allowed is not None and params.codec not in allowed:
        raise BuildError(
            f"Codec {params.codec} cannot be written to a {params.format} container",
            operation="convert_video_format",
        )

    container_default = CONTAINER_ENCODERS.get(params.format)
    if container_default is not None:
        video_codec, audio_codec = container_default
        if params.codec != "auto":
            video_codec = params.codec
        return FilterGraph(video_codec=video_codec, audio_codec=audio_codec)

    if params.codec == "auto":
        return FilterGraph(video_codec="copy", audio_codec="copy")
    return FilterGraph(video_codec=params.codec, audio_codec="copy")


def _encode_audio(fmt: str, bitrate: str) -> FilterGraph:
    graph = FilterGraph(drop_video=True, audio_codec=AUDIO_ENCODERS[fmt])
    if fmt not in LOSSLESS_AUDIO_FORMATS:
        graph.output_options += ["-b:a", bitrate]
    return graph


def build_convert_audio(params: ConvertAudioParams, ctx: BuildContext) -> FilterGraph:
    return _encode_audio(params.format, params.bitrate)


def build_extract_audio(params: ExtractAudioParams, ctx: BuildContext) -> FilterGraph:
    return _encode_audio(params.format, params.bitrate)
