"""
Tests for single-input filter graph builders
"""
import pytest

from media.builders import audio, convert, video
from media.errors import BuildError
from media.graph import BuildContext
from media.params import (
    AspectRatioParams,
    AudioFadeParams,
    ConvertAudioParams,
    ConvertVideoParams,
    CropParams,
    ExtractAudioParams,
    FadeTransitionParams,
    NormalizeParams,
    PanParams,
    ResizePresetParams,
    SpeedParams,
    TextParams,
    TrimParams,
    EqualizerParams,
)
from media.probe import StreamDescriptor


@pytest.fixture
def ctx() -> BuildContext:
    return BuildContext()


class TestVideoBuilders:

    @pytest.mark.unit
    def test_crop_with_zero_offsets(self, ctx):
        graph = video.build_crop(CropParams(x=0, y=0, width=100, height=50), ctx)
        assert graph.video_filter_expression == "crop=100:50:0:0"
        assert graph.audio_codec == "copy"

    @pytest.mark.unit
    def test_preset_uses_table_dimensions(self, ctx):
        graph = video.build_resize_preset(ResizePresetParams(preset="9:16"), ctx)
        assert graph.video_filters == ["scale=1080:1920"]

    @pytest.mark.unit
    @pytest.mark.parametrize("fit, marker", [
        ("contain", "pad=1080:1080"),
        ("cover", "crop=1080:1080"),
        ("stretch", "scale=1080:1080"),
    ])
    def test_aspect_ratio_fit_modes(self, ctx, fit, marker):
        graph = video.build_aspect_ratio(AspectRatioParams(ratio="1:1", fit=fit), ctx)
        assert marker in graph.video_filter_expression

    @pytest.mark.unit
    def test_add_text_escapes(self, ctx):
        graph = video.build_add_text(TextParams(text="Time: 5 o'clock"), ctx)
        assert graph.video_filters == [
            "drawtext=text='Time\\: 5 o\\'clock':x=10:y=10:fontsize=24:fontcolor=white"
        ]

    @pytest.mark.unit
    def test_trim_copies_streams(self, ctx):
        graph = video.build_trim(TrimParams(start=1.5, end=4), ctx)
        assert graph.input_options == ["-ss", "1.5"]
        assert graph.output_options == ["-t", "2.5"]
        assert graph.video_codec == "copy" and graph.audio_codec == "copy"

    @pytest.mark.unit
    def test_speed_four_times(self, ctx):
        graph = video.build_speed(SpeedParams(speed=4), ctx)
        assert graph.video_filters == ["setpts=PTS/4"]
        assert graph.audio_filters == ["atempo=2", "atempo=2"]

    @pytest.mark.unit
    def test_fade_uses_probed_duration(self):
        ctx = BuildContext(streams=[StreamDescriptor(has_video=True, duration=10.0)])
        graph = video.build_fade_transition(FadeTransitionParams(duration=1), ctx)
        assert graph.video_filter_expression == "fade=t=in:st=0:d=1,fade=t=out:st=9:d=1"

    @pytest.mark.unit
    def test_fade_without_duration_fails(self, ctx):
        with pytest.raises(BuildError):
            video.build_fade_transition(FadeTransitionParams(duration=1), ctx)

    @pytest.mark.unit
    def test_fade_longer_than_half_the_clip_fails(self):
        ctx = BuildContext(streams=[StreamDescriptor(duration=1.5)])
        with pytest.raises(BuildError):
            video.build_fade_transition(FadeTransitionParams(duration=1), ctx)


class TestAudioBuilders:

    @pytest.mark.unit
    def test_pan_full_left(self, ctx):
        graph = audio.build_pan(PanParams(pan=-1), ctx)
        assert graph.audio_filters == ["pan=stereo|c0=1*c0|c1=0*c1"]
        assert graph.video_codec == "copy"

    @pytest.mark.unit
    def test_fade_in_defaults_to_start(self, ctx):
        graph = audio.build_audio_fade(AudioFadeParams(type="in", duration=2), ctx)
        assert graph.audio_filters == ["afade=t=in:st=0:d=2"]

    @pytest.mark.unit
    def test_fade_out_without_start_fades_tail(self, ctx):
        graph = audio.build_audio_fade(AudioFadeParams(type="out", duration=2), ctx)
        assert graph.audio_filters == ["areverse", "afade=t=in:st=0:d=2", "areverse"]

    @pytest.mark.unit
    def test_fade_out_with_start(self, ctx):
        graph = audio.build_audio_fade(AudioFadeParams(type="out", start=0, duration=2), ctx)
        assert graph.audio_filters == ["afade=t=out:st=0:d=2"]

    @pytest.mark.unit
    def test_equalizer(self, ctx):
        graph = audio.build_equalizer(EqualizerParams(frequency=1000, gain=-3), ctx)
        assert graph.audio_filters == ["equalizer=f=1000:width_type=h:width=200:g=-3"]

    @pytest.mark.unit
    def test_normalize_clamps_to_loudnorm_range(self, ctx):
        graph = audio.build_normalize(NormalizeParams(target=0), ctx)
        assert graph.audio_filters == ["loudnorm=I=-5:TP=-1.5:LRA=11"]
        graph = audio.build_normalize(NormalizeParams(), ctx)
        assert graph.audio_filters == ["loudnorm=I=-16:TP=-1.5:LRA=11"]


class TestConvertBuilders:

    @pytest.mark.unit
    def test_auto_codec_copies(self, ctx):
        graph = convert.build_convert_video(ConvertVideoParams(format="mkv"), ctx)
        assert (graph.video_codec, graph.audio_codec) == ("copy", "copy")

    @pytest.mark.unit
    def test_webm_reencodes(self, ctx):
        graph = convert.build_convert_video(ConvertVideoParams(format="webm"), ctx)
        assert (graph.video_codec, graph.audio_codec) == ("libvpx-vp9", "libopus")

    @pytest.mark.unit
    def test_incompatible_codec_rejected(self, ctx):
        with pytest.raises(BuildError):
            convert.build_convert_video(ConvertVideoParams(format="webm", codec="libx264"), ctx)

    @pytest.mark.unit
    def test_audio_conversion_sets_bitrate(self, ctx):
        graph = convert.build_convert_audio(ConvertAudioParams(format="mp3", bitrate="320k"), ctx)
        assert graph.to_args() == ["-vn", "-c:a", "libmp3lame", "-b:a", "320k"]

    @pytest.mark.unit
    def test_lossless_extract_skips_bitrate(self, ctx):
        graph = convert.build_extract_audio(ExtractAudioParams(format="wav"), ctx)
        assert graph.to_args() == ["-vn", "-c:a", "pcm_s16le"]
