"""
Builders for single-input audio operations. Video, when present, is copied.
"""
from media.graph import BuildContext, FilterGraph, fmt_number as n, pan_gains
from media.params import (
    AudioFadeParams,
    ChorusParams,
    CompressorParams,
    DelayParams,
    EchoParams,
    EqualizerParams,
    FlangerParams,
    FrequencyParams,
    GainParams,
    GateParams,
    LimiterParams,
    ModulationParams,
    NoParams,
    NormalizeParams,
    PanParams,
    PhaserParams,
    SilenceRemoveParams,
    StereoWidenParams,
    VolumeParams,
)

# loudnorm accepts integrated targets up to -5 LUFS
LOUDNORM_MAX_TARGET = -5.0


def _audio_only(*filters: str) -> FilterGraph:
    return FilterGraph(audio_filters=list(filters), video_codec="copy")


def build_volume(params: VolumeParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(f"volume={n(params.volume)}")


def build_audio_fade(params: AudioFadeParams, ctx: BuildContext) -> FilterGraph:
    d = n(params.duration)
    if params.type == "out" and params.start is None:
        # Fade the tail without knowing the track length
        return _audio_only("areverse", f"afade=t=in:st=0:d={d}", "areverse")
    start = n(params.start or 0)
    return _audio_only(f"afade=t={params.type}:st={start}:d={d}")


def build_highpass(params: FrequencyParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(f"highpass=f={n(params.frequency)}")


def build_lowpass(params: FrequencyParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(f"lowpass=f={n(params.frequency)}")


def build_echo(params: EchoParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(f"aecho=1.0:0.7:{n(params.delay)}:{n(params.decay)}")


def build_bass(params: GainParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(f"bass=g={n(params.gain)}")


def build_treble(params: GainParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(f"treble=g={n(params.gain)}")


def build_equalizer(params: EqualizerParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(
        f"equalizer=f={n(params.frequency)}:width_type=h:width={n(params.width)}:g={n(params.gain)}"
    )


def build_normalize(params: NormalizeParams, ctx: BuildContext) -> FilterGraph:
    target = min(params.target, LOUDNORM_MAX_TARGET)
    return _audio_only(f"loudnorm=I={n(target)}:TP=-1.5:LRA=11")


def build_delay(params: DelayParams, ctx: BuildContext) -> FilterGraph:
    d = n(params.delay)
    return _audio_only(f"adelay={d}|{d}")


def build_chorus(params: ChorusParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(
        f"chorus={n(params.in_gain)}:{n(params.out_gain)}:{params.delays}"
        f":{params.decays}:{params.speeds}:{params.depths}"
    )


def build_flanger(params: FlangerParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(
        f"flanger=delay={n(params.delay)}:depth={n(params.depth)}:regen={n(params.regen)}"
        f":width={n(params.width)}:speed={n(params.speed)}"
    )


def build_phaser(params: PhaserParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(
        f"aphaser=in_gain={n(params.in_gain)}:out_gain={n(params.out_gain)}:delay={n(params.delay)}"
        f":decay={n(params.decay)}:speed={n(params.speed)}"
    )


def build_vibrato(params: ModulationParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(f"vibrato=f={n(params.frequency)}:d={n(params.depth)}")


def build_tremolo(params: ModulationParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(f"tremolo=f={n(params.frequency)}:d={n(params.depth)}")


def build_compressor(params: CompressorParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(
        f"acompressor=threshold={n(params.threshold)}dB:ratio={n(params.ratio)}"
        f":attack={n(params.attack)}:release={n(params.release)}"
    )


def build_gate(params: GateParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(
        f"agate=threshold={n(params.threshold)}dB:ratio={n(params.ratio)}"
        f":attack={n(params.attack)}:release={n(params.release)}"
    )


def build_stereo_widen(params: StereoWidenParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(
        f"stereowiden=delay={n(params.delay)}:feedback={n(params.feedback)}:crossfeed={n(params.crossfeed)}"
    )


def build_reverse(params: NoParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only("areverse")


def build_limiter(params: LimiterParams, ctx: BuildContext) -> FilterGraph:
    return _audio_only(
        f"alimiter=level_in=1:level_out=1:limit={n(params.limit)}"
        f":attack={n(params.attack)}:release={n(params.release)}"
    )


def build_silence_remove(params: SilenceRemoveParams, ctx: BuildContext) -> FilterGraph:
    threshold = f"{n(params.threshold)}dB"
    return _audio_only(
        f"silenceremove=start_periods=1:start_threshold={threshold}:start_duration={n(params.start_duration)}"
        f":stop_periods=-1:stop_threshold={threshold}:stop_duration={n(params.stop_duration)}"
    )


def build_pan(params: PanParams, ctx: BuildContext) -> FilterGraph:
    left, right = pan_gains(params.pan)
    return _audio_only(f"pan=stereo|c0={n(left)}*c0|c1={n(right)}*c1")
