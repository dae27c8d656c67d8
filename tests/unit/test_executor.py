"""
Tests for ffmpeg command assembly and job execution
"""
import asyncio
import stat

import pytest

from media.config import MediaSettings
from media.errors import JobError, PayloadTooLargeError
from media.executor import JobState, MediaExecutor, MediaJob, StagedInput, TempWorkspace
from media.formats import DEFAULT_VIDEO_OUTPUT, STREAMING_MOVFLAGS, output_for_format
from media.graph import FilterGraph


def fake_binary(directory, name, body):
    """Write an executable shell script standing in for ffmpeg."""
    path = directory / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


async def chunks(*parts):
    for part in parts:
        yield part


class TestCommand:

    @pytest.mark.unit
    def test_streaming_command(self):
        executor = MediaExecutor(MediaSettings())
        job = MediaJob(
            operation="adjust_volume",
            inputs=[StagedInput(demuxer="mp4")],
            graph=FilterGraph(audio_filters=["volume=2"], video_codec="copy"),
            output=DEFAULT_VIDEO_OUTPUT,
        )
        assert executor.build_command(job) == [
            "ffmpeg", "-hide_banner", "-loglevel", "error", "-y",
            "-f", "mp4", "-i", "pipe:0",
            "-af", "volume=2", "-c:v", "copy",
            "-movflags", STREAMING_MOVFLAGS, "-f", "mp4", "pipe:1",
        ]

    @pytest.mark.unit
    def test_buffered_command(self, tmp_path):
        executor = MediaExecutor(MediaSettings())
        first, second = tmp_path / "a.mp4", tmp_path / "b.mp4"
        job = MediaJob(
            operation="trim_video",
            inputs=[StagedInput(path=first), StagedInput(path=second)],
            graph=FilterGraph(input_options=["-ss", "1"], output_options=["-t", "2"]),
            output=DEFAULT_VIDEO_OUTPUT,
            output_path=tmp_path / "out.mp4",
        )
        cmd = executor.build_command(job)

        assert "-nostdin" in cmd
        assert cmd.index("-ss") < cmd.index(str(first))
        assert cmd.count("-ss") == 1
        assert cmd[-5:] == ["-movflags", "+faststart", "-f", "mp4", str(tmp_path / "out.mp4")]

    @pytest.mark.unit
    def test_audio_output_is_not_fragmented(self):
        executor = MediaExecutor(MediaSettings())
        job = MediaJob(
            operation="extract_audio",
            inputs=[StagedInput()],
            graph=FilterGraph(drop_video=True, audio_codec="libmp3lame"),
            output=output_for_format("mp3"),
        )
        cmd = executor.build_command(job)
        assert "-movflags" not in cmd
        assert cmd[-3:] == ["-f", "mp3", "pipe:1"]


class TestTempWorkspace:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_write_and_cleanup(self, tmp_path):
        workspace = TempWorkspace(tmp_path / "work", "job1")
        first = await workspace.write("input", "mp4", b"data")
        second = await workspace.write_text("subtitles", "srt", "1\n")

        assert first.read_bytes() == b"data"
        assert first.name == "clipchat-job1-input-0.mp4"
        assert second.name == "clipchat-job1-subtitles-1.srt"
        assert workspace.cleanup() == []
        assert list((tmp_path / "work").iterdir()) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cleanup_on_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            async with TempWorkspace(tmp_path, "job2") as workspace:
                await workspace.write("input", "mp4", b"data")
                raise RuntimeError("boom")
        assert list(tmp_path.iterdir()) == []


class TestBufferedRun:

    def _job(self, tmp_path):
        source = tmp_path / "in.mp4"
        source.write_bytes(b"input")
        return MediaJob(
            operation="trim_video",
            inputs=[StagedInput(path=source)],
            graph=FilterGraph(video_codec="copy"),
            output=DEFAULT_VIDEO_OUTPUT,
            output_path=tmp_path / "out.mp4",
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_reads_output(self, tmp_path):
        ffmpeg = fake_binary(tmp_path, "ffmpeg", 'for last; do :; done\nprintf result > "$last"')
        job = self._job(tmp_path)
        data = await MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg)).run(job)
        assert data == b"result"
        assert job.state is JobState.SUCCEEDED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_keeps_stderr_tail(self, tmp_path):
        ffmpeg = fake_binary(
            tmp_path, "ffmpeg",
            f'i=0\nwhile [ $i -lt 15 ]; do echo "line $i {tmp_path}/x" >&2; i=$((i+1)); done\nexit 1',
        )
        job = self._job(tmp_path)
        with pytest.raises(JobError) as exc_info:
            await MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg, temp_dir=tmp_path)).run(job)

        error = exc_info.value
        assert error.returncode == 1
        assert error.message == "Media processing failed for trim_video"
        lines = error.diagnostic.splitlines()
        assert len(lines) == 10
        assert lines[0] == "line 5 <tmp>/x"
        assert str(tmp_path) not in error.diagnostic
        assert job.state is JobState.FAILED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_output_fails(self, tmp_path):
        ffmpeg = fake_binary(tmp_path, "ffmpeg", "exit 0")
        with pytest.raises(JobError):
            await MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg)).run(self._job(tmp_path))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        executor = MediaExecutor(MediaSettings(ffmpeg_path=str(tmp_path / "no-ffmpeg")))
        with pytest.raises(JobError):
            await executor.run(self._job(tmp_path))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        ffmpeg = fake_binary(tmp_path, "ffmpeg", "exec sleep 10")
        executor = MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg, process_timeout=0.5))
        with pytest.raises(JobError):
            await executor.run(self._job(tmp_path))


class TestStreaming:

    def _job(self):
        return MediaJob(
            operation="adjust_volume",
            inputs=[StagedInput()],
            graph=FilterGraph(audio_filters=["volume=2"]),
            output=DEFAULT_VIDEO_OUTPUT,
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pipes_stdin_to_stdout(self, tmp_path):
        ffmpeg = fake_binary(tmp_path, "ffmpeg", "exec cat")
        executor = MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg))
        closed = []

        stream = await executor.stream(self._job(), chunks(b"abc", b"def"))
        stream.add_close_callback(closed.append)
        output = b"".join([chunk async for chunk in stream])

        assert output == b"abcdef"
        assert stream.bytes_in == 6
        assert stream.bytes_out == 6
        assert stream.job.state is JobState.SUCCEEDED
        assert closed == [stream]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_early_failure_raises_before_streaming(self, tmp_path):
        ffmpeg = fake_binary(tmp_path, "ffmpeg", 'echo "Invalid data found" >&2\nexit 1')
        executor = MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg))
        with pytest.raises(JobError) as exc_info:
            await executor.stream(self._job(), chunks(b"not media"))
        assert "Invalid data found" in exc_info.value.diagnostic

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_oversized_upload(self, tmp_path):
        ffmpeg = fake_binary(tmp_path, "ffmpeg", "exec cat")
        executor = MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg))
        with pytest.raises(PayloadTooLargeError):
            stream = await executor.stream(self._job(), chunks(b"abc", b"def"), max_input_bytes=4)
            async for _ in stream:
                pass

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_kills_running_process(self, tmp_path):
        ffmpeg = fake_binary(tmp_path, "ffmpeg", "printf first\nexec sleep 10")
        executor = MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg))

        stream = await executor.stream(self._job(), chunks(b"abc"))
        await stream.aclose()
        await stream.aclose()

        assert stream.process.returncode is not None
        assert stream.job.state is JobState.FAILED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_callbacks_survive_repeated_cancellation(self, tmp_path):
        ffmpeg = fake_binary(tmp_path, "ffmpeg", "printf first\nexec sleep 10")
        executor = MediaExecutor(MediaSettings(ffmpeg_path=ffmpeg))
        closed = []

        stream = await executor.stream(self._job(), chunks(b"abc"))
        stream.add_close_callback(closed.append)

        async def consume():
            async for _ in stream:
                pass

        consumer = asyncio.ensure_future(consume())
        await asyncio.sleep(0.1)
        # A disconnect cancels the body, then cancels it again during cleanup
        consumer.cancel()
        await asyncio.sleep(0)
        consumer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await consumer

        assert closed == [stream]
        await asyncio.wait_for(stream.process.wait(), timeout=5)
        assert stream.job.state is JobState.FAILED

        await stream.aclose()
        assert closed == [stream]
