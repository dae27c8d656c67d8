"""
Test configuration and fixtures
"""
import shutil
import subprocess
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.config import Settings
from api.main import create_app
from media.config import MediaSettings
from media.pipeline import MediaPipeline
from tests.mocks.ffmpeg import MockIntrospector, RecordingExecutor

FFMPEG_AVAILABLE = shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None

requires_ffmpeg = pytest.mark.skipif(not FFMPEG_AVAILABLE, reason="ffmpeg and ffprobe are not installed")


@pytest.fixture
def media_settings(tmp_path) -> MediaSettings:
    """Media settings with an isolated temp directory."""
    work = tmp_path / "work"
    work.mkdir()
    return MediaSettings(temp_dir=work, process_timeout=60)


@pytest.fixture
def introspector(media_settings) -> MockIntrospector:
    return MockIntrospector(media_settings)


@pytest.fixture
def executor(media_settings) -> RecordingExecutor:
    return RecordingExecutor(media_settings)


@pytest.fixture
def mock_pipeline(media_settings, introspector, executor) -> MediaPipeline:
    """Pipeline whose probes and ffmpeg runs are faked."""
    return MediaPipeline(media_settings, introspector=introspector, executor=executor)


@pytest.fixture
def api_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        TEMP_DIR=tmp_path / "api",
        ENABLE_API_KEYS=False,
        MAX_UPLOAD_SIZE=1024 * 1024,
        PROCESS_TIMEOUT=60,
    )


@pytest.fixture
def app(api_settings):
    return create_app(api_settings)


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mocked_client(app, mock_pipeline):
    """Client whose pipeline never starts ffmpeg."""
    app.state.pipeline = mock_pipeline
    with TestClient(app) as test_client:
        yield test_client


def _ffmpeg(*args: str) -> None:
    subprocess.run(
        ["ffmpeg", "-hide_banner", "-loglevel", "error", "-y", *args],
        check=True,
        capture_output=True,
    )


@pytest.fixture(scope="session")
def media_dir(tmp_path_factory) -> Path:
    return tmp_path_factory.mktemp("media")


@pytest.fixture(scope="session")
def video_with_audio(media_dir) -> Path:
    """Two-second 320x240 clip with a sine tone, fragmented for piping."""
    if not FFMPEG_AVAILABLE:
        pytest.skip("ffmpeg is not installed")
    path = media_dir / "with_audio.mp4"
    _ffmpeg(
        "-f", "lavfi", "-i", "testsrc=size=320x240:rate=25:duration=2",
        "-f", "lavfi", "-i", "sine=frequency=440:duration=2",
        "-c:v", "libx264", "-pix_fmt", "yuv420p", "-c:a", "aac", "-shortest",
        "-movflags", "frag_keyframe+empty_moov", str(path),
    )
    return path


@pytest.fixture(scope="session")
def video_without_audio(media_dir) -> Path:
    if not FFMPEG_AVAILABLE:
        pytest.skip("ffmpeg is not installed")
    path = media_dir / "silent.mp4"
    _ffmpeg(
        "-f", "lavfi", "-i", "testsrc=size=320x240:rate=25:duration=2",
        "-c:v", "libx264", "-pix_fmt", "yuv420p",
        "-movflags", "frag_keyframe+empty_moov", str(path),
    )
    return path


@pytest.fixture(scope="session")
def audio_clip(media_dir) -> Path:
    if not FFMPEG_AVAILABLE:
        pytest.skip("ffmpeg is not installed")
    path = media_dir / "tone.wav"
    _ffmpeg("-f", "lavfi", "-i", "sine=frequency=660:duration=1", str(path))
    return path
