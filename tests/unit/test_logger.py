"""
Tests for logging configuration
"""
import json
import logging

import pytest
import structlog

from api.config import Settings
from api.utils.logger import ServiceContext, build_processors, setup_logging


class TestServiceContext:

    @pytest.mark.unit
    def test_adds_service_and_version(self):
        event = ServiceContext("2.3.4")(None, "info", {"event": "Media job received"})
        assert event["service"] == "clipchat"
        assert event["version"] == "2.3.4"

    @pytest.mark.unit
    def test_bound_values_win(self):
        event = ServiceContext("2.3.4")(None, "info", {"event": "x", "service": "worker"})
        assert event["service"] == "worker"


class TestProcessors:

    @pytest.mark.unit
    def test_json_renderer_by_default(self):
        processors = build_processors(Settings(_env_file=None, DEBUG=False))
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert any(isinstance(p, ServiceContext) for p in processors)

    @pytest.mark.unit
    def test_console_renderer_in_debug(self):
        processors = build_processors(Settings(_env_file=None, DEBUG=True))
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    @pytest.mark.unit
    def test_rendered_line_carries_context(self):
        settings = Settings(_env_file=None, VERSION="9.9.9")
        processors = build_processors(settings)
        event = {"event": "FFmpeg stream completed", "job_id": "abc"}
        start = next(i for i, p in enumerate(processors) if isinstance(p, ServiceContext))
        for processor in processors[start:]:
            event = processor(logging.getLogger("clipchat"), "info", event)

        line = json.loads(event)
        assert line["message"] == "FFmpeg stream completed"
        assert line["service"] == "clipchat"
        assert line["version"] == "9.9.9"
        assert line["job_id"] == "abc"

    @pytest.mark.unit
    def test_setup_applies_level(self):
        setup_logging(Settings(_env_file=None, API_LOG_LEVEL="warning"))
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        setup_logging(Settings(_env_file=None))
