"""
Tests for the operation dispatch table and tool definitions
"""
import json

import pytest

from media.dispatch import DEFAULT_ALIASES, DispatchTable, ExecutionMode, OperationSpec, create_dispatch_table
from media.errors import UnresolvedOperationError, ValidationError
from media.graph import BuildContext, FilterGraph
from media.params import NoParams, TrimParams
from media.tools import INFORMATIONAL_TOOLS, resolve_tool_call, tool_definitions, tool_name_for

BUFFERED = {"trim_video", "fade_transition", "add_audio_track", "burn_subtitles", "add_video_transition"}


@pytest.fixture(scope="module")
def table():
    return create_dispatch_table()


class TestDispatchTable:

    @pytest.mark.unit
    def test_every_operation_has_a_builder(self, table):
        assert len(table) == 42
        for spec in table:
            assert callable(spec.builder), spec.name

    @pytest.mark.unit
    def test_video_info_builds_empty_graph(self, table):
        spec = table.resolve("get_video_dimensions")
        graph = spec.builder(spec.validate({}), BuildContext(settings=table.settings))
        assert graph == FilterGraph()

    @pytest.mark.unit
    def test_registration_requires_builder(self):
        table = DispatchTable()
        with pytest.raises(ValueError):
            table.register(OperationSpec("get_video_info", NoParams, None, ExecutionMode.PROBE, "info"))

    @pytest.mark.unit
    def test_execution_modes(self, table):
        buffered = {spec.name for spec in table if spec.mode is ExecutionMode.BUFFERED}
        assert buffered == BUFFERED
        assert table.resolve("get_video_info").mode is ExecutionMode.PROBE

    @pytest.mark.unit
    @pytest.mark.parametrize("alias, target", sorted(DEFAULT_ALIASES.items()))
    def test_aliases_resolve_to_same_spec(self, table, alias, target):
        assert table.resolve(alias) is table.resolve(target)
        assert table.canonical_name(alias) == target

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["", None, "explode_video", "RESIZE_VIDEO"])
    def test_unknown_operation(self, table, name):
        with pytest.raises(UnresolvedOperationError) as exc_info:
            table.resolve(name)
        assert exc_info.value.code == "UNKNOWN_OPERATION"
        assert exc_info.value.status_code == 400

    @pytest.mark.unit
    def test_duplicate_registration_rejected(self, table):
        spec = OperationSpec("trim_video", TrimParams, lambda p, c: None, ExecutionMode.BUFFERED, "dup")
        with pytest.raises(ValueError):
            table.register(spec)
        with pytest.raises(ValueError):
            table.alias("adjust_speed", "trim_video")

    @pytest.mark.unit
    def test_builder_required_outside_probe_mode(self):
        table = create_dispatch_table()
        with pytest.raises(ValueError):
            table.register(OperationSpec("noop", NoParams, None, ExecutionMode.STREAMING, "noop"))

    @pytest.mark.unit
    def test_secondary_inputs(self, table):
        assert table.resolve("add_video_transition").accepts_secondary
        assert table.resolve("add_audio_track").accepts_secondary
        assert not table.resolve("adjust_volume").accepts_secondary

    @pytest.mark.unit
    def test_conversion_output_follows_format(self, table):
        spec = table.resolve("convert_audio_format")
        output = spec.output(spec.validate({"format": "m4a"}))
        assert (output.extension, output.muxer, output.content_type) == ("m4a", "ipod", "audio/mp4")

    @pytest.mark.unit
    def test_describe(self, table):
        info = table.resolve("crop_video").describe()
        assert info["mode"] == "streaming"
        assert set(info["parameters"]["required"]) == {"width", "height"}


class TestTools:

    @pytest.mark.unit
    def test_aliases_are_preferred_tool_names(self, table):
        assert tool_name_for(table, "speed_video") == "adjust_speed"
        assert tool_name_for(table, "crop_video") == "crop_video"

    @pytest.mark.unit
    def test_every_tool_resolves(self, table):
        tools = tool_definitions(table)
        assert len(tools) == len(table) + len(INFORMATIONAL_TOOLS)
        for tool in tools:
            name = tool["function"]["name"]
            assert tool["type"] == "function"
            if name in INFORMATIONAL_TOOLS:
                continue
            operation, args = resolve_tool_call(table, name, "{}")
            assert operation in table.operations()
            assert args == {}

    @pytest.mark.unit
    def test_audio_track_schema_uses_alias(self, table):
        tools = {t["function"]["name"]: t["function"] for t in tool_definitions(table)}
        assert "audioFile" in tools["add_audio_track"]["parameters"]["properties"]

    @pytest.mark.unit
    def test_arguments_decoded(self, table):
        operation, args = resolve_tool_call(table, "adjust_audio_volume", json.dumps({"volume": 0.5}))
        assert operation == "adjust_volume"
        assert args == {"volume": 0.5}

    @pytest.mark.unit
    @pytest.mark.parametrize("arguments", ["{not json", "[1, 2]"])
    def test_bad_arguments(self, table, arguments):
        with pytest.raises(ValidationError):
            resolve_tool_call(table, "adjust_volume", arguments)

    @pytest.mark.unit
    def test_unknown_tool(self, table):
        with pytest.raises(UnresolvedOperationError):
            resolve_tool_call(table, "get_supported_formats", "{}")
