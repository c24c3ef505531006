"""
Tests for tool dispatch, local tools and provider-backed tools
"""

import asyncio
import json

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from sidecar.agent.diff_tracker import TaskDiffTracker
from sidecar.agent.models import ToolUse
from sidecar.agent.permissions import PermissionManager
from sidecar.agent.tools import (
    BaseTool,
    ProviderTool,
    ToolDispatcher,
    ToolOutput,
    create_default_tools,
    sync_provider_tools,
)
from sidecar.agent.tools.provider_tool import format_provider_result
from sidecar.core.errors import ProviderNotConnectedError
from sidecar.core.events import EventChannel, EventType
from sidecar.providers.models import ProviderToolDefinition
from sidecar.providers.registry import ProviderToolEntry

pytestmark = pytest.mark.asyncio

ADD_TOOL = ProviderToolDefinition(
    name="add",
    description="Add two numbers",
    input_schema={
        "type": "object",
        "properties": {
            "a": {"type": "integer"},
            "b": {"type": "integer"},
            "exact": {"type": "boolean"},
            "options": {"type": "object"},
        },
        "required": ["a", "b"],
    },
)


class ExplodingTool(BaseTool):
    def __init__(self):
        super().__init__()
        self.name = "explode"
        self.description = "Always raises"

    async def execute(self, **kwargs) -> ToolOutput:
        raise RuntimeError("kaboom")


class StubProviderRegistry:
    """Stands in for ProviderRegistry: canned tool list and call results"""

    def __init__(self, entries=None, result=None):
        self.entries = entries or []
        self.result = result
        self.calls = []

    def get_all_tools(self):
        return list(self.entries)

    async def call_tool(self, provider_id, tool_name, arguments):
        self.calls.append((provider_id, tool_name, arguments))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def dispatcher(tmp_path):
    dispatcher = ToolDispatcher()
    for tool in create_default_tools(str(tmp_path)):
        dispatcher.register(tool)
    return dispatcher


class TestDispatch:
    """Failures come back as error results, never as exceptions"""

    async def test_unknown_tool(self, dispatcher):
        result = await dispatcher.execute(ToolUse(name="frobnicate", id="tool-1"))
        assert result.is_error is True
        assert result.content == "Tool frobnicate not found"
        assert result.tool_call_id == "tool-1"

    async def test_missing_parameters(self, dispatcher):
        result = await dispatcher.execute(ToolUse(name="write_to_file", params={"content": "x"}))
        assert result.is_error is True
        assert result.content == "Missing required parameter(s): path"

    async def test_tool_exception(self, dispatcher):
        dispatcher.register(ExplodingTool())
        result = await dispatcher.execute(ToolUse(name="explode"))
        assert result.is_error is True
        assert result.content == "Error executing explode: kaboom"

    async def test_parameter_names_union(self, dispatcher):
        names = dispatcher.get_parameter_names()
        assert names[:2] == ["result", "path"]
        for name in ("start_line", "content", "old_str", "new_str", "command"):
            assert name in names
        assert len(names) == len(set(names))

    async def test_completion_tool(self, dispatcher):
        result = await dispatcher.execute(ToolUse(name="attempt_completion", params={"result": "Fixed it"}))
        assert result.is_error is False
        assert result.content == "Fixed it"


class TestPermissions:
    """Permission checks in front of tools that need them"""

    async def test_denied_write_does_not_touch_disk(self, tmp_path):
        dispatcher = ToolDispatcher(PermissionManager())
        for tool in create_default_tools(str(tmp_path)):
            dispatcher.register(tool)

        result = await dispatcher.execute(
            ToolUse(name="write_to_file", params={"path": "a.txt", "content": "hello"})
        )

        assert result.is_error is True
        assert result.content == "Permission denied: write_to_file (write) on a.txt"
        assert not (tmp_path / "a.txt").exists()

    async def test_read_auto_approved(self, tmp_path):
        (tmp_path / "a.txt").write_text("hello\n")
        dispatcher = ToolDispatcher(PermissionManager())
        for tool in create_default_tools(str(tmp_path)):
            dispatcher.register(tool)

        result = await dispatcher.execute(ToolUse(name="read_file", params={"path": "a.txt"}))
        assert result.is_error is False
        assert result.content == "hello\n"

    async def test_host_approval_runs_tool(self, tmp_path):
        events = EventChannel("test")
        permissions = PermissionManager(events=events)
        dispatcher = ToolDispatcher(permissions)
        for tool in create_default_tools(str(tmp_path)):
            dispatcher.register(tool)

        pending = asyncio.create_task(dispatcher.execute(
            ToolUse(name="execute_command", params={"command": "echo approved"})
        ))
        event = await asyncio.wait_for(events.get(), timeout=2)
        assert event.type is EventType.PERMISSION_REQUEST
        request = event.payload['request']
        assert request['operation'] == "execute"
        assert request['target'] == "echo approved"

        permissions.handle_permission_response(request['id'], True)
        result = await asyncio.wait_for(pending, timeout=10)
        assert result.is_error is False
        assert result.content == "Exit code: 0\nOutput:\napproved\n"


class TestLocalTools:
    """File and shell tools against a temporary workspace"""

    async def test_read_line_range(self, dispatcher, tmp_path):
        (tmp_path / "lines.txt").write_text("one\ntwo\nthree\n")
        result = await dispatcher.execute(
            ToolUse(name="read_file", params={"path": "lines.txt", "start_line": "2", "end_line": "3"})
        )
        assert result.content == "two\nthree\n"

    async def test_read_missing_file(self, dispatcher):
        result = await dispatcher.execute(ToolUse(name="read_file", params={"path": "nope.txt"}))
        assert result.is_error is True
        assert result.content == "File not found: nope.txt"

    async def test_write_creates_directories(self, dispatcher, tmp_path):
        result = await dispatcher.execute(
            ToolUse(name="write_to_file", params={"path": "pkg/mod.py", "content": "x = 1\ny = 2"})
        )
        assert result.content == "Created pkg/mod.py (2 lines)"
        assert (tmp_path / "pkg" / "mod.py").read_text() == "x = 1\ny = 2\n"

    async def test_replace_requires_unique_match(self, dispatcher, tmp_path):
        (tmp_path / "dup.txt").write_text("x\nx\n")
        result = await dispatcher.execute(
            ToolUse(name="replace_in_file", params={"path": "dup.txt", "old_str": "x", "new_str": "y"})
        )
        assert result.is_error is True
        assert "occurs 2 times" in result.content
        assert (tmp_path / "dup.txt").read_text() == "x\nx\n"

    async def test_failing_command_is_error(self, dispatcher):
        result = await dispatcher.execute(ToolUse(name="execute_command", params={"command": "exit 3"}))
        assert result.is_error is True
        assert result.content.startswith("Exit code: 3")

    async def test_writes_report_file_changes(self, dispatcher, tmp_path):
        (tmp_path / "app.py").write_text("print('old')\n")
        tracker = TaskDiffTracker("task-1")

        results = [
            await dispatcher.execute(ToolUse(
                name="replace_in_file",
                params={"path": "app.py", "old_str": "print('old')", "new_str": "print('new')"},
            )),
            await dispatcher.execute(ToolUse(name="write_to_file", params={"path": "new.py", "content": "pass"})),
        ]
        for result in results:
            for change in result.changes:
                tracker.record(change.path, change.before, change.after)

        diff = tracker.build_task_diff()
        files = {entry['path']: entry for entry in diff['files']}
        assert files["app.py"]['status'] == "modified"
        assert (files["app.py"]['additions'], files["app.py"]['deletions']) == (1, 1)
        assert files["new.py"]['status'] == "added"
        assert diff['total_additions'] == 2
        assert diff['total_deletions'] == 1

    async def test_reads_and_failures_report_no_changes(self, dispatcher, tmp_path):
        (tmp_path / "a.txt").write_text("a\n")
        read = await dispatcher.execute(ToolUse(name="read_file", params={"path": "a.txt"}))
        failed = await dispatcher.execute(
            ToolUse(name="replace_in_file", params={"path": "a.txt", "old_str": "zzz", "new_str": "y"})
        )
        assert read.changes == []
        assert failed.is_error is True
        assert failed.changes == []


class TestProviderTools:
    """Tools routed back to JSON-RPC providers"""

    async def test_arguments_coerced_to_schema(self):
        registry = StubProviderRegistry(result={"content": [{"type": "text", "text": "5"}]})
        tool = ProviderTool(registry, "provider-1", "Fake", ADD_TOOL)
        dispatcher = ToolDispatcher()
        dispatcher.register(tool)

        result = await dispatcher.execute(ToolUse(
            name="mcp_fake_add",
            params={"a": "2", "b": "3", "exact": "true", "options": '{"round": false}'},
        ))

        assert result.is_error is False
        assert result.content == "5"
        assert registry.calls == [(
            "provider-1", "add", {"a": 2, "b": 3, "exact": True, "options": {"round": False}},
        )]

    async def test_uncoercible_values_pass_through(self):
        registry = StubProviderRegistry(result={"content": []})
        tool = ProviderTool(registry, "provider-1", "Fake", ADD_TOOL)
        await tool.execute(a="two", b="3")
        assert registry.calls[0][2] == {"a": "two", "b": 3}

    async def test_error_result(self):
        registry = StubProviderRegistry(result={"content": [{"type": "text", "text": "bad input"}], "isError": True})
        output = await ProviderTool(registry, "provider-1", "Fake", ADD_TOOL).execute(a="1", b="2")
        assert output.success is False
        assert output.error == "bad input"

    async def test_provider_failure(self):
        registry = StubProviderRegistry(result=ProviderNotConnectedError("Provider provider-1 is not connected"))
        output = await ProviderTool(registry, "provider-1", "Fake", ADD_TOOL).execute(a="1", b="2")
        assert output.success is False
        assert output.error == "MCP tool error (Fake/add): Provider provider-1 is not connected"

    async def test_tool_metadata(self):
        tool = ProviderTool(StubProviderRegistry(), "provider-1", "My Server", ADD_TOOL)
        assert tool.name == "mcp_my_server_add"
        assert tool.description == "[MCP: My Server] Add two numbers"
        assert tool.requires_permission is True
        assert tool.permission_target({}) == "My Server/add"

    async def test_format_non_text_items(self):
        image = {"type": "image", "data": "aGk=", "mimeType": "image/png"}
        text = format_provider_result({"content": [{"type": "text", "text": "caption"}, image]})
        assert text == "caption\n" + json.dumps(image)

    async def test_sync_resolves_name_collisions(self, dispatcher):
        echo = ProviderToolDefinition(name="echo", description="Echo text")
        registry = StubProviderRegistry([
            ProviderToolEntry("provider-abc123", "Fake", echo),
            ProviderToolEntry("provider-def456", "Fake", echo),
        ])

        names = sync_provider_tools(dispatcher, registry)

        assert names == ["mcp_fake_echo", "mcp_fake_echo_def456"]
        assert dispatcher.get("mcp_fake_echo_def456").provider_id == "provider-def456"

        registry.entries = []
        assert sync_provider_tools(dispatcher, registry) == []
        assert dispatcher.get("mcp_fake_echo") is None
        assert "read_file" in dispatcher.get_tool_names()
