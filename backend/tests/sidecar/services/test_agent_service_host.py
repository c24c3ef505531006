"""
Tests for the host-facing agent service
"""

import asyncio

import pytest
import pytest_asyncio

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from sidecar.agent.llm.base import BaseLLMClient, ContentEvent
from sidecar.agent.models import TaskState
from sidecar.agent.recovery import RecoveryPolicy
from sidecar.config import AgentSettings, PermissionSettings
from sidecar.core.events import EventType
from sidecar.services.agent_service import AgentService, get_agent_service, shutdown_agent_service

pytestmark = pytest.mark.asyncio

COMPLETE = "<attempt_completion><result>All done</result></attempt_completion>"


class FirstCallHangsLLM(BaseLLMClient):
    """The first stream stalls after one chunk; later streams complete"""

    def __init__(self):
        self.gate = asyncio.Event()
        self.calls = 0

    async def stream_chat(self, *, messages, system_prompt=None, model=None, max_tokens=None):
        self.calls += 1
        if self.calls == 1:
            yield ContentEvent(content="Thinking")
            await self.gate.wait()
        yield ContentEvent(content=COMPLETE)


@pytest_asyncio.fixture
async def make_service(tmp_path):
    services = []

    async def build(llm, settings=None, **kwargs):
        service = AgentService(
            settings=settings or AgentSettings(),
            llm=llm,
            workspace_folder=str(tmp_path),
            recovery=RecoveryPolicy(retry_delay=0),
            **kwargs,
        )
        await service.start()
        services.append(service)
        return service

    yield build
    for service in services:
        await service.stop()


async def next_event(service, event_type, timeout=5):
    while True:
        event = await asyncio.wait_for(service.events.get(), timeout=timeout)
        if event.type is event_type:
            return event


class TestTasks:
    """Task commands"""

    async def test_submit_runs_task(self, make_service, scripted_llm):
        service = await make_service(scripted_llm([[COMPLETE]]))

        task = service.submit_user_input("Say hi", context="Greeting bot")

        assert await asyncio.wait_for(task.wait(), timeout=5) is TaskState.COMPLETED
        complete = await next_event(service, EventType.TASK_COMPLETE)
        assert complete.task_id == task.id
        assert complete.to_dict()['state'] == "completed"
        assert service.active_task is task

    async def test_new_input_cancels_active_task(self, make_service):
        llm = FirstCallHangsLLM()
        service = await make_service(llm)

        first = service.submit_user_input("first")
        await next_event(service, EventType.STREAM_CHUNK)
        second = service.submit_user_input("second")

        assert first.state is TaskState.CANCELLED
        assert await asyncio.wait_for(second.wait(), timeout=5) is TaskState.COMPLETED
        assert service.active_task is second

    async def test_cancel_task(self, make_service):
        service = await make_service(FirstCallHangsLLM())
        assert service.cancel_task() is False

        task = service.submit_user_input("first")
        await next_event(service, EventType.STREAM_CHUNK)

        assert service.cancel_task() is True
        assert task.state is TaskState.CANCELLED
        assert service.cancel_task() is False

    async def test_permission_response_for_unknown_request(self, make_service, scripted_llm):
        service = await make_service(scripted_llm([]))
        assert service.respond_permission("perm-0-unknown", True) is False

    async def test_permission_round_trip(self, make_service, scripted_llm, tmp_path):
        llm = scripted_llm([
            ["<write_to_file><path>out.txt</path><content>hi</content></write_to_file>"],
            [COMPLETE],
        ])
        service = await make_service(llm)

        task = service.submit_user_input("write a file")
        request = (await next_event(service, EventType.PERMISSION_REQUEST)).payload['request']
        assert request['target'] == "out.txt"
        assert service.respond_permission(request['id'], True) is True

        assert await asyncio.wait_for(task.wait(), timeout=5) is TaskState.COMPLETED
        assert (tmp_path / "out.txt").read_text() == "hi\n"


class TestProviderCommands:
    """Provider commands report failures as error events"""

    async def test_connect_unknown_provider(self, make_service, scripted_llm):
        service = await make_service(scripted_llm([]))

        assert await service.connect_provider("provider-missing") is False

        error = await next_event(service, EventType.ERROR)
        assert error.payload['message'] == "Failed to connect provider: Provider provider-missing not found"

    async def test_add_invalid_provider(self, make_service, scripted_llm):
        service = await make_service(scripted_llm([]))

        assert await service.add_provider({'name': "No command"}) is None

        error = await next_event(service, EventType.ERROR)
        assert error.payload['message'].startswith("Failed to add provider:")

    async def test_catalog_install(self, make_service, scripted_llm):
        service = await make_service(scripted_llm([]))

        catalog = service.get_catalog()
        assert len(catalog) == 10
        listed = await next_event(service, EventType.CATALOG_LIST)
        assert listed.payload['items'] == catalog

        installed = await service.install_from_catalog("memory")
        assert installed is not None
        added = await next_event(service, EventType.PROVIDER_ADDED)
        assert added.payload['server']['id'] == installed.id

        assert await service.install_from_catalog("memory") is None
        error = await next_event(service, EventType.ERROR)
        assert error.payload['message'].startswith("Failed to install from catalog:")

    async def test_list_and_remove(self, make_service, scripted_llm):
        service = await make_service(scripted_llm([]))
        definition = await service.add_provider({'name': "Local", 'command': "local-server"})

        servers = service.list_providers()
        assert [s['id'] for s in servers] == [definition.id]
        assert servers[0]['state']['status'] == "disconnected"

        assert await service.remove_provider(definition.id) is True
        removed = await next_event(service, EventType.PROVIDER_REMOVED)
        assert removed.payload == {'id': definition.id}
        assert await service.remove_provider(definition.id) is False

    async def test_update_provider(self, make_service, scripted_llm):
        service = await make_service(scripted_llm([]))
        definition = await service.add_provider({'name': "Local", 'command': "local-server"})

        updated = await service.update_provider({**definition.to_dict(), 'name': "Renamed"})

        assert updated.name == "Renamed"
        event = await next_event(service, EventType.PROVIDER_UPDATED)
        assert event.payload['server']['name'] == "Renamed"

    @pytest.mark.slow
    async def test_task_uses_provider_tool(self, make_service, scripted_llm, fake_provider_command):
        llm = scripted_llm([
            ["Adding.\n<mcp_fake_add><a>2</a><b>3</b></mcp_fake_add>"],
            [COMPLETE],
        ])
        settings = AgentSettings(permissions=PermissionSettings(allow_execute_by_default=True))
        service = await make_service(llm, settings=settings)
        command, args = fake_provider_command()
        definition = await service.add_provider({'name': "Fake", 'command': command, 'args': args})

        assert await service.connect_provider(definition.id) is True
        assert "mcp_fake_add" in service.dispatcher.get_tool_names()
        state = await next_event(service, EventType.PROVIDER_STATE_CHANGED)
        assert state.payload['state']['id'] == definition.id

        task = service.submit_user_input("add two numbers")
        assert await asyncio.wait_for(task.wait(), timeout=10) is TaskState.COMPLETED

        assert "## mcp_fake_add" in llm.calls[0]['system_prompt']
        assert llm.calls[1]['messages'][-1]['content'] == "[TOOL RESULT: mcp_fake_add]\n5"

        await service.disconnect_provider(definition.id)
        assert "mcp_fake_add" not in service.dispatcher.get_tool_names()


class TestServiceSingleton:
    """Module-level service accessors"""

    async def test_get_agent_service_is_shared(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        first = await get_agent_service()
        second = await get_agent_service()

        assert first is second
        assert first.running is True

        await shutdown_agent_service()
        assert first.running is False
        assert first.events.closed
