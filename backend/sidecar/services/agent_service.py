"""
Agent Service for sidecar
Host-facing entry point: composes the agent loop, the tool dispatcher, the
permission manager and the provider registry behind one command surface and
one event channel.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional, Set

from ..config import PERMISSION_TIMEOUT_SECONDS, AgentSettings
from ..core.errors import SidecarError
from ..core.events import Event, EventChannel, EventType
from ..agent.llm.base import BaseLLMClient
from ..agent.llm.openai_client import OpenAIClientAdapter
from ..agent.permissions import PermissionManager
from ..agent.recovery import RecoveryPolicy
from ..agent.task import Task
from ..agent.tools import ToolDispatcher, create_default_tools, sync_provider_tools
from ..providers.models import ProviderDefinition
from ..providers.registry import ProviderRegistry
from ..providers.store import ProviderStore

logger = logging.getLogger(__name__)


class AgentService:
    """Service running agent tasks and managing tool providers for one host"""

    def __init__(
        self,
        settings: Optional[AgentSettings] = None,
        llm: Optional[BaseLLMClient] = None,
        store: Optional[ProviderStore] = None,
        workspace_folder: Optional[str] = None,
        permission_timeout: float = PERMISSION_TIMEOUT_SECONDS,
        recovery: Optional[RecoveryPolicy] = None,
    ):
        self.settings = settings or AgentSettings.from_env()
        self.workspace_folder = workspace_folder or os.getcwd()
        self.events: EventChannel[Event] = EventChannel("agent")

        self.llm = llm or OpenAIClientAdapter(self.settings.api)
        self.recovery = recovery or RecoveryPolicy()
        self.permissions = PermissionManager(self.settings.permissions, self.events, timeout=permission_timeout)
        self.dispatcher = ToolDispatcher(self.permissions)
        for tool in create_default_tools(self.workspace_folder):
            self.dispatcher.register(tool)
        self.providers = ProviderRegistry(store=store, workspace_folder=self.workspace_folder)

        self.active_task: Optional[Task] = None
        self._runners: Set[asyncio.Task] = set()
        self._state_pump: Optional[asyncio.Task] = None
        self.running = False

    async def start(self) -> None:
        """Load providers, auto-connect them and start republishing their state"""
        if self.running:
            return
        self.running = True
        self._state_pump = asyncio.create_task(self._pump_provider_states())
        await self.providers.initialize()
        sync_provider_tools(self.dispatcher, self.providers)
        logger.info(f"Agent service started with {len(self.dispatcher.get_tool_names())} tools")

    async def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        self.cancel_task()
        runners = list(self._runners)
        for runner in runners:
            runner.cancel()
        await asyncio.gather(*runners, return_exceptions=True)
        await self.providers.shutdown()
        if self._state_pump is not None:
            await self._state_pump
        self.events.close()
        logger.info("Agent service stopped")

    async def _pump_provider_states(self) -> None:
        async for state in self.providers.states:
            sync_provider_tools(self.dispatcher, self.providers)
            self.events.publish(Event(EventType.PROVIDER_STATE_CHANGED, {'state': state.to_dict()}))

    # -----------------------------
    # Task commands
    # -----------------------------

    def submit_user_input(self, message: str, context: Optional[str] = None) -> Task:
        """Start a new task; an active task is cancelled first"""
        if self.active_task is not None and not self.active_task.is_completed:
            logger.info(f"Cancelling active task {self.active_task.id} for new input")
            self.active_task.cancel()

        sync_provider_tools(self.dispatcher, self.providers)
        task = Task(
            message,
            llm=self.llm,
            dispatcher=self.dispatcher,
            events=self.events,
            settings=self.settings,
            recovery=self.recovery,
            context=context,
        )
        self.active_task = task
        runner = asyncio.create_task(task.start())
        self._runners.add(runner)
        runner.add_done_callback(self._runners.discard)
        return task

    def cancel_task(self) -> bool:
        if self.active_task is None or self.active_task.is_completed:
            return False
        self.active_task.cancel()
        return True

    def respond_permission(self, request_id: str, approved: bool) -> bool:
        return self.permissions.handle_permission_response(request_id, approved)

    # -----------------------------
    # Provider commands
    # -----------------------------

    def _provider_error(self, action: str, error: Exception) -> None:
        logger.warning(f"Provider {action} failed: {error}")
        self.events.publish(Event(EventType.ERROR, {'message': f"Failed to {action}: {error}"}))

    def list_providers(self) -> List[Dict[str, Any]]:
        states = {state.id: state for state in self.providers.get_server_states()}
        servers = [
            {**definition.to_dict(), 'state': states[definition.id].to_dict()}
            for definition in self.providers.get_servers()
        ]
        self.events.publish(Event(EventType.PROVIDERS_LIST, {'servers': servers}))
        return servers

    async def add_provider(self, data: Dict[str, Any]) -> Optional[ProviderDefinition]:
        try:
            definition = await self.providers.add_server(data)
        except (SidecarError, KeyError, TypeError) as e:
            self._provider_error("add provider", e)
            return None
        self.events.publish(Event(EventType.PROVIDER_ADDED, {'server': definition.to_dict()}))
        return definition

    async def update_provider(self, data: Dict[str, Any]) -> Optional[ProviderDefinition]:
        try:
            definition = await self.providers.update_server(ProviderDefinition.from_dict(data))
        except (SidecarError, KeyError, TypeError) as e:
            self._provider_error("update provider", e)
            return None
        self.events.publish(Event(EventType.PROVIDER_UPDATED, {'server': definition.to_dict()}))
        return definition

    async def remove_provider(self, provider_id: str) -> bool:
        try:
            await self.providers.remove_server(provider_id)
        except SidecarError as e:
            self._provider_error("remove provider", e)
            return False
        self.events.publish(Event(EventType.PROVIDER_REMOVED, {'id': provider_id}))
        return True

    async def connect_provider(self, provider_id: str) -> bool:
        try:
            await self.providers.connect_server(provider_id)
        except SidecarError as e:
            self._provider_error("connect provider", e)
            return False
        sync_provider_tools(self.dispatcher, self.providers)
        return True

    async def disconnect_provider(self, provider_id: str) -> None:
        await self.providers.disconnect_server(provider_id)
        sync_provider_tools(self.dispatcher, self.providers)

    def get_catalog(self) -> List[Dict[str, Any]]:
        catalog = [template.to_dict() for template in self.providers.get_catalog()]
        self.events.publish(Event(EventType.CATALOG_LIST, {'items': catalog}))
        return catalog

    async def install_from_catalog(self, template_id: str) -> Optional[ProviderDefinition]:
        try:
            definition = await self.providers.install_from_catalog(template_id)
        except SidecarError as e:
            self._provider_error("install from catalog", e)
            return None
        self.events.publish(Event(EventType.PROVIDER_ADDED, {'server': definition.to_dict()}))
        return definition


_agent_service: Optional[AgentService] = None


async def get_agent_service() -> AgentService:
    """Get the global agent service instance"""
    global _agent_service
    if _agent_service is None:
        _agent_service = AgentService()
        await _agent_service.start()
    return _agent_service


async def shutdown_agent_service():
    """Shutdown the global agent service"""
    global _agent_service
    if _agent_service:
        await _agent_service.stop()
        _agent_service = None
