"""
Provider registry for sidecar

Sole owner of provider definitions and of the live ProviderClient per
provider id. Lifecycle operations on one id are serialized; different ids
proceed independently.
"""

import asyncio
import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.errors import ProviderConfigError, ProviderNotConnectedError
from ..core.events import EventChannel
from ..utils.logging import sanitize_dict
from .catalog import find_template, get_catalog, substitute_workspace
from .client import ProviderClient
from .models import (
    CatalogTemplate,
    ConnectionStatus,
    ProviderDefinition,
    ProviderSessionState,
    ProviderToolDefinition,
    generate_provider_id,
)
from .store import InMemoryProviderStore, ProviderStore

logger = logging.getLogger(__name__)


@dataclass
class ProviderToolEntry:
    """A discovered tool tagged with the provider it came from"""
    provider_id: str
    provider_name: str
    tool: ProviderToolDefinition


class ProviderRegistry:
    """
    Registry of tool providers.

    Client snapshots are pumped into ``self.states`` so the host (or the
    agent service) has a single stream of provider state changes.
    """

    def __init__(
        self,
        store: Optional[ProviderStore] = None,
        workspace_folder: str = "",
        request_timeout: Optional[float] = None,
        startup_grace: Optional[float] = None,
    ):
        self.store = store or InMemoryProviderStore()
        self.workspace_folder = workspace_folder
        self.request_timeout = request_timeout
        self.startup_grace = startup_grace
        self.states: EventChannel[ProviderSessionState] = EventChannel("providers")

        self._definitions: List[ProviderDefinition] = []
        self._clients: Dict[str, ProviderClient] = {}
        self._pumps: Dict[str, asyncio.Task] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._config_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Load saved definitions and auto-connect enabled providers"""
        self._definitions = await self.store.load()

        for definition in self._definitions:
            if definition.enabled and definition.auto_connect:
                try:
                    await self.connect_server(definition.id)
                except Exception as e:
                    logger.warning(f"[ProviderRegistry] Auto-connect failed for {definition.name}: {e}")

        logger.info(f"[ProviderRegistry] Initialized with {len(self._definitions)} providers")

    async def shutdown(self) -> None:
        for provider_id in list(self._clients.keys()):
            async with self._locks[provider_id]:
                await self._drop_client(provider_id)
        self.states.close()

    # -----------------------------
    # Definitions
    # -----------------------------

    def get_servers(self) -> List[ProviderDefinition]:
        return list(self._definitions)

    def get_server(self, provider_id: str) -> Optional[ProviderDefinition]:
        for definition in self._definitions:
            if definition.id == provider_id:
                return definition
        return None

    def _require(self, provider_id: str) -> ProviderDefinition:
        definition = self.get_server(provider_id)
        if definition is None:
            raise ProviderConfigError(f"Provider {provider_id} not found")
        return definition

    def get_server_states(self) -> List[ProviderSessionState]:
        states = []
        for definition in self._definitions:
            client = self._clients.get(definition.id)
            if client is not None:
                states.append(client.get_state())
            else:
                states.append(ProviderSessionState(id=definition.id))
        return states

    async def add_server(self, data: Dict[str, Any]) -> ProviderDefinition:
        """Add a definition; any id in ``data`` is replaced with a fresh one"""
        definition = ProviderDefinition.from_dict({**data, 'id': generate_provider_id()})
        async with self._config_lock:
            self._definitions.append(definition)
            await self.store.save(self._definitions)
        logger.info(f"[ProviderRegistry] Added provider: {definition.name} {sanitize_dict(definition.to_dict())}")
        return definition

    async def update_server(self, definition: ProviderDefinition) -> ProviderDefinition:
        async with self._locks[definition.id]:
            self._require(definition.id)
            await self._drop_client(definition.id)
            async with self._config_lock:
                self._definitions = [
                    definition if existing.id == definition.id else existing
                    for existing in self._definitions
                ]
                await self.store.save(self._definitions)
        logger.info(f"[ProviderRegistry] Updated provider: {definition.name}")
        return definition

    async def remove_server(self, provider_id: str) -> None:
        async with self._locks[provider_id]:
            removed = self._require(provider_id)
            await self._drop_client(provider_id)
            async with self._config_lock:
                self._definitions = [d for d in self._definitions if d.id != provider_id]
                await self.store.save(self._definitions)
        self._locks.pop(provider_id, None)
        logger.info(f"[ProviderRegistry] Removed provider: {removed.name}")

    # -----------------------------
    # Connections
    # -----------------------------

    async def connect_server(self, provider_id: str) -> ProviderSessionState:
        async with self._locks[provider_id]:
            definition = self._require(provider_id)
            if not definition.enabled:
                raise ProviderConfigError(f"Provider {definition.name} is disabled")

            client = self._clients.get(provider_id)
            if client is not None and client.status in (ConnectionStatus.CONNECTED, ConnectionStatus.CONNECTING):
                return client.get_state()
            if client is not None:
                await self._drop_client(provider_id)

            client = ProviderClient(
                definition,
                request_timeout=self.request_timeout,
                startup_grace=self.startup_grace,
                cwd=self.workspace_folder or None,
            )
            self._clients[provider_id] = client
            self._pumps[provider_id] = asyncio.create_task(self._pump_states(client))

            # failure leaves the client in ERROR so its state stays visible
            await client.connect()
            return client.get_state()

    async def disconnect_server(self, provider_id: str) -> None:
        async with self._locks[provider_id]:
            await self._drop_client(provider_id)

    async def _drop_client(self, provider_id: str) -> None:
        client = self._clients.pop(provider_id, None)
        if client is None:
            return
        await client.disconnect()
        client.states.close()
        pump = self._pumps.pop(provider_id, None)
        if pump is not None:
            await pump

    async def _pump_states(self, client: ProviderClient) -> None:
        async for state in client.states:
            self.states.publish(state)

    def get_client(self, provider_id: str) -> Optional[ProviderClient]:
        return self._clients.get(provider_id)

    # -----------------------------
    # Tools
    # -----------------------------

    def get_all_tools(self) -> List[ProviderToolEntry]:
        """Flattened catalog of every connected provider's tools"""
        entries: List[ProviderToolEntry] = []
        for definition in self._definitions:
            client = self._clients.get(definition.id)
            if client is None or client.status != ConnectionStatus.CONNECTED:
                continue
            for tool in client.tools:
                entries.append(ProviderToolEntry(definition.id, definition.name, tool))
        return entries

    async def call_tool(self, provider_id: str, tool_name: str, arguments: Dict[str, Any]) -> Any:
        client = self._clients.get(provider_id)
        if client is None:
            raise ProviderNotConnectedError(f"Provider {provider_id} is not connected")
        return await client.call_tool(tool_name, arguments)

    # -----------------------------
    # Catalog
    # -----------------------------

    def get_catalog(self) -> List[CatalogTemplate]:
        return get_catalog()

    async def install_from_catalog(self, template_id: str) -> ProviderDefinition:
        template = find_template(template_id)
        if template is None:
            raise ProviderConfigError(f"Catalog item {template_id} not found")

        args = substitute_workspace(template.args, self.workspace_folder)
        for existing in self._definitions:
            if existing.command == template.command and (
                json.dumps(existing.args) in (json.dumps(template.args), json.dumps(args))
            ):
                raise ProviderConfigError(f"{template.name} is already installed")

        return await self.add_server({
            'name': template.name,
            'description': template.description,
            'command': template.command,
            'args': args,
            'env': dict(template.env),
            'enabled': True,
            'autoConnect': False,
        })
