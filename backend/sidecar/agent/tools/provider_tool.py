"""
Provider-backed tools built at runtime from discovered schemas
"""

import json
import logging
import re
from typing import Any, Dict, List

from ...providers.models import ProviderToolDefinition
from .base_tool import BaseTool, ToolOutput

logger = logging.getLogger(__name__)


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", value.lower())


def _coerce(value: Any, schema: Dict[str, Any]) -> Any:
    """Markup parameters arrive as text; convert them to the declared JSON type"""
    if not isinstance(value, str) or not isinstance(schema, dict):
        return value
    kind = schema.get("type")
    try:
        if kind == "integer":
            return int(value)
        if kind == "number":
            return float(value)
        if kind == "boolean":
            lowered = value.strip().lower()
            if lowered in ("true", "false"):
                return lowered == "true"
            return value
        if kind in ("object", "array"):
            return json.loads(value)
    except ValueError:
        return value
    return value


def format_provider_result(result: Any) -> str:
    """Flatten a tools/call result: text items as-is, anything else as JSON"""
    content = result.get("content") if isinstance(result, dict) else result
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text" and item.get("text"):
                parts.append(item["text"])
            else:
                parts.append(json.dumps(item, ensure_ascii=False))
        return "\n".join(parts)
    if isinstance(content, str):
        return content
    return json.dumps(result, ensure_ascii=False, indent=2, default=str)


class ProviderTool(BaseTool):
    """Routes an invocation back to the provider that advertised the tool"""

    def __init__(self, registry, provider_id: str, provider_name: str, definition: ProviderToolDefinition, name: str = None):
        super().__init__()
        self.registry = registry
        self.provider_id = provider_id
        self.provider_name = provider_name
        self.remote_name = definition.name
        self.name = name or self.default_name(provider_name, definition.name)
        self.description = f"[MCP: {provider_name}] {definition.description or definition.name}"
        self.parameters = dict(definition.input_schema)
        self.parameters.setdefault("properties", {})
        self.requires_permission = True
        self.operation = "execute"

    @staticmethod
    def default_name(provider_name: str, tool_name: str) -> str:
        return f"mcp_{_slug(provider_name)}_{tool_name}"

    def permission_target(self, params: Dict[str, Any]) -> str:
        return f"{self.provider_name}/{self.remote_name}"

    async def execute(self, **kwargs) -> ToolOutput:
        properties = self.parameters.get("properties") or {}
        arguments = {key: _coerce(value, properties.get(key, {})) for key, value in kwargs.items()}
        try:
            result = await self.registry.call_tool(self.provider_id, self.remote_name, arguments)
        except Exception as e:
            logger.debug(f"[ProviderTool] Error executing {self.name}: {e}")
            return ToolOutput(
                success=False,
                error=f"MCP tool error ({self.provider_name}/{self.remote_name}): {e}",
            )

        text = format_provider_result(result)
        if isinstance(result, dict) and result.get("isError"):
            return ToolOutput(success=False, data=result, error=text)
        return ToolOutput(success=True, data=text)


def sync_provider_tools(dispatcher, registry) -> List[str]:
    """Replace the dispatcher's provider tools with those of every connected provider"""
    for tool in dispatcher.all():
        if isinstance(tool, ProviderTool):
            dispatcher.unregister(tool.name)

    names: List[str] = []
    for entry in registry.get_all_tools():
        name = ProviderTool.default_name(entry.provider_name, entry.tool.name)
        if dispatcher.get(name) is not None:
            name = f"{name}_{_slug(entry.provider_id)[-6:]}"
        if dispatcher.get(name) is not None:
            logger.warning(f"[ProviderTool] Skipping duplicate tool name: {name}")
            continue
        dispatcher.register(ProviderTool(registry, entry.provider_id, entry.provider_name, entry.tool, name=name))
        names.append(name)

    logger.debug(f"[ProviderTool] Synced {len(names)} provider tools")
    return names
