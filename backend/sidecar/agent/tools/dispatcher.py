"""
Tool dispatcher: resolves a parsed invocation to a tool and runs it
"""

import logging
from typing import List, Optional

from ...core.errors import PermissionDeniedError, ToolNotFoundError
from ...utils.logging import safe_repr
from ..models import ToolResult, ToolUse
from ..permissions import PermissionManager, PermissionRequest
from ..prompts import stringify_content
from .base_tool import BaseTool
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """
    Uniform execution front for local and provider-backed tools.

    ``execute`` never raises for tool-level problems: unknown tools, missing
    parameters, denied permissions and tool exceptions all come back as a
    failed ToolResult the model can read and correct.
    """

    def __init__(self, permissions: Optional[PermissionManager] = None, registry: Optional[ToolRegistry] = None):
        self.permissions = permissions
        self.registry = registry or ToolRegistry()

    def register(self, tool: BaseTool) -> None:
        self.registry.register(tool)
        logger.debug(f"[ToolDispatcher] Registered tool: {tool.name}")

    def unregister(self, name: str) -> Optional[BaseTool]:
        return self.registry.unregister(name)

    def get(self, name: str) -> Optional[BaseTool]:
        return self.registry.get(name)

    def get_tool_names(self) -> List[str]:
        return self.registry.names()

    def all(self) -> List[BaseTool]:
        return self.registry.all()

    def get_parameter_names(self) -> List[str]:
        """Union of every tool's parameter names, in registration order"""
        names: List[str] = []
        for tool in self.registry.all():
            for name in tool.parameter_names():
                if name not in names:
                    names.append(name)
        return names

    async def execute(self, tool_use: ToolUse) -> ToolResult:
        tool = self.registry.get(tool_use.name)
        if tool is None:
            return self._error(tool_use, str(ToolNotFoundError(tool_use.name)))

        params = dict(tool_use.params)
        missing = [name for name in tool.required_parameters() if not params.get(name)]
        if missing:
            return self._error(tool_use, f"Missing required parameter(s): {', '.join(missing)}")

        if tool.requires_permission and self.permissions is not None:
            target = tool.permission_target(params)
            approved = await self.permissions.check_permission(PermissionRequest(
                tool_name=tool.name,
                operation=tool.operation,
                target=target,
                details=safe_repr(params, max_length=500),
            ))
            if not approved:
                return self._error(tool_use, str(PermissionDeniedError(tool.name, tool.operation, target)))

        logger.info(f"[ToolDispatcher] Executing {tool.name} {safe_repr(params)}")
        try:
            output = await tool.execute(**params)
        except Exception as e:
            logger.error(f"[ToolDispatcher] Error executing {tool.name}: {e}")
            return self._error(tool_use, f"Error executing {tool.name}: {e}")

        if not output.success:
            return self._error(tool_use, output.error or "Tool execution failed", data=output.data)
        return ToolResult(
            tool_name=tool_use.name,
            tool_call_id=tool_use.id,
            content=stringify_content(output.data),
            data=output.data,
            changes=list(output.changes),
        )

    @staticmethod
    def _error(tool_use: ToolUse, message: str, data=None) -> ToolResult:
        return ToolResult(
            tool_name=tool_use.name,
            tool_call_id=tool_use.id,
            content=message,
            is_error=True,
            data=data,
        )
