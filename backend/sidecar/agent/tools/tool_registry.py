"""
Tool registry for managing agent tools
"""

from typing import Dict, List, Optional

from .base_tool import BaseTool


class ToolRegistry:
    """Registry mapping a tool name to its tool object"""

    def __init__(self):
        """Initialize empty registry"""
        self._tools: Dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool in the registry, replacing any tool of the same name"""
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> Optional[BaseTool]:
        return self._tools.pop(name, None)

    def get(self, name: str) -> Optional[BaseTool]:
        """Get a tool by name"""
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def all(self) -> List[BaseTool]:
        """Get all registered tools"""
        return list(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
