"""
Base tool interface for agent tools
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FileChange:
    """File content before and after one tool write; None means absent"""
    path: str
    before: Optional[str]
    after: Optional[str]


@dataclass
class ToolOutput:
    """Raw outcome of tool execution, before it is folded into history"""
    success: bool
    data: Any = None
    error: Optional[str] = None
    # recorded by the task that issued the call
    changes: List[FileChange] = field(default_factory=list)


class BaseTool(ABC):
    """Base class for all agent tools"""

    def __init__(self):
        """Initialize tool with required properties"""
        self.name: str = ""
        self.description: str = ""
        self.parameters: Dict[str, Any] = {"type": "object", "properties": {}}
        self.requires_permission: bool = False
        # read, write, modify or execute
        self.operation: str = "read"

    @abstractmethod
    async def execute(self, **kwargs) -> ToolOutput:
        """Execute the tool with given parameters"""
        pass

    def parameter_names(self) -> List[str]:
        return list((self.parameters.get("properties") or {}).keys())

    def required_parameters(self) -> List[str]:
        return list(self.parameters.get("required") or [])

    def permission_target(self, params: Dict[str, Any]) -> str:
        """What the permission prompt shows as the operation target"""
        return self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class WorkspaceTool(BaseTool):
    """Tool operating on paths relative to a workspace root"""

    def __init__(self, workspace_root: Optional[str] = None):
        super().__init__()
        self.workspace_root = os.path.abspath(workspace_root or os.getcwd())

    def resolve_path(self, path: str) -> str:
        if os.path.isabs(path):
            return os.path.normpath(path)
        return os.path.normpath(os.path.join(self.workspace_root, path))

    def permission_target(self, params: Dict[str, Any]) -> str:
        return str(params.get("path") or self.name)
