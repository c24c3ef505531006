"""
Agent tools package
"""

from .base_tool import BaseTool, FileChange, ToolOutput, WorkspaceTool
from .tool_registry import ToolRegistry
from .dispatcher import ToolDispatcher
from .provider_tool import ProviderTool, sync_provider_tools
from .read_file_tool import ReadFileTool
from .write_file_tool import WriteFileTool
from .replace_string_tool import ReplaceStringTool
from .run_terminal_tool import RunTerminalTool
from .attempt_completion_tool import AttemptCompletionTool


def create_default_tools(workspace_root: str = None):
    """Local tools every task gets"""
    return [
        AttemptCompletionTool(),
        ReadFileTool(workspace_root),
        WriteFileTool(workspace_root),
        ReplaceStringTool(workspace_root),
        RunTerminalTool(workspace_root),
    ]


__all__ = [
    "BaseTool",
    "FileChange",
    "ToolOutput",
    "WorkspaceTool",
    "ToolRegistry",
    "ToolDispatcher",
    "ProviderTool",
    "sync_provider_tools",
    "ReadFileTool",
    "WriteFileTool",
    "ReplaceStringTool",
    "RunTerminalTool",
    "AttemptCompletionTool",
    "create_default_tools",
]
