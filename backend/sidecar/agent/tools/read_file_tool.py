"""
Read file tool for agents
"""

import logging
import os

import aiofiles

from .base_tool import ToolOutput, WorkspaceTool

logger = logging.getLogger(__name__)


class ReadFileTool(WorkspaceTool):
    """Tool for reading file contents"""

    def __init__(self, workspace_root: str = None):
        super().__init__(workspace_root)
        self.name = "read_file"
        self.description = "Read the contents of a file, optionally limited to a line range."
        self.parameters = {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path of the file, relative to the workspace root"
                },
                "start_line": {
                    "type": "integer",
                    "description": "Starting line number (1-indexed, optional)"
                },
                "end_line": {
                    "type": "integer",
                    "description": "Ending line number (1-indexed, inclusive, optional)"
                }
            },
            "required": ["path"]
        }
        self.requires_permission = True
        self.operation = "read"

    async def execute(self, **kwargs) -> ToolOutput:
        path = kwargs.get("path")
        if not path:
            return ToolOutput(success=False, error="path is required")

        file_path = self.resolve_path(path)
        if not os.path.isfile(file_path):
            return ToolOutput(success=False, error=f"File not found: {path}")

        try:
            start_line = int(kwargs["start_line"]) if kwargs.get("start_line") else None
            end_line = int(kwargs["end_line"]) if kwargs.get("end_line") else None
        except ValueError:
            return ToolOutput(success=False, error="start_line and end_line must be integers")

        async with aiofiles.open(file_path, 'r', encoding='utf-8', errors='replace') as f:
            content = await f.read()

        if start_line is None and end_line is None:
            return ToolOutput(success=True, data=content)

        lines = content.splitlines(keepends=True)
        start = max((start_line or 1) - 1, 0)
        end = end_line if end_line is not None else len(lines)
        if start >= len(lines) or end < start + 1:
            return ToolOutput(success=False, error=f"Line range {start_line}-{end_line} is outside the file ({len(lines)} lines)")
        return ToolOutput(success=True, data="".join(lines[start:end]))
