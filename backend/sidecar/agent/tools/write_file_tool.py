"""
Write file tool for agents
"""

import logging
import os

import aiofiles

from .base_tool import FileChange, ToolOutput, WorkspaceTool

logger = logging.getLogger(__name__)


class WriteFileTool(WorkspaceTool):
    """Create a file or overwrite it with new content"""

    def __init__(self, workspace_root: str = None):
        super().__init__(workspace_root)
        self.name = "write_to_file"
        self.description = (
            "Write content to a file. Creates the file and any missing directories "
            "if needed, and overwrites the file if it already exists."
        )
        self.parameters = {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path of the file, relative to the workspace root"
                },
                "content": {
                    "type": "string",
                    "description": "Complete new content of the file"
                }
            },
            "required": ["path", "content"]
        }
        self.requires_permission = True
        self.operation = "write"

    async def execute(self, **kwargs) -> ToolOutput:
        path = kwargs.get("path")
        content = kwargs.get("content", "")
        if not path:
            return ToolOutput(success=False, error="path is required")

        file_path = self.resolve_path(path)
        before = None
        if os.path.isfile(file_path):
            async with aiofiles.open(file_path, 'r', encoding='utf-8', errors='replace') as f:
                before = await f.read()

        parent = os.path.dirname(file_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        if content and not content.endswith("\n"):
            content += "\n"
        async with aiofiles.open(file_path, 'w', encoding='utf-8') as f:
            await f.write(content)

        action = "Created" if before is None else "Updated"
        logger.info(f"{action} file: {file_path}")
        return ToolOutput(
            success=True,
            data=f"{action} {path} ({len(content.splitlines())} lines)",
            changes=[FileChange(path, before, content)],
        )
