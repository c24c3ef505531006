"""
Replace string tool for agents
"""

import logging
import os

import aiofiles

from .base_tool import FileChange, ToolOutput, WorkspaceTool

logger = logging.getLogger(__name__)


class ReplaceStringTool(WorkspaceTool):
    """Replace one exact occurrence of a string inside a file"""

    def __init__(self, workspace_root: str = None):
        super().__init__(workspace_root)
        self.name = "replace_in_file"
        self.description = (
            "Replace an exact block of text in a file. old_str must match the file "
            "content exactly (including whitespace) and must occur exactly once."
        )
        self.parameters = {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path of the file, relative to the workspace root"
                },
                "old_str": {
                    "type": "string",
                    "description": "Exact text to replace"
                },
                "new_str": {
                    "type": "string",
                    "description": "Replacement text"
                }
            },
            "required": ["path", "old_str"]
        }
        self.requires_permission = True
        self.operation = "modify"

    async def execute(self, **kwargs) -> ToolOutput:
        path = kwargs.get("path")
        old_str = kwargs.get("old_str")
        new_str = kwargs.get("new_str", "")
        if not path or not old_str:
            return ToolOutput(success=False, error="path and old_str are required")

        file_path = self.resolve_path(path)
        if not os.path.isfile(file_path):
            return ToolOutput(success=False, error=f"File not found: {path}")

        async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
            before = await f.read()

        count = before.count(old_str)
        if count == 0:
            return ToolOutput(success=False, error=f"old_str not found in {path}")
        if count > 1:
            return ToolOutput(success=False, error=f"old_str occurs {count} times in {path}; include more context to make it unique")

        after = before.replace(old_str, new_str, 1)
        async with aiofiles.open(file_path, 'w', encoding='utf-8') as f:
            await f.write(after)

        logger.info(f"Replaced text in {file_path}")
        return ToolOutput(
            success=True,
            data=f"Replaced 1 occurrence in {path}",
            changes=[FileChange(path, before, after)],
        )
