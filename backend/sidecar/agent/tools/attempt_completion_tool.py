"""
Completion tool: the model calls it to signal the task is finished
"""

from ..prompts import COMPLETION_TOOL_NAME
from .base_tool import BaseTool, ToolOutput


class AttemptCompletionTool(BaseTool):

    def __init__(self):
        super().__init__()
        self.name = COMPLETION_TOOL_NAME
        self.description = (
            "Present the final result of the task to the user. Use this only once "
            "the task is complete; the task ends after the current tool batch."
        )
        self.parameters = {
            "type": "object",
            "properties": {
                "result": {
                    "type": "string",
                    "description": "Summary of what was done"
                }
            },
            "required": ["result"]
        }

    async def execute(self, **kwargs) -> ToolOutput:
        return ToolOutput(success=True, data=kwargs.get("result", ""))
