"""
Run terminal command tool for agents
"""

import asyncio
import logging

from .base_tool import ToolOutput, WorkspaceTool

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 120.0
MAX_OUTPUT_CHARS = 50_000


def _truncate(text: str) -> str:
    if len(text) <= MAX_OUTPUT_CHARS:
        return text
    return text[:MAX_OUTPUT_CHARS] + f"\n...(truncated {len(text) - MAX_OUTPUT_CHARS} chars)"


class RunTerminalTool(WorkspaceTool):
    """Tool for executing shell commands in the workspace"""

    def __init__(self, workspace_root: str = None, timeout: float = DEFAULT_COMMAND_TIMEOUT):
        super().__init__(workspace_root)
        self.timeout = timeout
        self.name = "execute_command"
        self.description = "Execute a shell command in the workspace root and return its exit code and output."
        self.parameters = {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "Command to execute"
                }
            },
            "required": ["command"]
        }
        self.requires_permission = True
        self.operation = "execute"

    def permission_target(self, params) -> str:
        return str(params.get("command") or self.name)

    async def execute(self, **kwargs) -> ToolOutput:
        command = kwargs.get("command")
        if not command or not command.strip():
            return ToolOutput(success=False, error="command cannot be empty")

        logger.info(f"Executing command: {command}")
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.workspace_root,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return ToolOutput(success=False, error=f"Command timed out after {self.timeout:g}s: {command}")

        output = stdout.decode('utf-8', errors='replace') if stdout else ""
        error = stderr.decode('utf-8', errors='replace') if stderr else ""
        lines = [f"Exit code: {process.returncode}"]
        if output:
            lines.append(f"Output:\n{_truncate(output)}")
        if error:
            lines.append(f"Stderr:\n{_truncate(error)}")
        return ToolOutput(success=process.returncode == 0, data="\n".join(lines), error="\n".join(lines))
