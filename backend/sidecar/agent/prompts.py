"""
Prompt text used by the agent loop
"""

import json
from typing import Iterable, List, Optional

from .models import ToolResult

COMPLETION_TOOL_NAME = "attempt_completion"

TOOL_USE_FORMAT = """Tool uses are formatted using XML-style tags. The tool name itself becomes the XML tag name. Each parameter is enclosed within its own set of tags. Here's the structure:

<actual_tool_name>
<parameter1_name>value1</parameter1_name>
<parameter2_name>value2</parameter2_name>
...
</actual_tool_name>"""

COMPLETION_EXAMPLE = f"""<{COMPLETION_TOOL_NAME}>
<result>
I have completed the task...
</result>
</{COMPLETION_TOOL_NAME}>"""


def build_system_prompt(tools: Iterable, workspace_folder: Optional[str] = None) -> str:
    """Describe every available tool and the markup the model must use"""
    parts: List[str] = [
        "You are a coding agent working inside the user's workspace. "
        "You accomplish the task step by step, using exactly the tools listed below. "
        "Use one or more tools in each response and wait for their results before continuing.",
        "",
        "# Tool Use Formatting",
        "",
        TOOL_USE_FORMAT,
        "",
        "# Tools",
    ]

    for tool in tools:
        parts.append("")
        parts.append(f"## {tool.name}")
        parts.append(f"Description: {tool.description}")
        properties = (tool.parameters or {}).get("properties") or {}
        required = set((tool.parameters or {}).get("required") or [])
        if properties:
            parts.append("Parameters:")
            for name, schema in properties.items():
                flag = "required" if name in required else "optional"
                description = schema.get("description", "") if isinstance(schema, dict) else ""
                parts.append(f"- {name}: ({flag}) {description}".rstrip())
        else:
            parts.append("Parameters: none")
        parts.append("Usage:")
        parts.append(f"<{tool.name}>")
        for name in properties:
            parts.append(f"<{name}>{name} here</{name}>")
        parts.append(f"</{tool.name}>")

    parts.extend([
        "",
        "# Completing the task",
        "",
        f"When the task is done, use the {COMPLETION_TOOL_NAME} tool with a summary of the result:",
        "",
        COMPLETION_EXAMPLE,
    ])
    if workspace_folder:
        parts.extend(["", f"Current workspace directory: {workspace_folder}"])
    return "\n".join(parts)


def no_tools_used() -> str:
    """Corrective instruction sent when a response contains text but no tool call"""
    return f"""[ERROR] You did not use a tool in your previous response! Please retry with a tool use.

# Reminder: Instructions for Tool Use

{TOOL_USE_FORMAT}

For example, to use the {COMPLETION_TOOL_NAME} tool:

{COMPLETION_EXAMPLE}

Always use the actual tool name as the XML tag name for proper parsing and execution.
"""


def loop_limit_notice(max_loop_count: int) -> str:
    return (
        f"Reached the maximum loop count ({max_loop_count}). "
        "The task may be too complex; simplify it or split it into smaller steps."
    )


def format_tool_result(result: ToolResult) -> str:
    if result.is_error:
        return f"[TOOL ERROR: {result.tool_name}]\n{result.content}"
    return f"[TOOL RESULT: {result.tool_name}]\n{result.content}"


def format_user_message(message: str, context: Optional[str] = None) -> str:
    parts: List[str] = []
    if context:
        parts.append("# Project Context")
        parts.append(context)
    parts.append("# User Request")
    parts.append(message)
    return "\n".join(parts)


def stringify_content(value) -> str:
    """Render a tool payload as text for the model"""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)
