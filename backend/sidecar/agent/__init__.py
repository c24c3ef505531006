"""
Agent execution core: parser, reason/act loop, tools and recovery
"""

from .models import TaskState, TextContent, TokenUsage, ToolResult, ToolUse, Turn, TurnRole
from .parser import AssistantMessageParser
from .permissions import PermissionManager, PermissionRequest
from .recovery import FailureKind, RecoveryDecision, RecoveryPolicy
from .task import Task

__all__ = [
    "TaskState",
    "TextContent",
    "TokenUsage",
    "ToolResult",
    "ToolUse",
    "Turn",
    "TurnRole",
    "AssistantMessageParser",
    "PermissionManager",
    "PermissionRequest",
    "FailureKind",
    "RecoveryDecision",
    "RecoveryPolicy",
    "Task",
]
