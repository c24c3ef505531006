"""
Conversation and content-block models for the agent loop
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class TurnRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_RESULT = "tool_result"


class TaskState(Enum):
    """Task lifecycle; COMPLETED, CANCELLED and FAILED are terminal"""
    IDLE = "idle"
    RUNNING = "running"
    EXECUTING_TOOLS = "executing_tools"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.CANCELLED, TaskState.FAILED)


@dataclass
class TextContent:
    """Free text produced by the model"""
    content: str
    partial: bool = False
    type: str = "text"


@dataclass
class ToolUse:
    """Tool invocation parsed out of the model output"""
    name: str
    params: Dict[str, str] = field(default_factory=dict)
    partial: bool = False
    id: Optional[str] = None
    type: str = "tool_use"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'params': dict(self.params),
            'partial': self.partial,
        }


ContentBlock = Union[TextContent, ToolUse]


@dataclass
class ToolResult:
    """Outcome of one tool invocation, success or failure"""
    tool_name: str
    content: str
    is_error: bool = False
    tool_call_id: Optional[str] = None
    data: Any = None
    # FileChange entries for files the tool wrote
    changes: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tool_name': self.tool_name,
            'tool_call_id': self.tool_call_id,
            'content': self.content,
            'is_error': self.is_error,
        }


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: 'TokenUsage') -> None:
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens


@dataclass
class Turn:
    """
    History entry. Turns are append-only; the only mutation allowed after
    appending is attaching a tool result to the call that produced it.
    """
    role: TurnRole
    content: str
    tool_calls: List[ToolUse] = field(default_factory=list)
    tool_results: Dict[str, ToolResult] = field(default_factory=dict)

    def attach_result(self, result: ToolResult) -> None:
        if result.tool_call_id is None:
            raise ValueError("Tool result has no tool_call_id")
        if not any(call.id == result.tool_call_id for call in self.tool_calls):
            raise ValueError(f"Turn has no tool call with id {result.tool_call_id}")
        self.tool_results[result.tool_call_id] = result

    def to_message(self) -> Dict[str, str]:
        """Chat message for the model; tool results are sent as user text"""
        role = "assistant" if self.role is TurnRole.ASSISTANT else "user"
        return {"role": role, "content": self.content}
