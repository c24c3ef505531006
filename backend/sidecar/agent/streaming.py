"""
Drive one model stream through the parser and publish live progress
"""

import json
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from ..core.events import Event, EventChannel, EventType
from .llm.base import ContentEvent, StreamEvent, UsageEvent
from .models import ContentBlock, TokenUsage, ToolUse
from .parser import AssistantMessageParser

logger = logging.getLogger(__name__)


@dataclass
class StreamResult:
    assistant_message: str
    content_blocks: List[ContentBlock]
    display_text: str
    usage: Optional[TokenUsage] = None
    cancelled: bool = False

    @property
    def tool_calls(self) -> List[ToolUse]:
        return [block for block in self.content_blocks if isinstance(block, ToolUse)]


def _param_size(value) -> int:
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value)
    return len(json.dumps(value, default=str))


def _snapshot(tool_call: ToolUse) -> Tuple:
    return (
        tool_call.name,
        tool_call.partial,
        tuple((key, _param_size(value)) for key, value in tool_call.params.items()),
    )


async def stream_assistant_response(
    stream: AsyncIterator[StreamEvent],
    parser: AssistantMessageParser,
    is_cancelled: Callable[[], bool],
    task_id: str,
    loop_count: int,
    events: EventChannel[Event],
) -> StreamResult:
    """
    Consume ``stream`` until it ends or the task is cancelled.

    Cancellation is checked once per received event. Tool-call notices are
    only published when a call's name, partial flag or parameter sizes
    change, and display text only when it differs from the last published.
    """
    assistant_message = ""
    last_published = ""
    usage: Optional[TokenUsage] = None
    cancelled = False
    sequence = 0
    snapshots: Dict[str, Tuple] = {}

    def publish_tool_calls(blocks: List[ContentBlock]) -> None:
        nonlocal sequence
        for block in blocks:
            if not isinstance(block, ToolUse):
                continue
            if block.id is None:
                block.id = f"tool-{task_id}-{loop_count}-{sequence}"
                sequence += 1
            snapshot = _snapshot(block)
            if snapshots.get(block.id) == snapshot:
                continue
            snapshots[block.id] = snapshot
            events.publish(Event(EventType.TOOL_CALL, {'tool_call': block.to_dict()}, task_id=task_id))

    try:
        async for chunk in stream:
            if is_cancelled():
                cancelled = True
                break
            if isinstance(chunk, ContentEvent):
                assistant_message += chunk.content
                blocks = parser.process_chunk(chunk.content)
                publish_tool_calls(blocks)
                display_text = parser.get_display_text(blocks)
                if display_text != last_published:
                    last_published = display_text
                    events.publish(Event(
                        EventType.STREAM_CHUNK,
                        {'content': display_text, 'is_streaming': True},
                        task_id=task_id,
                    ))
            elif isinstance(chunk, UsageEvent):
                usage = chunk.usage
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()

    parser.finalize_content_blocks()
    blocks = parser.get_content_blocks()
    display_text = parser.get_display_text(blocks) or last_published

    events.publish(Event(
        EventType.STREAM_CHUNK,
        {'content': display_text, 'is_streaming': False},
        task_id=task_id,
    ))
    logger.debug(
        f"[Task {task_id}] Stream finished: {len(assistant_message)} chars, "
        f"{sum(isinstance(b, ToolUse) for b in blocks)} tool calls"
    )

    return StreamResult(
        assistant_message=assistant_message,
        content_blocks=blocks,
        display_text=display_text,
        usage=usage,
        cancelled=cancelled,
    )
