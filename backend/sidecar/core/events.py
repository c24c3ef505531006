"""
Event channel for sidecar

Single-consumer asyncio queue used in place of state-change callbacks:
provider clients publish session snapshots, the registry republishes an
aggregated view, and tasks publish host-facing events.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventType(Enum):
    """Events emitted to the hosting application"""
    STREAM_CHUNK = "stream_chunk"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    TASK_DIFF = "task_diff"
    ERROR = "error"
    TASK_COMPLETE = "task_complete"
    TOKEN_USAGE = "token_usage"
    PERMISSION_REQUEST = "permission_request"
    PROVIDER_STATE_CHANGED = "provider_state_changed"
    PROVIDERS_LIST = "providers_list"
    PROVIDER_ADDED = "provider_added"
    PROVIDER_UPDATED = "provider_updated"
    PROVIDER_REMOVED = "provider_removed"
    CATALOG_LIST = "catalog_list"


@dataclass
class Event:
    """Host-facing event"""
    type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    task_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        result = {'type': self.type.value, 'timestamp': self.timestamp}
        if self.task_id is not None:
            result['task_id'] = self.task_id
        result.update(self.payload)
        return result


_CLOSED = object()


class EventChannel(Generic[T]):
    """
    Explicit single-consumer channel.

    ``publish`` never blocks and never fails; once the channel is closed,
    further publishes are dropped and async iteration ends after the queued
    items have been consumed.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False
        self.published = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, item: T) -> None:
        if self._closed:
            logger.debug(f"[{self.name}] Dropping item published after close")
            return
        self._queue.put_nowait(item)
        self.published += 1

    async def get(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the sentinel for any later consumer call
            self._queue.put_nowait(_CLOSED)
            raise EOFError(f"Channel {self.name} is closed")
        return item

    def get_nowait(self) -> T:
        item = self._queue.get_nowait()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise EOFError(f"Channel {self.name} is closed")
        return item

    def drain(self) -> List[T]:
        """Return every queued item without waiting"""
        items: List[T] = []
        while True:
            try:
                items.append(self.get_nowait())
            except (asyncio.QueueEmpty, EOFError):
                return items

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.get()
            except EOFError:
                return
