"""
Permission manager for tool operations

Operations allowed by default are approved immediately; everything else is
delegated to the host through a ``permission_request`` event and suspends
until the host answers or the timeout ceiling denies it.
"""

import asyncio
import logging
import random
import string
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..config import PERMISSION_TIMEOUT_SECONDS, PermissionSettings
from ..core.events import Event, EventChannel, EventType

logger = logging.getLogger(__name__)

OPERATION_DEFAULTS = {
    "read": "allow_read_by_default",
    "write": "allow_write_by_default",
    "modify": "allow_write_by_default",
    "execute": "allow_execute_by_default",
}


def _normalize(operation: str) -> str:
    return operation.strip().lower()


@dataclass
class PermissionRequest:
    tool_name: str
    operation: str
    target: str
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tool_name': self.tool_name,
            'operation': self.operation,
            'target': self.target,
            'details': self.details,
        }


class PermissionManager:
    """Authorizes tool operations against settings and host decisions"""

    def __init__(
        self,
        settings: Optional[PermissionSettings] = None,
        events: Optional[EventChannel[Event]] = None,
        timeout: float = PERMISSION_TIMEOUT_SECONDS,
    ):
        self.settings = settings or PermissionSettings()
        self.events = events
        self.timeout = timeout
        self._pending: Dict[str, asyncio.Future] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def check_permission(self, request: PermissionRequest) -> bool:
        operation = _normalize(request.operation)

        if operation in self.settings.always_confirm:
            return await self._request_confirmation(request)

        default_field = OPERATION_DEFAULTS.get(operation)
        if default_field and getattr(self.settings, default_field):
            logger.debug(f"[PermissionManager] Auto-approved {operation} operation: {request.target}")
            return True

        return await self._request_confirmation(request)

    async def _request_confirmation(self, request: PermissionRequest) -> bool:
        if self.events is None:
            logger.warning(f"[PermissionManager] No host attached, denying {request.tool_name} ({request.operation})")
            return False

        alphabet = string.ascii_lowercase + string.digits
        request_id = f"perm-{int(time.time() * 1000)}-{''.join(random.choice(alphabet) for _ in range(9))}"
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        self.events.publish(Event(
            EventType.PERMISSION_REQUEST,
            {'request': {'id': request_id, **request.to_dict()}},
        ))

        try:
            approved = await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.info(f"[PermissionManager] Permission request {request_id} timed out")
            approved = False
        finally:
            self._pending.pop(request_id, None)

        decision = "approved" if approved else "denied"
        logger.debug(f"[PermissionManager] User {decision}: {request.tool_name} - {request.operation} on {request.target}")
        return approved

    def handle_permission_response(self, request_id: str, approved: bool) -> bool:
        """Resolve a suspended request; returns False for unknown or expired ids"""
        future = self._pending.pop(request_id, None)
        if future is None or future.done():
            logger.debug(f"[PermissionManager] Ignoring response for unknown request: {request_id}")
            return False
        future.set_result(bool(approved))
        return True

    def update_settings(self, **updates) -> None:
        self.settings = PermissionSettings(**{**self.settings.model_dump(), **updates})
        logger.debug(f"[PermissionManager] Settings updated: {self.settings.model_dump()}")

    def get_settings(self) -> PermissionSettings:
        return self.settings.model_copy(deep=True)
