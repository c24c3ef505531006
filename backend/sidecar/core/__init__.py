"""
Core infrastructure: error taxonomy, JSON-RPC wire layer and event channels
"""

from .errors import (
    SidecarError,
    ProviderConnectionError,
    ProviderNotConnectedError,
    ProviderDisconnectedError,
    ProviderConfigError,
    ProtocolError,
    RequestTimeoutError,
    ToolNotFoundError,
    PermissionDeniedError,
    ModelStreamError,
    LoopLimitExceeded,
)
from .events import Event, EventChannel, EventType

__all__ = [
    "SidecarError",
    "ProviderConnectionError",
    "ProviderNotConnectedError",
    "ProviderDisconnectedError",
    "ProviderConfigError",
    "ProtocolError",
    "RequestTimeoutError",
    "ToolNotFoundError",
    "PermissionDeniedError",
    "ModelStreamError",
    "LoopLimitExceeded",
    "Event",
    "EventChannel",
    "EventType",
]
