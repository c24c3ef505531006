"""
Error taxonomy for the sidecar agent runtime

Provider-level errors stay confined to the provider session that raised them,
tool errors are folded back into conversation history, and task-level errors
go through the recovery policy.
"""

from typing import Any, Optional


class SidecarError(Exception):
    """Base class for all sidecar runtime errors"""


class ProviderConnectionError(SidecarError, ConnectionError):
    """Provider subprocess failed to start or exited before the handshake finished"""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics


class ProviderNotConnectedError(ProviderConnectionError):
    """Operation requires a connected provider session"""


class ProviderDisconnectedError(ProviderConnectionError):
    """Pending request was abandoned because the client disconnected"""


class ProviderConfigError(SidecarError, ValueError):
    """Unknown provider id, disabled provider, or duplicate installation"""


class ProtocolError(SidecarError):
    """Malformed or error-carrying JSON-RPC message"""

    def __init__(self, message: str, code: int = -32603, data: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        result = {'code': self.code, 'message': self.message}
        if self.data is not None:
            result['data'] = self.data
        return result


class RequestTimeoutError(SidecarError, TimeoutError):
    """No response arrived within the request budget"""

    def __init__(self, method: str, timeout: float):
        super().__init__(f"Request timeout: {method} (no response after {timeout:g}s)")
        self.method = method
        self.timeout = timeout


class ToolNotFoundError(SidecarError, LookupError):
    """Tool name does not resolve to a registered or discovered tool"""

    def __init__(self, tool_name: str, where: Optional[str] = None):
        message = f"Tool {tool_name} not found"
        if where:
            message += f" on {where}"
        super().__init__(message)
        self.tool_name = tool_name


class PermissionDeniedError(SidecarError, PermissionError):
    """User (or the permission timeout) denied a tool operation"""

    def __init__(self, tool_name: str, operation: str, target: str = ""):
        message = f"Permission denied: {tool_name} ({operation})"
        if target:
            message += f" on {target}"
        super().__init__(message)
        self.tool_name = tool_name
        self.operation = operation
        self.target = target


class ModelStreamError(SidecarError):
    """Model stream failed to open or broke while streaming"""


class LoopLimitExceeded(SidecarError):
    """Iteration cap reached; recorded as the task error, never raised out of a task"""

    def __init__(self, max_loop_count: int):
        super().__init__(f"Maximum loop count reached ({max_loop_count})")
        self.max_loop_count = max_loop_count
