"""
JSON-RPC Protocol Definition for sidecar tool providers
Line-delimited JSON-RPC 2.0: one compact JSON object per line over stdio
"""

import codecs
import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .errors import ProtocolError

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


class ErrorCode(Enum):
    """Standard JSON-RPC error codes"""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class MessageKind(Enum):
    """Classification of a decoded inbound message"""
    RESPONSE = "response"
    NOTIFICATION = "notification"
    REQUEST = "request"
    INVALID = "invalid"


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request structure"""
    jsonrpc: str = Field(default=JSONRPC_VERSION, description="JSON-RPC version")
    id: int = Field(..., description="Request identifier")
    method: str = Field(..., description="Method name")
    params: Optional[Union[Dict[str, Any], List[Any]]] = Field(default=None, description="Method parameters")

    @field_validator('jsonrpc')
    @classmethod
    def validate_jsonrpc(cls, v):
        if v != JSONRPC_VERSION:
            raise ValueError("Only JSON-RPC 2.0 is supported")
        return v

    @field_validator('method')
    @classmethod
    def validate_method(cls, v):
        if not v or not isinstance(v, str):
            raise ValueError("Method must be a non-empty string")
        return v


class JsonRpcNotification(BaseModel):
    """JSON-RPC 2.0 notification (no id, no response expected)"""
    jsonrpc: str = Field(default=JSONRPC_VERSION, description="JSON-RPC version")
    method: str = Field(..., description="Method name")
    params: Optional[Union[Dict[str, Any], List[Any]]] = Field(default=None, description="Method parameters")

    @field_validator('jsonrpc')
    @classmethod
    def validate_jsonrpc(cls, v):
        if v != JSONRPC_VERSION:
            raise ValueError("Only JSON-RPC 2.0 is supported")
        return v


class JsonRpcError(BaseModel):
    """Error member of a JSON-RPC response"""
    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response structure"""
    jsonrpc: str = Field(default=JSONRPC_VERSION, description="JSON-RPC version")
    id: Optional[Union[str, int]] = Field(..., description="Request identifier")
    result: Optional[Any] = Field(default=None, description="Method result")
    error: Optional[JsonRpcError] = Field(default=None, description="Error information")

    def is_error(self) -> bool:
        return self.error is not None

    def error_message(self) -> Optional[str]:
        return self.error.message if self.error is not None else None

    def to_exception(self) -> ProtocolError:
        """Convert the error member into a ProtocolError carrying its message"""
        if self.error is None:
            raise ValueError("Response does not carry an error")
        return ProtocolError(self.error.message, code=self.error.code, data=self.error.data)


def encode_message(message: BaseModel) -> bytes:
    """Serialize a protocol model to a single newline-terminated line"""
    payload = message.model_dump(exclude_none=True)
    return (json.dumps(payload, separators=(',', ':'), default=str) + "\n").encode('utf-8')


def classify_message(message: Any) -> MessageKind:
    """Decide whether an inbound object is a response, notification or request"""
    if not isinstance(message, dict):
        return MessageKind.INVALID
    message_id = message.get('id')
    # ids are strings or numbers; bool is an int subclass but not a valid id
    if message_id is not None and (isinstance(message_id, bool) or not isinstance(message_id, (int, str))):
        return MessageKind.INVALID
    has_id = message_id is not None
    has_method = isinstance(message.get('method'), str)
    if has_id and has_method:
        return MessageKind.REQUEST
    if has_id and ('result' in message or 'error' in message):
        return MessageKind.RESPONSE
    if has_method:
        return MessageKind.NOTIFICATION
    return MessageKind.INVALID


def parse_response(message: Dict[str, Any]) -> JsonRpcResponse:
    """Validate a response object, raising ProtocolError when malformed"""
    try:
        return JsonRpcResponse.model_validate(message)
    except Exception as e:
        raise ProtocolError(
            f"Invalid JSON-RPC response: {e}",
            code=ErrorCode.INVALID_REQUEST.value,
        ) from e


class LineDecoder:
    """
    Incremental decoder for newline-delimited JSON.

    Bytes may arrive in arbitrary pieces; the trailing partial line is kept
    until its newline shows up. Undecodable lines are logged and skipped.
    """

    def __init__(self, name: str = "provider"):
        self.name = name
        self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._buffer = ""

    @property
    def pending(self) -> int:
        """Number of characters buffered without a terminating newline"""
        return len(self._buffer)

    def feed(self, data: Union[bytes, str]) -> List[Dict[str, Any]]:
        if isinstance(data, bytes):
            text = self._decoder.decode(data)
        else:
            text = data
        self._buffer += text

        messages: List[Dict[str, Any]] = []
        while True:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline].strip()
            self._buffer = self._buffer[newline + 1:]
            if not line:
                continue
            try:
                decoded = json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"[{self.name}] Failed to parse message: {line[:200]}")
                continue
            if not isinstance(decoded, dict):
                logger.debug(f"[{self.name}] Ignoring non-object message: {line[:200]}")
                continue
            messages.append(decoded)
        return messages

    def reset(self) -> None:
        self._decoder.reset()
        self._buffer = ""
