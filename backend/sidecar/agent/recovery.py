"""
Recovery policy for failures during a model turn

Transport and protocol failures get one retry after a fixed delay with the
same conversation state. Everything else, and a failed retry, ends the
task with an error notice.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

import openai

from ..config import MAX_RECOVERY_RETRIES, RECOVERY_DELAY_SECONDS
from ..core.errors import (
    LoopLimitExceeded,
    ModelStreamError,
    PermissionDeniedError,
    ProtocolError,
    ToolNotFoundError,
)

logger = logging.getLogger(__name__)


class FailureKind(Enum):
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    TOOL_NOT_FOUND = "tool_not_found"
    PERMISSION_DENIED = "permission_denied"
    LOOP_LIMIT = "loop_limit"
    UNKNOWN = "unknown"


RETRYABLE = (FailureKind.TRANSPORT, FailureKind.PROTOCOL)


@dataclass
class RecoveryDecision:
    kind: FailureKind
    retry: bool
    delay: float
    message: str


class RecoveryPolicy:
    def __init__(self, max_retries: int = MAX_RECOVERY_RETRIES, retry_delay: float = RECOVERY_DELAY_SECONDS):
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def classify(self, exc: BaseException) -> FailureKind:
        if isinstance(exc, LoopLimitExceeded):
            return FailureKind.LOOP_LIMIT
        if isinstance(exc, ToolNotFoundError):
            return FailureKind.TOOL_NOT_FOUND
        if isinstance(exc, PermissionDeniedError):
            return FailureKind.PERMISSION_DENIED
        if isinstance(exc, (ProtocolError, openai.APIResponseValidationError)):
            return FailureKind.PROTOCOL
        if isinstance(exc, openai.APIStatusError):
            if exc.status_code == 429 or exc.status_code >= 500:
                return FailureKind.TRANSPORT
            return FailureKind.UNKNOWN
        # APITimeoutError is an APIConnectionError
        if isinstance(exc, (openai.APIConnectionError, ModelStreamError, TimeoutError, asyncio.TimeoutError, ConnectionError)):
            return FailureKind.TRANSPORT
        return FailureKind.UNKNOWN

    def decide(self, exc: BaseException, attempt: int) -> RecoveryDecision:
        """``attempt`` is the number of retries already made for this turn"""
        kind = self.classify(exc)
        retry = kind in RETRYABLE and attempt < self.max_retries
        message = self._user_message(kind, exc)
        if retry:
            logger.info(f"[RecoveryPolicy] {kind.value} failure, retrying in {self.retry_delay:g}s: {exc}")
        else:
            logger.error(f"[RecoveryPolicy] {kind.value} failure, giving up after {attempt} retries: {exc}")
        return RecoveryDecision(kind=kind, retry=retry, delay=self.retry_delay if retry else 0.0, message=message)

    @staticmethod
    def _user_message(kind: FailureKind, exc: BaseException) -> str:
        detail = str(exc) or exc.__class__.__name__
        if kind is FailureKind.TRANSPORT:
            return f"Network error while talking to the model: {detail}"
        if kind is FailureKind.PROTOCOL:
            return f"Unexpected response from the model: {detail}"
        if kind is FailureKind.TOOL_NOT_FOUND:
            return f"Tool not available: {detail}"
        if kind is FailureKind.PERMISSION_DENIED:
            return detail
        if kind is FailureKind.LOOP_LIMIT:
            return detail
        return f"Task failed: {detail}"
