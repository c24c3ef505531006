from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from ..models import TokenUsage


class ProviderNotConfigured(Exception):
    """Raised when the model endpoint is not properly configured (e.g., missing API key)."""


@dataclass
class ContentEvent:
    """A fragment of streamed response text"""
    content: str
    type: str = "content"


@dataclass
class UsageEvent:
    """Token accounting reported at the end of a stream"""
    usage: TokenUsage
    type: str = "usage"


StreamEvent = Union[ContentEvent, UsageEvent]


class BaseLLMClient(ABC):
    """Minimal provider-agnostic interface for streamed chat completions.

    Tool calls are expressed as markup inside the response text and parsed
    by the agent loop, so implementations only stream text and usage.
    """

    @abstractmethod
    def stream_chat(
        self,
        *,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Return an async iterator of content and usage events."""
        raise NotImplementedError
