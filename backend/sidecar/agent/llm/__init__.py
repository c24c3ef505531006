"""
Model client abstraction
"""

from .base import BaseLLMClient, ContentEvent, ProviderNotConfigured, StreamEvent, UsageEvent
from .openai_client import OpenAIClientAdapter

__all__ = [
    "BaseLLMClient",
    "ContentEvent",
    "ProviderNotConfigured",
    "StreamEvent",
    "UsageEvent",
    "OpenAIClientAdapter",
]
