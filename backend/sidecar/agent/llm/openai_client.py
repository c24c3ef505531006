from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from ...config import ApiSettings
from ...core.errors import ModelStreamError
from ..models import TokenUsage
from .base import BaseLLMClient, ContentEvent, ProviderNotConfigured, StreamEvent, UsageEvent

logger = logging.getLogger(__name__)


def _max_tokens_param(model: str, max_tokens: int) -> Dict[str, int]:
    # reasoning models reject max_tokens
    if model.startswith(("o1", "o3", "o4", "gpt-5")):
        return {"max_completion_tokens": max_tokens}
    return {"max_tokens": max_tokens}


class OpenAIClientAdapter(BaseLLMClient):
    """Adapter over any OpenAI-compatible chat completions endpoint."""

    def __init__(self, settings: ApiSettings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.api_key:
                raise ProviderNotConfigured("API key is not set (SIDECAR_API_KEY or OPENAI_API_KEY).")
            self._client = AsyncOpenAI(api_key=self.settings.api_key, base_url=self.settings.base_url)
        return self._client

    async def stream_chat(
        self,
        *,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[StreamEvent]:
        client = self._get_client()
        model_name = model or self.settings.model

        conv: List[Dict[str, Any]] = []
        if system_prompt:
            conv.append({"role": "system", "content": system_prompt})
        conv.extend(messages)

        api_params: Dict[str, Any] = {
            "model": model_name,
            "messages": conv,
            "temperature": self.settings.temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        limit = max_tokens or self.settings.max_tokens
        if limit is not None:
            api_params.update(_max_tokens_param(model_name, limit))

        logger.info(f"Starting model stream: model={model_name}, messages={len(conv)}")
        try:
            stream = await client.chat.completions.create(**api_params)

            async for chunk in stream:
                if chunk.usage is not None:
                    yield UsageEvent(usage=TokenUsage(
                        prompt_tokens=chunk.usage.prompt_tokens or 0,
                        completion_tokens=chunk.usage.completion_tokens or 0,
                        total_tokens=chunk.usage.total_tokens or 0,
                    ))
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield ContentEvent(content=content)
        except openai.APIError:
            raise
        except Exception as e:
            logger.error(f"Model stream failed: {e}")
            raise ModelStreamError(f"Model stream failed: {e}") from e
