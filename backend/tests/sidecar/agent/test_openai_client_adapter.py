"""
Tests for the OpenAI-compatible streaming adapter
"""

from types import SimpleNamespace

import httpx
import openai
import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from sidecar.agent.llm.base import ContentEvent, ProviderNotConfigured, UsageEvent
from sidecar.agent.llm.openai_client import OpenAIClientAdapter
from sidecar.config import ApiSettings
from sidecar.core.errors import ModelStreamError

pytestmark = pytest.mark.asyncio


def content_chunk(text):
    return SimpleNamespace(usage=None, choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


def usage_chunk(total):
    return SimpleNamespace(
        usage=SimpleNamespace(prompt_tokens=1, completion_tokens=total - 1, total_tokens=total),
        choices=[],
    )


class FakeStream:
    """Async iterator over chunks; an exception entry is raised in place"""

    def __init__(self, items):
        self.items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.items:
            raise StopAsyncIteration
        item = self.items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class FakeOpenAI:
    def __init__(self, items=None, create_error=None):
        self.items = items or []
        self.create_error = create_error
        self.params = None
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **params):
        self.params = params
        if self.create_error is not None:
            raise self.create_error
        return FakeStream(self.items)


async def collect(adapter, **kwargs):
    return [event async for event in adapter.stream_chat(messages=[{"role": "user", "content": "hi"}], **kwargs)]


class TestOpenAIClientAdapter:
    """Chunk translation and error wrapping"""

    async def test_content_and_usage_events(self):
        fake = FakeOpenAI([content_chunk("Hel"), content_chunk(None), content_chunk("lo"), usage_chunk(7)])
        adapter = OpenAIClientAdapter(ApiSettings(model="gpt-4o-mini"), client=fake)

        events = await collect(adapter, system_prompt="be brief")

        assert [e.content for e in events if isinstance(e, ContentEvent)] == ["Hel", "lo"]
        usage = [e.usage for e in events if isinstance(e, UsageEvent)]
        assert usage[0].total_tokens == 7
        assert fake.params["messages"][0] == {"role": "system", "content": "be brief"}
        assert fake.params["stream"] is True

    async def test_reasoning_models_get_completion_token_limit(self):
        fake = FakeOpenAI([])
        adapter = OpenAIClientAdapter(ApiSettings(model="o3-mini", max_tokens=100), client=fake)

        await collect(adapter)

        assert fake.params["max_completion_tokens"] == 100
        assert "max_tokens" not in fake.params

    async def test_stream_breaking_midway_raises_model_stream_error(self):
        fake = FakeOpenAI([content_chunk("partial"), RuntimeError("socket closed")])
        adapter = OpenAIClientAdapter(ApiSettings(), client=fake)

        received = []
        with pytest.raises(ModelStreamError) as exc_info:
            async for event in adapter.stream_chat(messages=[]):
                received.append(event)

        assert [e.content for e in received] == ["partial"]
        assert "socket closed" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_api_errors_pass_through(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://example.invalid/v1"))
        adapter = OpenAIClientAdapter(ApiSettings(), client=FakeOpenAI(create_error=error))

        with pytest.raises(openai.APIConnectionError):
            await collect(adapter)

    async def test_missing_api_key(self):
        adapter = OpenAIClientAdapter(ApiSettings(api_key=None))

        with pytest.raises(ProviderNotConfigured):
            await collect(adapter)
