"""
Global pytest configuration and fixtures for sidecar backend tests
"""

import os
import sys
from typing import List

import pytest
import pytest_asyncio

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sidecar.agent.llm.base import BaseLLMClient, ContentEvent, UsageEvent
from sidecar.agent.models import TokenUsage

FAKE_PROVIDER = os.path.join(os.path.dirname(__file__), 'sidecar', 'fake_provider.py')


class ScriptedLLMClient(BaseLLMClient):
    """
    LLM client replaying canned responses.

    Each response is a list of text chunks, or an exception instance that is
    raised when the stream is opened.
    """

    def __init__(self, responses: List, usage_per_call: int = 0):
        self.responses = list(responses)
        self.usage_per_call = usage_per_call
        self.calls: List[dict] = []

    async def stream_chat(self, *, messages, system_prompt=None, model=None, max_tokens=None):
        self.calls.append({'messages': [dict(m) for m in messages], 'system_prompt': system_prompt})
        if not self.responses:
            return
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        for chunk in response:
            yield ContentEvent(content=chunk)
        if self.usage_per_call:
            yield UsageEvent(usage=TokenUsage(total_tokens=self.usage_per_call))


@pytest.fixture
def fake_provider_command():
    """argv builder for the fake JSON-RPC provider script"""
    def build(mode: str = "normal"):
        return sys.executable, ["-u", FAKE_PROVIDER, mode]
    return build


@pytest.fixture
def scripted_llm():
    return ScriptedLLMClient


@pytest_asyncio.fixture(autouse=True)
async def cleanup_agent_service():
    """Ensure the global agent service is torn down after each test"""
    yield
    from sidecar.services.agent_service import shutdown_agent_service
    await shutdown_agent_service()


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: tests that spawn provider subprocesses")
