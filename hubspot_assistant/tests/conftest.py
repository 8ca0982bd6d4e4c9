"""Shared fixtures: fake model and fake command executor."""

import pytest

from hubspot_assistant.config import Settings
from hubspot_assistant.services.pipeline import ChatPipeline


class FakeLLM:
    """Returns canned replies in order; exceptions in the list are raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, messages):
        self.calls.append(messages)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def close(self):
        pass


class FakeExecutor:
    """Records commands instead of sending them."""

    def __init__(self, result=None, error=None):
        self.result = result if result is not None else {"id": "101"}
        self.error = error
        self.sent = []
        self.urls = []
        self.connected = False

    async def connect(self):
        self.connected = True

    async def send(self, name, payload, retry=False):
        self.sent.append((name, payload, retry))
        if self.error is not None:
            raise self.error
        return self.result

    async def reconfigure(self, url):
        self.urls.append(url)

    async def close(self):
        self.connected = False


@pytest.fixture
def settings():
    return Settings(
        openai_api_key="sk-test",
        server_name="@shinzo-labs/hubspot-mcp",
        profile_id="profile-1",
        smithery_api_key="smithery-secret",
    )


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def make_pipeline(settings, executor):
    """Build a pipeline around a FakeLLM answering with ``replies``."""
    def _make(*replies, history=None):
        return ChatPipeline(FakeLLM(*replies), executor, settings=settings, history=history)
    return _make
