import pytest

from chatrelay.types import Message


class FakeProvider:
    """Scripted provider that records every request it receives."""

    def __init__(self, replies=None, chunks=None, name="openai", supports_tools=True):
        self.name = name
        self.label = "OpenAI"
        self.default_model = "gpt-4o-mini"
        self.supported_models = [{"id": "gpt-4o-mini", "name": "GPT-4o Mini", "description": "test"}]
        self.supports_tools = supports_tools
        self.replies = list(replies or [])
        self.chunks = list(chunks or [])
        self.calls = []
        self.stream_calls = []

    async def complete(self, params):
        self.calls.append(params)
        return self.replies.pop(0)

    async def stream(self, params):
        self.stream_calls.append(params)
        for chunk in self.chunks:
            yield chunk


@pytest.fixture
def fake_provider():
    """Factory for scripted providers."""
    return FakeProvider


@pytest.fixture
def make_reply():
    """Build a provider reply dictionary."""
    def _make(text="", tool_calls=None, finish_reason="stop", usage=None, model="gpt-4o-mini", citations=None):
        return {
            "text": text,
            "tool_calls": list(tool_calls or []),
            "model": model,
            "usage": usage,
            "finish_reason": finish_reason,
            "citations": list(citations or []),
        }
    return _make


@pytest.fixture
def conversation():
    return [
        Message(role="user", content="Hi there"),
        Message(role="assistant", content="Hello! How can I help?"),
        Message(role="user", content="What is the weather in Prague today?"),
    ]


@pytest.fixture
def search_results():
    return [
        {
            "title": "Prague weather",
            "url": "https://weather.example.com/prague",
            "description": "Sunny, 21 degrees.",
        },
        {
            "title": "Czech forecast",
            "url": "https://news.example.com/forecast",
            "description": "Warm week ahead.",
            "content": "Temperatures will stay above 20 degrees.",
        },
    ]
