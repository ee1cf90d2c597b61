import pytest
from unittest.mock import AsyncMock

from chatrelay.client import ChatEngine
from chatrelay.config import Settings
from chatrelay.errors import ConfigurationError, UpstreamError
from chatrelay.normalize import EMPTY_RESPONSE_PLACEHOLDER
from chatrelay.prompts import WEB_SEARCH_INSTRUCTION
from chatrelay.types import ChatRequest, Citations, ContentDelta, Done, Message, ToolCall, Usage


def web_search_call(call_id="call_1", query="weather Prague"):
    return ToolCall(call_id, "web_search", f'{{"query": "{query}"}}')


class TestChatEngineRouting:

    def test_resolve_provider(self):
        engine = ChatEngine(providers={})

        assert engine.resolve_provider("claude") == "claude"
        assert engine.resolve_provider("Anthropic") == "claude"
        assert engine.resolve_provider("perplexity") == "perplexity"
        assert engine.resolve_provider("mistral") == "openai"
        assert engine.resolve_provider("") == "openai"
        assert engine.resolve_provider(None) == "openai"

    @pytest.mark.asyncio
    async def test_system_prompt_leads_conversation(self, fake_provider, make_reply, conversation):
        provider = fake_provider(replies=[make_reply("It is sunny.")])
        engine = ChatEngine(providers={"openai": provider})

        request = ChatRequest(messages=(Message(role="system", content="be a pirate"), *conversation))
        response = await engine.complete(request)

        sent = provider.calls[0]["messages"]
        assert sent[0].role == "system"
        assert "gpt-4o-mini" in sent[0].content
        assert "be a pirate" not in sent[0].content
        assert sent[1:] == conversation
        assert response.content == "It is sunny."
        assert response.provider == "openai"
        assert request.messages[0].content == "be a pirate"

    @pytest.mark.asyncio
    async def test_unknown_provider_falls_back_to_openai(self, fake_provider, make_reply, conversation):
        provider = fake_provider(replies=[make_reply("ok")])
        engine = ChatEngine(providers={"openai": provider})

        response = await engine.complete(ChatRequest(messages=tuple(conversation), provider="mistral"))

        assert response.provider == "openai"
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self, fake_provider, conversation):
        engine = ChatEngine(providers={"openai": fake_provider()})

        with pytest.raises(ConfigurationError) as exc_info:
            await engine.complete(ChatRequest(messages=tuple(conversation), provider="claude"))

        assert exc_info.value.hint

    @pytest.mark.asyncio
    async def test_requested_model_and_tokens(self, fake_provider, make_reply, conversation):
        provider = fake_provider(replies=[make_reply("ok", model="gpt-5-2025-08-07")])
        engine = ChatEngine(providers={"openai": provider})

        response = await engine.complete(ChatRequest(
            messages=tuple(conversation), model="gpt-5-2025-08-07", use_web_search=True, max_tokens="12000",
        ))

        params = provider.calls[0]
        assert params["model"] == "gpt-5-2025-08-07"
        assert params["max_completion_tokens"] == 4000
        assert "tools" not in params
        assert "temperature" not in params
        assert response.model == "gpt-5-2025-08-07"

    @pytest.mark.asyncio
    async def test_alternate_endpoint(self, fake_provider, conversation):
        provider = fake_provider()
        alternate = AsyncMock()
        alternate.complete.return_value = {
            "text": "Deep answer",
            "model": "gpt-5-pro",
            "usage": {"input_tokens": 3, "output_tokens": 4},
            "finish_reason": "stop",
            "citations": [],
            "tool_calls": [],
        }
        engine = ChatEngine(providers={"openai": provider}, alternate=alternate)

        response = await engine.complete(ChatRequest(messages=tuple(conversation), model="gpt-5-pro", max_tokens=500))

        params = alternate.complete.call_args.args[0]
        assert params["max_output_tokens"] == 500
        assert provider.calls == []
        assert response.content == "Deep answer"
        assert response.usage == Usage(3, 4, 7)

    @pytest.mark.asyncio
    async def test_alternate_endpoint_not_configured(self, fake_provider, conversation):
        engine = ChatEngine(providers={"openai": fake_provider()})

        with pytest.raises(ConfigurationError):
            await engine.complete(ChatRequest(messages=tuple(conversation), model="o3-pro"))

    @pytest.mark.asyncio
    async def test_alternate_model_under_other_provider(self, conversation):
        alternate = AsyncMock()
        alternate.complete.return_value = {
            "text": "Deep answer",
            "model": "gpt-5-pro",
            "usage": None,
            "finish_reason": "stop",
            "citations": [],
            "tool_calls": [],
        }
        engine = ChatEngine(providers={}, alternate=alternate)

        response = await engine.complete(ChatRequest(messages=tuple(conversation), provider="claude", model="gpt-5-pro"))

        system = alternate.complete.call_args.args[0]["messages"][0]
        assert "OpenAI" in system.content
        assert "Anthropic" not in system.content
        assert response.provider == "openai"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("model,provider_kwargs", [
        ("gpt-5-2025-08-07", {}),
        ("sonar-pro", {"name": "perplexity", "supports_tools": False}),
    ])
    async def test_no_web_search_instruction_without_tool(
        self, fake_provider, make_reply, conversation, model, provider_kwargs
    ):
        provider = fake_provider(replies=[make_reply("ok")], **provider_kwargs)
        engine = ChatEngine(providers={provider.name: provider})

        await engine.complete(ChatRequest(
            messages=tuple(conversation), provider=provider.name, model=model, use_web_search=True,
        ))

        params = provider.calls[0]
        assert "tools" not in params
        assert WEB_SEARCH_INSTRUCTION not in params["messages"][0].content

    @pytest.mark.asyncio
    async def test_web_search_instruction_with_tool(self, fake_provider, make_reply, conversation):
        provider = fake_provider(replies=[make_reply("ok")])
        engine = ChatEngine(providers={"openai": provider})

        await engine.complete(ChatRequest(messages=tuple(conversation), use_web_search=True))

        params = provider.calls[0]
        assert "tools" in params
        assert WEB_SEARCH_INSTRUCTION in params["messages"][0].content

    def test_list_models(self, fake_provider):
        engine = ChatEngine(providers={"openai": fake_provider()})

        assert [m["id"] for m in engine.list_models("openai")] == ["gpt-4o-mini"]
        with pytest.raises(ConfigurationError):
            engine.list_models("claude")


class TestChatEngineComplete:

    @pytest.mark.asyncio
    async def test_tool_loop(self, fake_provider, make_reply, conversation, search_results):
        search = AsyncMock(return_value=search_results)
        provider = fake_provider(replies=[
            make_reply("", tool_calls=[web_search_call()], finish_reason="tool_calls",
                       usage={"prompt_tokens": 50, "completion_tokens": 10, "total_tokens": 60}),
            make_reply("Sunny, 21 degrees.", usage={"prompt_tokens": 120, "completion_tokens": 15, "total_tokens": 135}),
        ])
        engine = ChatEngine(providers={"openai": provider}, search=search)

        response = await engine.complete(ChatRequest(messages=tuple(conversation), use_web_search=True))

        assert len(provider.calls) == 2
        assert provider.calls[0]["tools"][0]["function"]["name"] == "web_search"
        assert "tools" not in provider.calls[1]
        followup = provider.calls[1]["messages"]
        assert followup[-2].tool_calls == (web_search_call(),)
        assert followup[-1].role == "tool"
        assert followup[-1].tool_call_id == "call_1"
        assert "Prague weather" in followup[-1].content
        search.assert_awaited_once_with("weather Prague", 5)
        assert response.content == "Sunny, 21 degrees."
        assert response.usage == Usage(170, 25, 195)
        assert response.tool_calls_executed == 1

    @pytest.mark.asyncio
    async def test_empty_reply_placeholder(self, fake_provider, make_reply, conversation):
        provider = fake_provider(replies=[make_reply("   ", finish_reason="length")])
        engine = ChatEngine(providers={"openai": provider})

        response = await engine.complete(ChatRequest(messages=tuple(conversation)))

        assert response.content == EMPTY_RESPONSE_PLACEHOLDER
        assert response.finish_reason == "length"

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self, conversation):
        provider = AsyncMock()
        provider.default_model = "gpt-4o-mini"
        provider.supports_tools = True
        provider.complete.side_effect = UpstreamError("boom", provider="openai", status_code=500)
        engine = ChatEngine(providers={"openai": provider})

        with pytest.raises(UpstreamError) as exc_info:
            await engine.complete(ChatRequest(messages=tuple(conversation)))

        assert exc_info.value.status_code == 500


class TestChatEngineStream:

    @pytest.mark.asyncio
    async def test_direct_stream(self, fake_provider, conversation):
        provider = fake_provider(chunks=[
            {"delta": "Hello"},
            {"delta": " world"},
            {"finish_reason": "stop", "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7}},
        ])
        engine = ChatEngine(providers={"openai": provider})

        events = [e async for e in engine.stream(ChatRequest(messages=tuple(conversation)))]

        assert provider.calls == []
        assert events == [
            ContentDelta("Hello"),
            ContentDelta(" world"),
            Done("stop", Usage(5, 2, 7), "gpt-4o-mini"),
        ]

    @pytest.mark.asyncio
    async def test_stream_after_tool_calls(self, fake_provider, make_reply, conversation, search_results):
        search = AsyncMock(return_value=search_results)
        provider = fake_provider(
            replies=[make_reply("", tool_calls=[web_search_call()], finish_reason="tool_calls",
                                usage={"prompt_tokens": 50, "completion_tokens": 10, "total_tokens": 60})],
            chunks=[
                {"delta": "Sunny."},
                {"finish_reason": "stop", "usage": {"prompt_tokens": 100, "completion_tokens": 5, "total_tokens": 105}},
            ],
        )
        engine = ChatEngine(providers={"openai": provider}, search=search)

        events = [e async for e in engine.stream(ChatRequest(messages=tuple(conversation), use_web_search=True))]

        assert len(provider.calls) == 1
        assert "tools" not in provider.stream_calls[0]
        assert provider.stream_calls[0]["messages"][-1].role == "tool"
        assert events == [ContentDelta("Sunny."), Done("stop", Usage(150, 15, 165), "gpt-4o-mini")]

    @pytest.mark.asyncio
    async def test_stream_with_tools_but_no_calls(self, fake_provider, make_reply, conversation):
        provider = fake_provider(replies=[make_reply("Hi!", usage={"prompt_tokens": 3, "completion_tokens": 1})])
        engine = ChatEngine(providers={"openai": provider})

        events = [e async for e in engine.stream(ChatRequest(messages=tuple(conversation), use_web_search=True))]

        assert provider.stream_calls == []
        assert events == [ContentDelta("Hi!"), Done("stop", Usage(3, 1, 4), "gpt-4o-mini")]

    @pytest.mark.asyncio
    async def test_alternate_replay(self, fake_provider, conversation):
        alternate = AsyncMock()
        alternate.complete.return_value = {
            "text": "Long answer",
            "model": "gpt-5-pro",
            "usage": None,
            "finish_reason": "stop",
            "citations": ["https://a.example"],
            "tool_calls": [],
        }
        engine = ChatEngine(providers={"openai": fake_provider()}, alternate=alternate)

        events = [e async for e in engine.stream(ChatRequest(messages=tuple(conversation), model="gpt-5-pro"))]

        assert events == [
            ContentDelta("Long answer"),
            Citations(("https://a.example",)),
            Done("stop", Usage(), "gpt-5-pro"),
        ]


class TestChatRequest:

    def test_from_dict(self):
        request = ChatRequest.from_dict({
            "messages": [{"role": "user", "content": "hi"}],
            "provider": "claude",
            "responseStyle": "detailed",
            "useWebSearch": True,
            "maxTokens": "2048",
        })

        assert request.messages == (Message(role="user", content="hi"),)
        assert request.provider == "claude"
        assert request.model is None
        assert request.response_style == "detailed"
        assert request.use_web_search is True
        assert request.max_tokens == "2048"

    def test_defaults(self):
        request = ChatRequest.from_dict({"messages": []})

        assert request.provider == "openai"
        assert request.response_style == "concise"
        assert request.use_web_search is False

    @pytest.mark.parametrize("value,expected", [
        ("false", False),
        ("False", False),
        ("0", False),
        ("", False),
        ("true", True),
        ("yes", True),
        (1, True),
        (True, True),
        (None, False),
    ])
    def test_web_search_flag_parsing(self, value, expected):
        request = ChatRequest.from_dict({"messages": [], "useWebSearch": value})

        assert request.use_web_search is expected


class TestChatEngineConstruction:

    def test_alternate_built_from_openai_key(self, fake_provider):
        engine = ChatEngine(Settings(openai_api_key="sk-test"), providers={"openai": fake_provider()})

        assert engine.alternate is not None
        assert engine.alternate.name == "openai"

    def test_no_alternate_without_key(self, fake_provider):
        engine = ChatEngine(providers={"openai": fake_provider()})

        assert engine.alternate is None
