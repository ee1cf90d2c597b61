import json

import pytest
from unittest.mock import AsyncMock

from chatrelay.search import MAX_RESULTS_LIMIT, execute_web_search, format_search_results
from chatrelay.types import ToolCall


def search_call(arguments, call_id="call_1"):
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return ToolCall(id=call_id, name="web_search", arguments=arguments)


class TestFormatSearchResults:

    def test_lists_results_in_order(self, search_results):
        text = format_search_results("prague weather", search_results)

        assert 'Search results for "prague weather"' in text
        assert text.index("1. Prague weather") < text.index("2. Czech forecast")
        assert "https://weather.example.com/prague" in text
        assert "Content: Temperatures will stay above 20 degrees." in text

    def test_empty_results_still_rendered(self):
        text = format_search_results("nothing here", [])
        assert text
        assert "nothing here" in text

    def test_bounded(self):
        results = [
            {"title": f"T{i}", "url": f"https://e.com/{i}", "description": "d" * 500, "content": "c" * 5000}
            for i in range(20)
        ]
        text = format_search_results("q", results, max_chars=2000)
        assert len(text) <= 2000
        assert text.endswith("[truncated]")

    def test_malformed_hits_tolerated(self):
        results = [
            None,
            {"title": "Numbers", "content": 123},
            {"title": "Parts", "content": ["a", "b"], "url": None},
        ]

        text = format_search_results("q", results)

        assert "1. Numbers" in text
        assert "Content: 123" in text
        assert "2. Parts" in text
        assert 'Content: ["a", "b"]' in text
        assert "URL:" not in text

    def test_only_malformed_hits(self):
        assert format_search_results("q", [None, "oops"]) == 'No search results found for "q".'


class TestExecuteWebSearch:

    @pytest.mark.asyncio
    async def test_success(self, search_results):
        search = AsyncMock(return_value=search_results)

        msg = await execute_web_search(search_call({"query": "prague weather"}), search, max_results=3)

        search.assert_awaited_once_with("prague weather", 3)
        assert msg.role == "tool"
        assert msg.tool_call_id == "call_1"
        assert "Prague weather" in msg.content

    @pytest.mark.asyncio
    async def test_max_results_from_arguments_clamped(self):
        search = AsyncMock(return_value=[])

        await execute_web_search(search_call({"query": "q", "max_results": 50}), search)
        search.assert_awaited_once_with("q", MAX_RESULTS_LIMIT)

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        search = AsyncMock()

        msg = await execute_web_search(search_call("{not json"), search)

        search.assert_not_awaited()
        assert msg.role == "tool"
        assert msg.tool_call_id == "call_1"
        assert msg.content.startswith("Error")

    @pytest.mark.asyncio
    async def test_missing_query(self):
        msg = await execute_web_search(search_call({"max_results": 2}), AsyncMock())
        assert "query" in msg.content

    @pytest.mark.asyncio
    async def test_search_failure_becomes_text(self):
        search = AsyncMock(side_effect=RuntimeError("search backend down"))

        msg = await execute_web_search(search_call({"query": "q"}), search)

        assert "search backend down" in msg.content
        assert msg.tool_call_id == "call_1"

    @pytest.mark.asyncio
    async def test_no_search_capability(self):
        msg = await execute_web_search(search_call({"query": "q"}), None)
        assert msg.content.startswith("Error")

    @pytest.mark.asyncio
    async def test_malformed_hits_do_not_raise(self):
        search = AsyncMock(return_value=[None, {"title": "Ok", "content": 123}])

        msg = await execute_web_search(search_call({"query": "q"}), search)

        assert msg.tool_call_id == "call_1"
        assert "1. Ok" in msg.content

    @pytest.mark.asyncio
    async def test_unusable_search_payload_becomes_text(self):
        search = AsyncMock(return_value=42)

        msg = await execute_web_search(search_call({"query": "q"}), search)

        assert msg.tool_call_id == "call_1"
        assert msg.content.startswith('Error: web search for "q" failed')
