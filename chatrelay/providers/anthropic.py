import json
import logging
from typing import Dict, Any, List, AsyncIterator, Optional, Tuple

import anthropic
from anthropic import AsyncAnthropic

from ..errors import UpstreamError
from ..search import WEB_SEARCH_TOOL, WEB_SEARCH_TOOL_NAME
from ..types import Message, ModelInfo, ToolCall
from ..utils import create_tool

logger = logging.getLogger(__name__)

CLAUDE_MODELS: List[ModelInfo] = [
    {"id": "claude-sonnet-4-5", "name": "Claude Sonnet 4.5", "description": "Capable general model"},
]

# Anthropic stop_reason -> chat-completion finish_reason
STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}


def _finish_reason(stop_reason: Optional[str]) -> Optional[str]:
    if stop_reason is None:
        return None
    return STOP_REASONS.get(stop_reason, stop_reason)


def _usage_dict(usage: Any) -> Optional[Dict[str, Any]]:
    if usage is None:
        return None
    return {
        "prompt_tokens": getattr(usage, "input_tokens", None),
        "completion_tokens": getattr(usage, "output_tokens", None),
    }


class AnthropicProvider:
    """
    Provider for Anthropic (Claude) API.
    """

    name = "claude"
    label = "Anthropic"
    default_model = "claude-sonnet-4-5"
    supports_tools = True

    def __init__(self, api_key: Optional[str], timeout: Optional[float] = None):
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self.client = AsyncAnthropic(**client_kwargs) if api_key else None
        self.supported_models = list(CLAUDE_MODELS)

    def _request_kwargs(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Translate builder parameters into a Messages API request.

        - System messages move to the top-level `system` parameter.
        - `max_completion_tokens` and `max_tokens` both map to `max_tokens`.
        - Tools are converted to `input_schema` declarations.
        - Tools named in the history are declared with tool_choice "none"
          when the request itself offers none.
        """
        if not self.client:
            raise RuntimeError("Claude (Anthropic) client not configured")

        system_text, converted_messages = self._convert_messages(params["messages"])

        request_kwargs: Dict[str, Any] = {
            "model": params["model"],
            "messages": converted_messages,
            "max_tokens": params.get("max_tokens") or params.get("max_completion_tokens"),
        }

        optional_params = {
            "system": system_text,
            "temperature": params.get("temperature"),
        }
        request_kwargs.update({k: v for k, v in optional_params.items() if v is not None})

        if params.get("tools"):
            request_kwargs["tools"] = self._convert_tools(params["tools"])
            if params.get("tool_choice") == "auto":
                request_kwargs["tool_choice"] = {"type": "auto"}
        else:
            history_tools = self._history_tools(converted_messages)
            if history_tools:
                # A history with tool_use blocks must declare those tools, even
                # when no further calls are allowed.
                request_kwargs["tools"] = self._convert_tools(history_tools)
                request_kwargs["tool_choice"] = {"type": "none"}

        return request_kwargs

    @staticmethod
    def _history_tools(converted_messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Declarations for every tool named by a `tool_use` block in the history.

        `web_search` keeps its real schema; other names get an open object schema.
        """
        names: List[str] = []
        for msg in converted_messages:
            if not isinstance(msg["content"], list):
                continue
            for block in msg["content"]:
                if block.get("type") == "tool_use" and block["name"] not in names:
                    names.append(block["name"])

        tools = []
        for name in names:
            if name == WEB_SEARCH_TOOL_NAME:
                tools.append(WEB_SEARCH_TOOL)
            else:
                tools.append(create_tool(name, f"The {name} tool.", {}))
        return tools

    def _upstream_error(self, e: Exception) -> UpstreamError:
        return UpstreamError(
            f"{self.label} request failed: {e}",
            provider=self.name,
            status_code=getattr(e, "status_code", None),
        )

    async def complete(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send a chat request to the Claude API.

        Args:
            params (Dict[str, Any]): Parameters from `build_params`.

        Returns:
            Dict[str, Any]: Reply with 'text', 'tool_calls', 'model', 'usage',
                'finish_reason' and 'citations'.

        Raises:
            UpstreamError: If the API call fails.
        """
        request_kwargs = self._request_kwargs(params)

        try:
            resp = await self.client.messages.create(**request_kwargs)
        except anthropic.APIError as e:
            raise self._upstream_error(e) from e

        text = "".join(
            block.text for block in resp.content if getattr(block, "type", None) == "text"
        )

        return {
            "text": text,
            "tool_calls": self._parse_tool_calls(resp),
            "model": resp.model or params["model"],
            "usage": _usage_dict(resp.usage),
            "finish_reason": _finish_reason(resp.stop_reason),
            "citations": [],
        }

    async def stream(self, params: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream a chat response from Claude.

        Args:
            params (Dict[str, Any]): Parameters from `build_params`.

        Yields:
            Dict[str, Any]: Chunks with 'delta' for text, then one final chunk
                with 'finish_reason', 'usage' and 'model'.
        """
        request_kwargs = self._request_kwargs(params)

        try:
            async with self.client.messages.stream(**request_kwargs) as stream:
                async for event in stream:
                    if (
                        event.type == "content_block_delta"
                        and getattr(event.delta, "type", None) == "text_delta"
                    ):
                        piece = event.delta.text
                        if piece:
                            yield {"delta": piece}

                final_msg = await stream.get_final_message()
        except anthropic.APIError as e:
            raise self._upstream_error(e) from e

        yield {
            "finish_reason": _finish_reason(final_msg.stop_reason) or "stop",
            "usage": _usage_dict(final_msg.usage),
            "model": final_msg.model or params["model"],
        }

    @staticmethod
    def _convert_messages(
        messages: List[Message],
    ) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """
        Convert messages to Claude format.

        Anthropic's API differs from OpenAI's in that:
        - 'system' messages are passed as a separate top-level parameter;
        - assistant tool calls are `tool_use` content blocks;
        - tool results are `tool_result` blocks inside a user message, and all
          results answering one assistant turn share that message.

        Args:
            messages (List[Message]): Internal message list.

        Returns:
            Tuple containing:
            - system_text: Joined system prompt (or None)
            - converted: List of message dicts suitable for the API
        """
        system_parts = []
        converted: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                if msg.content:
                    system_parts.append(msg.content)
                continue

            if msg.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id or "",
                    "content": msg.content,
                }
                previous = converted[-1] if converted else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    converted.append({"role": "user", "content": [block]})
                continue

            if msg.role == "assistant" and msg.tool_calls:
                blocks: List[Dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    try:
                        tool_input = json.loads(tc.arguments or "{}")
                    except json.JSONDecodeError:
                        tool_input = {}
                    if not isinstance(tool_input, dict):
                        tool_input = {}
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tool_input,
                    })
                converted.append({"role": "assistant", "content": blocks})
                continue

            converted.append({"role": msg.role, "content": msg.content})

        system_text = "\n\n".join(system_parts) if system_parts else None
        return system_text, converted

    @staticmethod
    def _convert_tools(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Convert OpenAI-format tools to Claude format.

        Claude uses 'input_schema' instead of 'parameters'.
        """
        claude_tools = []
        for tool in tools:
            func = tool.get("function", {})
            claude_tools.append({
                "name": func.get("name", ""),
                "description": func.get("description", ""),
                "input_schema": func.get("parameters", {"type": "object", "properties": {}}),
            })
        return claude_tools

    @staticmethod
    def _parse_tool_calls(response) -> List[ToolCall]:
        """
        Extract tool use blocks from a Claude response.

        Claude hands back parsed input objects; they are re-encoded to JSON so
        every provider yields the same ToolCall shape.
        """
        tool_calls = []
        for block in response.content:
            if getattr(block, "type", None) == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=json.dumps(block.input),
                ))
        return tool_calls
