import logging
from typing import Dict, Any, List, AsyncIterator, Optional

import openai
from openai import AsyncOpenAI

from ..errors import UpstreamError
from ..types import ModelInfo, ToolCall
from ..utils import messages_to_dicts

logger = logging.getLogger(__name__)

OPENAI_MODELS: List[ModelInfo] = [
    {"id": "gpt-5-2025-08-07", "name": "GPT-5", "description": "Most capable GPT-5 model"},
    {"id": "gpt-5-mini-2025-08-07", "name": "GPT-5 Mini", "description": "Fast GPT-5 variant"},
    {"id": "gpt-5-pro", "name": "GPT-5 Pro", "description": "Extended reasoning, served by the responses endpoint"},
    {"id": "gpt-4o", "name": "GPT-4o", "description": "High-capability general model"},
    {"id": "gpt-4o-mini", "name": "GPT-4o Mini", "description": "Economical general model"},
]


def _usage_dict(usage: Any) -> Optional[Dict[str, Any]]:
    if usage is None:
        return None
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", None),
        "completion_tokens": getattr(usage, "completion_tokens", None),
        "total_tokens": getattr(usage, "total_tokens", None),
    }


def _citations(obj: Any) -> List[Any]:
    # Provider extension field (Perplexity), absent on plain OpenAI replies
    value = getattr(obj, "citations", None)
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


class OpenAIProvider:
    """
    Provider for OpenAI-compatible chat-completion APIs (OpenAI, Perplexity, ...).
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        provider_name: str = "openai",
        *,
        label: str = "OpenAI",
        default_model: str = "gpt-4o-mini",
        supported_models: Optional[List[ModelInfo]] = None,
        supports_tools: bool = True,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            api_key: Credentials for the upstream.
            base_url: Optional API root for OpenAI-compatible backends.
            provider_name: Registry identifier.
            label: Vendor name used in the system prompt.
            default_model: Model used when a request names none.
            supported_models: Models offered to collaborators.
            supports_tools: Whether tool declarations may be sent.
            timeout: Transport timeout in seconds (SDK default when None).
        """
        client_kwargs: Dict[str, Any] = {"api_key": api_key, "base_url": base_url}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self.client = AsyncOpenAI(**client_kwargs) if api_key else None
        self.name = provider_name
        self.label = label
        self.default_model = default_model
        self.supported_models = list(supported_models if supported_models is not None else OPENAI_MODELS)
        self.supports_tools = supports_tools

    def _request_kwargs(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.client:
            raise RuntimeError(f"{self.name.title()} client not configured")
        request_kwargs = {k: v for k, v in params.items() if k != "messages" and v is not None}
        request_kwargs["messages"] = messages_to_dicts(params["messages"])
        return request_kwargs

    def _upstream_error(self, e: Exception) -> UpstreamError:
        return UpstreamError(
            f"{self.label} request failed: {e}",
            provider=self.name,
            status_code=getattr(e, "status_code", None),
        )

    async def complete(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send a chat request using the OpenAI-compatible API.

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
            resp = await self.client.chat.completions.create(**request_kwargs)
        except openai.APIError as e:
            raise self._upstream_error(e) from e

        if not resp.choices:
            logger.warning("%s returned no choices for %s", self.label, params["model"])
            return {
                "text": "",
                "tool_calls": [],
                "model": resp.model or params["model"],
                "usage": _usage_dict(resp.usage),
                "finish_reason": None,
                "citations": _citations(resp),
            }

        choice = resp.choices[0]
        return {
            "text": choice.message.content or "",
            "tool_calls": self._parse_tool_calls(choice),
            "model": resp.model or params["model"],
            "usage": _usage_dict(resp.usage),
            "finish_reason": choice.finish_reason,
            "citations": _citations(resp),
        }

    async def stream(self, params: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream a chat response using the OpenAI-compatible API.

        OpenAI reports usage in a trailing chunk after the one carrying the
        finish reason, so the finish signal is held until that chunk (or the
        end of the stream) and emitted together with the usage.

        Args:
            params (Dict[str, Any]): Parameters from `build_params`.

        Yields:
            Dict[str, Any]: Chunks with optional 'delta', 'citations',
                'finish_reason', 'usage' and 'model'.
        """
        request_kwargs = self._request_kwargs(params)
        request_kwargs["stream"] = True
        request_kwargs["stream_options"] = {"include_usage": True}

        model = params["model"]
        pending_finish: Optional[str] = None

        try:
            stream = await self.client.chat.completions.create(**request_kwargs)
        except openai.APIError as e:
            raise self._upstream_error(e) from e

        try:
            async for chunk in stream:
                model = getattr(chunk, "model", None) or model
                out: Dict[str, Any] = {}

                if chunk.choices:
                    choice = chunk.choices[0]
                    content = choice.delta.content if choice.delta is not None else None
                    if content:
                        out["delta"] = content
                    if choice.finish_reason:
                        pending_finish = choice.finish_reason

                citations = _citations(chunk)
                if citations:
                    out["citations"] = citations

                usage = _usage_dict(getattr(chunk, "usage", None))
                finished = pending_finish is not None and usage is not None
                if finished:
                    out.update(finish_reason=pending_finish, usage=usage, model=model)

                if out:
                    yield out
                if finished:
                    return
        except openai.APIError as e:
            raise self._upstream_error(e) from e
        finally:
            # Releases the HTTP response even when the consumer stops early
            await stream.close()

        if pending_finish is not None:
            yield {"finish_reason": pending_finish, "usage": None, "model": model}

    @staticmethod
    def _parse_tool_calls(choice) -> List[ToolCall]:
        """
        Parse tool calls from an OpenAI response choice.

        Arguments stay JSON-encoded; they are parsed when executed.

        Args:
            choice: The OpenAI API response choice object.

        Returns:
            List[ToolCall]: List of tool calls.
        """
        tool_calls = []
        if getattr(choice.message, "tool_calls", None):
            for tc in choice.message.tool_calls:
                tool_calls.append(ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=tc.function.arguments or "{}",
                ))
        return tool_calls
