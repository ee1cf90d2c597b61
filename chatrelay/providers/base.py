from typing import Any, AsyncIterator, Dict, List, Protocol, runtime_checkable

from ..types import ModelInfo


@runtime_checkable
class ChatProvider(Protocol):
    """
    Uniform transport adapter for one upstream backend.

    Attributes:
        name: Registry identifier ('openai', 'claude', ...).
        label: Human-readable vendor name used in the system prompt.
        default_model: Model used when a request names none.
        supported_models: Models offered to collaborators.
        supports_tools: Whether tool declarations may be sent upstream.
    """

    name: str
    label: str
    default_model: str
    supported_models: List[ModelInfo]
    supports_tools: bool

    async def complete(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send one non-streaming request.

        Args:
            params (Dict[str, Any]): Parameters from `build_params`
                (OpenAI chat-completion field names, `messages` as Message objects).

        Returns:
            Dict[str, Any]: Reply with keys
                - text (str): Generated text ('' when absent).
                - tool_calls (List[ToolCall]): Calls issued by the model.
                - model (str): Model that served the request.
                - usage (dict | None): prompt_tokens / completion_tokens / total_tokens.
                - finish_reason (str | None): Chat-completion style reason.
                - citations (list): Citation URLs, if the provider supplies any.

        Raises:
            UpstreamError: If the upstream call fails.
        """
        ...

    def stream(self, params: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
        """
        Open one upstream stream and yield chunks in arrival order.

        Chunk keys (all optional): `delta` (str), `citations` (list),
        `finish_reason` (str), `usage` (dict), `model` (str). A chunk carrying
        `finish_reason` signals completion.

        Raises:
            UpstreamError: If the upstream call fails.
        """
        ...
