import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .types import ChatResponse, Usage

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_PLACEHOLDER = (
    "I'm sorry, but I couldn't generate a response this time. "
    "Please try again or rephrase your question."
)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None


def normalize_usage(raw: Union[Mapping[str, Any], Usage, None]) -> Usage:
    """
    Normalize token usage information across providers.

    Accepts the chat-completion naming (`prompt_tokens`/`completion_tokens`)
    and the Anthropic/responses naming (`input_tokens`/`output_tokens`).
    Missing numbers become zero; a missing total is derived from its parts.

    Args:
        raw (Mapping, optional): Usage data as reported upstream.

    Returns:
        Usage: Standardized usage.
    """
    if isinstance(raw, Usage):
        return raw
    if not raw:
        return Usage()

    prompt = _as_int(raw.get("prompt_tokens"))
    if prompt is None:
        prompt = _as_int(raw.get("input_tokens"))
    completion = _as_int(raw.get("completion_tokens"))
    if completion is None:
        completion = _as_int(raw.get("output_tokens"))
    total = _as_int(raw.get("total_tokens"))

    # Calculate total if not provided
    if total is None:
        total = (prompt or 0) + (completion or 0)

    return Usage(
        prompt_tokens=prompt or 0,
        completion_tokens=completion or 0,
        total_tokens=total,
    )


def normalize_citations(raw: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    """
    Flatten provider citations to a tuple of strings (URLs where available).
    """
    if not raw:
        return ()
    citations = []
    for item in raw:
        if isinstance(item, str):
            citations.append(item)
        elif isinstance(item, Mapping) and item.get("url"):
            citations.append(str(item["url"]))
    return tuple(citations)


def normalize_response(
    raw: Dict[str, Any],
    *,
    provider: str,
    requested_model: str,
    tool_calls_executed: int = 0,
) -> ChatResponse:
    """
    Convert a provider reply (or alternate-endpoint reply) into a ChatResponse.

    Provider replies share the shape
    `{"text", "model", "usage", "finish_reason", "citations"}`.
    Empty or whitespace-only text is replaced by EMPTY_RESPONSE_PLACEHOLDER
    and the substitution is logged with the reply's context.

    Args:
        raw (Dict[str, Any]): The provider reply.
        provider (str): Provider that served the turn.
        requested_model (str): Model requested, used when the reply names none.
        tool_calls_executed (int): Tool calls resolved during the turn.

    Returns:
        ChatResponse: The normalized, immutable response.
    """
    text = raw.get("text")
    if not isinstance(text, str):
        text = "" if text is None else str(text)

    model = raw.get("model") or requested_model
    usage = normalize_usage(raw.get("usage"))
    finish_reason = raw.get("finish_reason")

    if not text.strip():
        logger.warning(
            "Empty completion replaced by placeholder (provider=%s, model=%s, finish_reason=%s, "
            "usage=%s, raw_text=%r)",
            provider, model, finish_reason, usage, text,
        )
        text = EMPTY_RESPONSE_PLACEHOLDER

    return ChatResponse(
        content=text,
        usage=usage,
        finish_reason=finish_reason,
        model=model,
        provider=provider,
        citations=normalize_citations(raw.get("citations")),
        tool_calls_executed=tool_calls_executed,
    )
