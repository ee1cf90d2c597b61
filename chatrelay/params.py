import logging
from typing import Any, Dict, List, Tuple

from .models import classify_model
from .search import WEB_SEARCH_TOOL
from .types import Message, ModelClass

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 8000

# Restricted-sampling models reject anything above this
RESTRICTED_MAX_TOKENS = 4000

DEFAULT_TEMPERATURE = 0.7


def resolve_max_tokens(requested: Any) -> int:
    """
    Resolve the caller's requested output-token limit.

    Missing, non-numeric, boolean or non-positive values fall back to
    DEFAULT_MAX_TOKENS. Numeric strings ("2000") are accepted.

    Args:
        requested: The raw value from the request.

    Returns:
        int: A positive token limit.
    """
    if requested is None or isinstance(requested, bool):
        return DEFAULT_MAX_TOKENS
    try:
        value = int(float(requested))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_MAX_TOKENS
    if value <= 0:
        return DEFAULT_MAX_TOKENS
    return value


def offers_web_search(model: str, use_web_search: bool, tools_supported: bool = True) -> bool:
    """
    Whether a request for `model` carries the web_search tool declaration.

    Only standard models on providers that accept tool declarations get it.
    """
    return (
        bool(use_web_search)
        and tools_supported
        and classify_model(model) is ModelClass.STANDARD
    )


def build_params(
    model: str,
    messages: List[Message],
    *,
    use_web_search: bool = False,
    max_tokens: Any = None,
    tools_supported: bool = True,
) -> Tuple[Dict[str, Any], ModelClass]:
    """
    Translate a normalized request into provider-ready parameters.

    The parameters use OpenAI chat-completion field names; providers with a
    different wire shape translate from these.

    Rules:
    - Restricted-sampling models: `max_completion_tokens` capped at
      RESTRICTED_MAX_TOKENS, no temperature, no tool declarations.
    - Standard models: `temperature` DEFAULT_TEMPERATURE, `max_tokens` as
      resolved; the web_search tool with automatic tool choice when web
      search is enabled and the provider accepts tool declarations.
    - Alternate-endpoint models: `max_output_tokens` only; the alternate
      path reshapes the request itself.

    Args:
        model (str): The model identifier.
        messages (List[Message]): Conversation including the system prompt.
        use_web_search (bool): Whether the web_search tool may be offered.
        max_tokens: The caller's requested output limit (validated here).
        tools_supported (bool): Whether the provider accepts tool declarations.

    Returns:
        Tuple of the parameter dictionary and the resolved ModelClass.
    """
    model_class = classify_model(model)
    limit = resolve_max_tokens(max_tokens)

    params: Dict[str, Any] = {
        "model": model,
        "messages": list(messages),
    }

    if model_class is ModelClass.ALTERNATE_ENDPOINT:
        params["max_output_tokens"] = limit
    elif model_class is ModelClass.RESTRICTED_SAMPLING:
        params["max_completion_tokens"] = min(limit, RESTRICTED_MAX_TOKENS)
    else:
        params["temperature"] = DEFAULT_TEMPERATURE
        params["max_tokens"] = limit
        if offers_web_search(model, use_web_search, tools_supported):
            params["tools"] = [WEB_SEARCH_TOOL]
            params["tool_choice"] = "auto"

    logger.debug(
        "Built params for %s (class=%s, tools=%s)",
        model, model_class.value, "tools" in params,
    )
    return params, model_class
