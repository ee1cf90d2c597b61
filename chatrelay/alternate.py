"""
Alternate-endpoint fallback path.

Some model identifiers (see `chatrelay.models`) do not accept the
chat-completion request shape. Their conversation is flattened into a single
`input` string and posted to the responses endpoint, whose reply envelope
varies between model variants. Text is recovered with an ordered cascade of
extraction strategies; when all of them fail the reply degrades to a
diagnostic string instead of raising.
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import httpx

from .errors import AlternateEndpointError, UpstreamError
from .types import Message
from .utils import dump_json

logger = logging.getLogger(__name__)

DIAGNOSTIC_PREFIX_CHARS = 500

ROLE_LABELS = {
    "system": "System",
    "user": "User",
    "assistant": "Assistant",
    "tool": "Tool result",
}

# status -> chat-completion style finish reason
STATUS_FINISH_REASONS = {
    "completed": "stop",
    "incomplete": "length",
}


def flatten_messages(messages: Sequence[Message]) -> str:
    """
    Flatten a conversation into one role-labelled transcript.

    Args:
        messages (Sequence[Message]): Conversation including the system prompt.

    Returns:
        str: Blocks of "Role: content" separated by blank lines.
    """
    blocks = []
    for msg in messages:
        if not msg.content:
            continue
        label = ROLE_LABELS.get(msg.role, msg.role.title())
        blocks.append(f"{label}: {msg.content}")
    return "\n\n".join(blocks)


def _text_or_none(value: Any) -> Optional[str]:
    """Return usable text for an extracted value, serializing non-strings."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = dump_json(value)
    return value if value.strip() else None


def _from_output_text(payload: Mapping[str, Any]) -> Any:
    value = payload.get("output_text")
    return value if isinstance(value, str) else None


def _from_data_text(payload: Mapping[str, Any]) -> Any:
    data = payload.get("data")
    if isinstance(data, Mapping):
        return data.get("text")
    return None


def _from_output_items(payload: Mapping[str, Any]) -> Any:
    output = payload.get("output")
    if not isinstance(output, list):
        return None
    for item in output:
        if not isinstance(item, Mapping) or item.get("type") != "message":
            continue
        fragments = [
            part.get("text", "")
            for part in item.get("content") or []
            if isinstance(part, Mapping)
            and part.get("type") in ("output_text", "text")
            and isinstance(part.get("text"), str)
        ]
        return "".join(fragments)
    return None


def _from_choices(payload: Mapping[str, Any]) -> Any:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, Mapping):
        return None
    message = first.get("message")
    if isinstance(message, Mapping):
        return message.get("content")
    return first.get("text")


def _from_content(payload: Mapping[str, Any]) -> Any:
    return payload.get("content")


EXTRACTION_STRATEGIES: List[Callable[[Mapping[str, Any]], Any]] = [
    _from_output_text,
    _from_data_text,
    _from_output_items,
    _from_choices,
    _from_content,
]


def diagnostic_text(payload: Any, model: str) -> str:
    """
    Describe an unparseable payload, embedding a bounded prefix of it.
    """
    serialized = dump_json(payload)
    return f"Unable to parse response from {model}. Raw response: {serialized[:DIAGNOSTIC_PREFIX_CHARS]}"


def extract_output_text(payload: Any, model: str) -> str:
    """
    Recover the answer text from a responses-endpoint payload.

    Strategies, first non-empty result wins:
    1. top-level `output_text` string
    2. nested `data.text`
    3. first `message` item in `output`, joining its text fragments
    4. chat-completion style `choices[0].message.content`
    5. generic `content`

    Non-string values are serialized to JSON text. Never raises.

    Args:
        payload: The decoded JSON body.
        model (str): Model identifier, used in the diagnostic text.

    Returns:
        str: The answer, or a diagnostic string when nothing matched.
    """
    if isinstance(payload, Mapping):
        for strategy in EXTRACTION_STRATEGIES:
            try:
                text = _text_or_none(strategy(payload))
            except Exception:
                logger.debug("Extraction strategy %s failed", strategy.__name__, exc_info=True)
                continue
            if text is not None:
                return text

    logger.warning("No extraction strategy matched the %s response", model)
    return diagnostic_text(payload, model)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:DIAGNOSTIC_PREFIX_CHARS] or response.reason_phrase
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    return dump_json(body)[:DIAGNOSTIC_PREFIX_CHARS]


class AlternateEndpointClient:
    """
    Transport for models served by the responses endpoint.
    """

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: Bearer credentials for the endpoint.
            base_url: Endpoint root; requests go to `{base_url}/responses`.
            timeout: Transport timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def build_body(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Reshape builder parameters into the responses request body.
        """
        body = {
            "model": params["model"],
            "input": flatten_messages(params.get("messages", [])),
        }
        if params.get("max_output_tokens"):
            body["max_output_tokens"] = params["max_output_tokens"]
        return body

    async def complete(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send the request and parse the reply envelope.

        Args:
            params (Dict[str, Any]): Parameters from `build_params`.

        Returns:
            Dict[str, Any]: Provider-style reply
                (`text`, `model`, `usage`, `finish_reason`, `citations`, `tool_calls`).

        Raises:
            AlternateEndpointError: On a non-2xx status.
            UpstreamError: On transport failure.
        """
        model = params["model"]
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self.transport,
            ) as http_client:
                response = await http_client.post("/responses", json=self.build_body(params))
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Request to alternate endpoint for {model} failed: {e}",
                provider=self.name,
            ) from e

        if not response.is_success:
            raise AlternateEndpointError(
                f"Alternate endpoint returned {response.status_code} for {model}: {_error_message(response)}",
                provider=self.name,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        usage = payload.get("usage") if isinstance(payload, Mapping) else None
        status = payload.get("status") if isinstance(payload, Mapping) else None
        resolved_model = payload.get("model") if isinstance(payload, Mapping) else None

        return {
            "text": extract_output_text(payload, model),
            "tool_calls": [],
            "model": resolved_model if isinstance(resolved_model, str) else model,
            "usage": usage if isinstance(usage, Mapping) else None,
            "finish_reason": STATUS_FINISH_REASONS.get(status, status) if isinstance(status, str) else "stop",
            "citations": [],
        }
