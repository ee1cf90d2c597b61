import enum
import json
from dataclasses import dataclass, field
from typing import Literal, Dict, Any, Union, TypedDict, Optional, Tuple, Mapping, ClassVar

# =============================================================================
# Type Definitions
# =============================================================================

# Supported upstream providers
Provider = Literal["openai", "claude", "perplexity"]

Role = Literal["system", "user", "assistant", "tool"]

ResponseStyle = Literal["concise", "detailed"]


class ModelClass(enum.Enum):
    """
    Request-building category of a model identifier.
    """
    STANDARD = "standard"
    RESTRICTED_SAMPLING = "restricted-sampling"
    ALTERNATE_ENDPOINT = "alternate-endpoint"


class ModelInfo(TypedDict):
    """
    Entry in a provider's model listing.
    """
    id: str
    name: str
    description: str


class SearchResult(TypedDict, total=False):
    """
    One hit returned by the external search capability.
    """
    title: str
    url: str
    description: str
    content: str


# =============================================================================
# Messages
# =============================================================================

@dataclass(frozen=True)
class ToolCall:
    """
    Tool call emitted by a model inside an assistant turn.

    `arguments` is the JSON-encoded argument blob exactly as the provider
    sent it; it is parsed only when the call is executed.
    """
    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Message:
    """
    Chat message.

    Roles:
    - "system": System prompt (only ever composed by the engine)
    - "user": User message
    - "assistant": Model response, optionally carrying tool calls
    - "tool": Tool execution result, keyed by `tool_call_id`
    """
    role: Role
    content: str = ""
    tool_call_id: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        """
        Build a message from a collaborator dictionary.

        Accepts both camelCase (`toolCallId`, `toolCalls`) and snake_case keys.
        Tool calls may be given in the OpenAI wire shape or flat
        (`{"id", "name", "arguments"}`).
        """
        role = data.get("role", "user")
        if role not in ("system", "user", "assistant", "tool"):
            raise ValueError(f"Unsupported message role: {role!r}")

        content = data.get("content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            # Multimodal parts are reduced to their text fragments
            content = "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )

        raw_calls = data.get("tool_calls") or data.get("toolCalls") or []
        tool_calls = []
        for tc in raw_calls:
            function = tc.get("function") or tc
            arguments = function.get("arguments", "{}")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            tool_calls.append(ToolCall(id=tc.get("id", ""), name=function.get("name", ""), arguments=arguments))

        return cls(
            role=role,
            content=content,
            tool_call_id=data.get("tool_call_id") or data.get("toolCallId"),
            tool_calls=tuple(tool_calls),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Render the message in the OpenAI chat-completion wire shape.
        """
        if self.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": self.tool_call_id or "",
                "content": self.content,
            }
        result: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return result


# =============================================================================
# Requests
# =============================================================================

# String spellings accepted as true in collaborator payloads
TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


def _as_flag(value: Any) -> bool:
    """Interpret a payload flag; strings such as "false" or "0" are false."""
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


@dataclass(frozen=True)
class ChatRequest:
    """
    A normalized conversation turn as handed over by a collaborator.
    """
    messages: Tuple[Message, ...]
    provider: str = "openai"
    model: Optional[str] = None
    response_style: str = "concise"
    use_web_search: bool = False
    max_tokens: Any = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChatRequest":
        """
        Parse the collaborator payload.

        Expected shape::

            {
                "messages": [{"role": "user", "content": "..."}],
                "model": "gpt-4o-mini",          # optional
                "provider": "openai" | "claude",   # optional
                "responseStyle": "concise" | "detailed",
                "useWebSearch": true,
                "maxTokens": 8000,
            }

        `maxTokens` is kept as given; invalid values are resolved to the
        default when parameters are built.
        """
        messages = tuple(
            m if isinstance(m, Message) else Message.from_dict(m)
            for m in payload.get("messages") or []
        )

        def pick(camel: str, snake: str, default: Any = None) -> Any:
            if camel in payload:
                return payload[camel]
            return payload.get(snake, default)

        return cls(
            messages=messages,
            provider=payload.get("provider") or "openai",
            model=payload.get("model") or None,
            response_style=pick("responseStyle", "response_style", "concise") or "concise",
            use_web_search=_as_flag(pick("useWebSearch", "use_web_search", False)),
            max_tokens=pick("maxTokens", "max_tokens"),
        )


# =============================================================================
# Responses
# =============================================================================

@dataclass(frozen=True)
class Usage:
    """
    Token usage, zeros when the upstream did not report it.
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt": self.prompt_tokens,
            "completion": self.completion_tokens,
            "total": self.total_tokens,
        }


@dataclass(frozen=True)
class ChatResponse:
    """
    Normalized answer for one completed turn.
    """
    content: str
    usage: Usage
    finish_reason: Optional[str]
    model: str
    provider: str
    citations: Tuple[str, ...] = ()
    tool_calls_executed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "usage": self.usage.to_dict(),
            "finishReason": self.finish_reason,
            "model": self.model,
            "provider": self.provider,
            "citations": list(self.citations),
        }


# =============================================================================
# Stream Events
# =============================================================================

@dataclass(frozen=True)
class ContentDelta:
    text: str
    type: ClassVar[str] = "content"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "content": self.text}


@dataclass(frozen=True)
class Citations:
    citations: Tuple[str, ...]
    type: ClassVar[str] = "citations"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "citations": list(self.citations)}


@dataclass(frozen=True)
class Done:
    """
    Terminal stream event. Nothing follows it.
    """
    finish_reason: Optional[str]
    usage: Usage = field(default_factory=Usage)
    model: Optional[str] = None
    type: ClassVar[str] = "done"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "finishReason": self.finish_reason,
            "usage": self.usage.to_dict(),
            "model": self.model,
        }


StreamEvent = Union[ContentDelta, Citations, Done]
