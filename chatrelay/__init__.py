import logging

from .client import ChatEngine
from .config import Settings
from .errors import ChatRelayError, ConfigurationError, UpstreamError, AlternateEndpointError
from .models import classify_model
from .params import build_params
from .prompts import compose_system_prompt
from .types import (
    Message, ToolCall, ChatRequest, ChatResponse, Usage, ModelClass,
    ContentDelta, Citations, Done, StreamEvent, SearchResult, ModelInfo, Provider,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ChatEngine",
    "Settings",
    "ChatRelayError",
    "ConfigurationError",
    "UpstreamError",
    "AlternateEndpointError",
    "classify_model",
    "build_params",
    "compose_system_prompt",
    "Message",
    "ToolCall",
    "ChatRequest",
    "ChatResponse",
    "Usage",
    "ModelClass",
    "ContentDelta",
    "Citations",
    "Done",
    "StreamEvent",
    "SearchResult",
    "ModelInfo",
    "Provider",
]
