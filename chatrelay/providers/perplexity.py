"""
Perplexity provider.

Perplexity speaks the OpenAI chat-completion dialect, so it reuses
OpenAIProvider with its own endpoint. Its models search the web on their
own and return citations; tool declarations are not sent.
"""
from typing import List, Optional

from ..types import ModelInfo
from .openai import OpenAIProvider

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"

PERPLEXITY_MODELS: List[ModelInfo] = [
    {
        "id": "sonar-pro",
        "name": "Sonar Pro",
        "description": "Most capable Perplexity model with real-time web search & citations",
    },
    {
        "id": "sonar-reasoning",
        "name": "Sonar Reasoning",
        "description": "Advanced reasoning engine that always cites its sources",
    },
]


def create_perplexity_provider(
    api_key: Optional[str],
    base_url: str = PERPLEXITY_BASE_URL,
    timeout: Optional[float] = None,
) -> OpenAIProvider:
    return OpenAIProvider(
        api_key=api_key,
        base_url=base_url,
        provider_name="perplexity",
        label="Perplexity",
        default_model="sonar-pro",
        supported_models=PERPLEXITY_MODELS,
        supports_tools=False,
        timeout=timeout,
    )
