from typing import Dict

from ..config import Settings
from .base import ChatProvider
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .perplexity import create_perplexity_provider


def build_providers(settings: Settings) -> Dict[str, ChatProvider]:
    """
    Build the provider registry from settings.

    Each provider is registered only when its credentials are present, so the
    engine can run with a subset of providers.
    """
    providers: Dict[str, ChatProvider] = {}

    if settings.openai_api_key:
        providers["openai"] = OpenAIProvider(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout,
        )

    if settings.anthropic_api_key:
        providers["claude"] = AnthropicProvider(
            api_key=settings.anthropic_api_key,
            timeout=settings.request_timeout,
        )

    if settings.perplexity_api_key:
        providers["perplexity"] = create_perplexity_provider(
            api_key=settings.perplexity_api_key,
            timeout=settings.request_timeout,
        )

    return providers


__all__ = [
    "ChatProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "create_perplexity_provider",
    "build_providers",
]
