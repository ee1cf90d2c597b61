import logging
from typing import Optional, Dict, List, AsyncIterator

from .alternate import AlternateEndpointClient
from .config import Settings
from .errors import ConfigurationError
from .models import classify_model
from .normalize import normalize_response, normalize_usage
from .params import build_params, offers_web_search
from .prompts import with_system_prompt
from .providers import build_providers
from .providers.base import ChatProvider
from .search import SearchFunction
from .streaming import adapt_stream
from .tools import complete_with_tools, resolve_tool_calls
from .types import ChatRequest, ChatResponse, Citations, ContentDelta, Done, ModelClass, ModelInfo, StreamEvent

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "claude", "perplexity")

DEFAULT_PROVIDER = "openai"

# Provider reported for turns served by the alternate (responses) endpoint
ALTERNATE_PROVIDER = "openai"


class ChatEngine:
    """
    Multi-provider chat orchestration engine.

    Composes the system prompt, builds model-specific parameters, routes the
    turn to a provider (running the web_search tool loop) or to the alternate
    endpoint, and returns a normalized response or stream of events.

    The engine keeps no per-session state: every call receives the full
    conversation, so one instance can serve concurrent turns.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        search: Optional[SearchFunction] = None,
        providers: Optional[Dict[str, ChatProvider]] = None,
        alternate: Optional[AlternateEndpointClient] = None,
    ):
        """
        Initialize the engine.

        Args:
            settings: Static configuration. Defaults to `Settings()` (no credentials).
            search: Async search capability used by the web_search tool.
            providers: Provider registry override. Defaults to providers
                built from the settings' credentials.
            alternate: Alternate-endpoint client override. Defaults to one
                built from the OpenAI credentials, if present.
        """
        self.settings = settings or Settings()
        self.search = search
        self.providers: Dict[str, ChatProvider] = (
            providers if providers is not None else build_providers(self.settings)
        )
        if alternate is None and self.settings.openai_api_key:
            alternate = AlternateEndpointClient(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.alternate_base_url,
                timeout=self.settings.request_timeout,
            )
        self.alternate = alternate

    @classmethod
    def from_env(cls, search: Optional[SearchFunction] = None) -> "ChatEngine":
        """
        Build an engine from environment variables (and `.env`).
        """
        return cls(Settings.from_env(), search=search)

    # ==========================================================================
    # Routing
    # ==========================================================================

    def resolve_provider(self, provider: Optional[str]) -> str:
        """
        Map the requested provider identifier onto a supported one.

        Empty or unknown identifiers fall back to the default provider.
        Aliases 'anthropic' -> 'claude' are handled.

        Args:
            provider (str, optional): Requested provider.

        Returns:
            str: A supported provider identifier.
        """
        name = (provider or "").strip().lower()
        if name == "anthropic":
            name = "claude"
        if name in SUPPORTED_PROVIDERS:
            return name
        if name:
            logger.warning("Unknown provider %r requested, using %r", provider, DEFAULT_PROVIDER)
        return DEFAULT_PROVIDER

    def get_provider(self, provider: str) -> ChatProvider:
        """
        Return the configured provider.

        Raises:
            ConfigurationError: If the provider has no credentials configured.
        """
        if provider not in self.providers:
            raise ConfigurationError(
                f"Provider '{provider}' not configured.",
                hint=f"Set the API key for '{provider}' in the environment or Settings.",
            )
        return self.providers[provider]

    def _prepare(self, request: ChatRequest):
        provider_name = self.resolve_provider(request.provider)
        model = request.model

        if model and classify_model(model) is ModelClass.ALTERNATE_ENDPOINT:
            # The responses endpoint is OpenAI's whatever provider was asked for
            if provider_name != ALTERNATE_PROVIDER:
                logger.debug("Serving %s from the alternate endpoint instead of %r", model, provider_name)
            provider_name = ALTERNATE_PROVIDER
            provider = None
            tools_supported = False
        else:
            provider = self.get_provider(provider_name)
            model = model or provider.default_model
            tools_supported = provider.supports_tools

        messages = with_system_prompt(
            request,
            provider_name,
            model,
            use_web_search=offers_web_search(model, request.use_web_search, tools_supported),
        )
        params, model_class = build_params(
            model,
            messages,
            use_web_search=request.use_web_search,
            max_tokens=request.max_tokens,
            tools_supported=tools_supported,
        )
        logger.debug("Routing %s/%s as %s", provider_name, model, model_class.value)

        if model_class is ModelClass.ALTERNATE_ENDPOINT and self.alternate is None:
            raise ConfigurationError(
                f"Model '{model}' needs the alternate endpoint, which is not configured.",
                hint="Set OPENAI_API_KEY to enable the alternate endpoint.",
            )
        return provider_name, provider, model, params, model_class

    # ==========================================================================
    # Unified Chat Methods
    # ==========================================================================

    def list_models(self, provider: str) -> List[ModelInfo]:
        """
        Get the models offered for a provider.

        Args:
            provider (str): Provider identifier ('openai', 'claude', 'perplexity').

        Returns:
            List[ModelInfo]: Model id, display name and description.

        Raises:
            ConfigurationError: If the provider is not configured.
        """
        return list(self.get_provider(self.resolve_provider(provider)).supported_models)

    async def complete(self, request: ChatRequest) -> ChatResponse:
        """
        Run one non-streaming turn.

        Args:
            request (ChatRequest): The conversation and its configuration.

        Returns:
            ChatResponse: The normalized answer.

        Raises:
            ConfigurationError: If the selected provider is not configured.
            UpstreamError: If an upstream call fails (not retried).
            AlternateEndpointError: If the alternate endpoint answers non-2xx.
        """
        provider_name, provider, model, params, model_class = self._prepare(request)

        if model_class is ModelClass.ALTERNATE_ENDPOINT:
            reply = await self.alternate.complete(params)
            return normalize_response(reply, provider=provider_name, requested_model=model)

        reply, executed = await complete_with_tools(
            provider,
            params,
            model=model,
            max_tokens=request.max_tokens,
            search=self.search,
            max_results=self.settings.search_max_results,
            max_chars=self.settings.search_max_chars,
        )
        return normalize_response(
            reply,
            provider=provider_name,
            requested_model=model,
            tool_calls_executed=executed,
        )

    async def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """
        Run one turn in streaming mode.

        Routing matches `complete`. Turns that may call tools settle the tool
        phase with a non-streaming call first and then stream the follow-up;
        alternate-endpoint turns are answered in one piece and replayed as
        events.

        Args:
            request (ChatRequest): The conversation and its configuration.

        Yields:
            StreamEvent: ContentDelta / Citations events, then exactly one Done.
                Stop iterating to cancel.

        Raises:
            ConfigurationError: If the selected provider is not configured.
            UpstreamError: If an upstream call fails.
        """
        provider_name, provider, model, params, model_class = self._prepare(request)

        if model_class is ModelClass.ALTERNATE_ENDPOINT:
            reply = await self.alternate.complete(params)
            for event in self._replay(normalize_response(reply, provider=provider_name, requested_model=model)):
                yield event
            return

        prior_usage = None
        if "tools" in params:
            reply = await provider.complete(params)
            followup = await resolve_tool_calls(
                reply,
                params,
                model=model,
                max_tokens=request.max_tokens,
                search=self.search,
                max_results=self.settings.search_max_results,
                max_chars=self.settings.search_max_chars,
            )
            if followup is None:
                for event in self._replay(normalize_response(reply, provider=provider_name, requested_model=model)):
                    yield event
                return
            prior_usage = normalize_usage(reply.get("usage"))
            params = followup

        async for event in adapt_stream(provider.stream(params), model=model):
            if isinstance(event, Done) and prior_usage is not None:
                event = Done(finish_reason=event.finish_reason, usage=prior_usage + event.usage, model=event.model)
            yield event

    @staticmethod
    def _replay(response: ChatResponse) -> List[StreamEvent]:
        """
        Express a settled response as stream events.
        """
        events: List[StreamEvent] = [ContentDelta(text=response.content)]
        if response.citations:
            events.append(Citations(citations=response.citations))
        events.append(Done(finish_reason=response.finish_reason, usage=response.usage, model=response.model))
        return events
