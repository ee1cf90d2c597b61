import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import dotenv

from .errors import ConfigurationError

DEFAULT_ALTERNATE_BASE_URL = "https://api.openai.com/v1"


@dataclass(frozen=True)
class Settings:
    """
    Static engine configuration.

    Read once at start-up and injected into providers; nothing in the
    engine consults the environment after construction.

    Attributes:
        openai_api_key: Credentials for OpenAI (and the alternate endpoint).
        anthropic_api_key: Credentials for Anthropic (Claude).
        perplexity_api_key: Credentials for Perplexity.
        openai_base_url: Optional override for OpenAI-compatible gateways.
        alternate_base_url: Base URL of the alternate (responses) endpoint.
        request_timeout: Transport timeout in seconds for every upstream call.
        search_max_results: Default number of search hits requested per tool call.
        search_max_chars: Upper bound on the rendered tool-result text.
    """
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    perplexity_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    alternate_base_url: str = DEFAULT_ALTERNATE_BASE_URL
    request_timeout: float = 120.0
    search_max_results: int = 5
    search_max_chars: int = 8000

    def __post_init__(self):
        if self.request_timeout <= 0:
            raise ConfigurationError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.search_max_results < 1:
            raise ConfigurationError(f"search_max_results must be at least 1, got {self.search_max_results}")
        if self.search_max_chars < 100:
            raise ConfigurationError(f"search_max_chars must be at least 100, got {self.search_max_chars}")

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "Settings":
        """
        Load settings from the process environment, after merging a `.env` file.

        Values already present in the environment win over the `.env` file.

        Args:
            env_file: Path to the dotenv file. Defaults to python-dotenv's lookup.

        Returns:
            Settings: The resolved, immutable settings.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed.
        """
        dotenv.load_dotenv(env_file)

        def number(name: str, default, cast):
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return cast(raw)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            perplexity_api_key=os.getenv("PERPLEXITY_API_KEY") or None,
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            alternate_base_url=os.getenv("CHATRELAY_ALTERNATE_BASE_URL") or DEFAULT_ALTERNATE_BASE_URL,
            request_timeout=number("CHATRELAY_REQUEST_TIMEOUT", 120.0, float),
            search_max_results=number("CHATRELAY_SEARCH_MAX_RESULTS", 5, int),
            search_max_chars=number("CHATRELAY_SEARCH_MAX_CHARS", 8000, int),
        )
