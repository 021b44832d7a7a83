"""Factory for creating LLM chat models.

Uses LangChain's ``init_chat_model`` so every provider is built the same way.
Credentials and hosts come from keyword arguments or the usual environment
variables.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from avventura.observability.logging import get_logger
from avventura.providers.base import ProviderError

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

log = get_logger(__name__)

# None means the model must be given explicitly
PROVIDER_DEFAULTS: dict[str, str | None] = {
    "ollama": None,
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini-2.5-flash",
}

_API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}

_PACKAGES: dict[str, str] = {
    "ollama": "langchain-ollama",
    "openai": "langchain-openai",
    "anthropic": "langchain-anthropic",
    "google": "langchain-google-genai",
}

# Story JSON for five levels runs to a few thousand tokens
DEFAULT_MAX_TOKENS = 4000


def get_default_model(provider_name: str) -> str | None:
    """Return the default model for a provider, or None if one must be given."""
    return PROVIDER_DEFAULTS.get(_normalize_provider(provider_name))


def create_chat_model(
    provider_name: str,
    model: str | None = None,
    **kwargs: Any,
) -> BaseChatModel:
    """Create a LangChain chat model.

    Args:
        provider_name: Provider identifier (ollama, openai, anthropic, google).
        model: Model name. Falls back to the provider default.
        **kwargs: Extra options passed to ``init_chat_model``.

    Returns:
        Configured BaseChatModel.

    Raises:
        ProviderError: If the provider is unknown, has no model, lacks
            credentials, or its integration package is not installed.
    """
    provider = _normalize_provider(provider_name)

    if provider not in PROVIDER_DEFAULTS:
        log.error("provider_unknown", provider=provider)
        raise ProviderError(provider, f"Unknown provider: {provider}")

    model = model or PROVIDER_DEFAULTS[provider]
    if not model:
        raise ProviderError(provider, "Model name required for this provider.")

    kwargs = _preprocess_provider_kwargs(provider, kwargs)

    try:
        from langchain.chat_models import init_chat_model

        chat_model: BaseChatModel = init_chat_model(
            model=model,
            model_provider=_map_provider_for_init(provider),
            **kwargs,
        )
    except ImportError as e:
        package = _PACKAGES[provider]
        log.error("provider_import_error", provider=provider, package=package)
        raise ProviderError(provider, f"{package} not installed. Run: pip install {package}") from e

    log.info("chat_model_created", provider=provider, model=model)
    return chat_model


def _preprocess_provider_kwargs(provider: str, kwargs: dict[str, Any]) -> dict[str, Any]:
    """Resolve host and credentials for *provider*.

    Returns a new dict; the input is not mutated.

    Raises:
        ProviderError: If required configuration is missing.
    """
    kwargs = dict(kwargs)
    kwargs.setdefault("temperature", 0.7)

    if provider == "ollama":
        host = kwargs.pop("host", None) or os.getenv("OLLAMA_HOST")
        if not host:
            log.error("provider_config_error", provider="ollama", missing="OLLAMA_HOST")
            raise ProviderError(
                "ollama",
                "OLLAMA_HOST not configured. Set OLLAMA_HOST environment variable.",
            )
        kwargs["base_url"] = host
        kwargs.setdefault("num_predict", DEFAULT_MAX_TOKENS)
        return kwargs

    env_var = _API_KEY_ENV[provider]
    api_key = kwargs.get("api_key") or os.getenv(env_var)
    if not api_key:
        log.error("provider_config_error", provider=provider, missing=env_var)
        raise ProviderError(provider, f"API key required. Set {env_var} environment variable.")
    kwargs["api_key"] = api_key
    kwargs.setdefault("max_tokens", DEFAULT_MAX_TOKENS)
    return kwargs


def _map_provider_for_init(provider: str) -> str:
    # init_chat_model expects 'google_genai' not 'google'
    if provider == "google":
        return "google_genai"
    return provider


def _normalize_provider(provider_name: str) -> str:
    name = provider_name.lower()
    if name == "gemini":
        return "google"
    return name
