"""LLM provider integrations using LangChain."""

from avventura.providers.base import ProviderError
from avventura.providers.content import extract_text
from avventura.providers.factory import (
    PROVIDER_DEFAULTS,
    create_chat_model,
    get_default_model,
)

__all__ = [
    "PROVIDER_DEFAULTS",
    "ProviderError",
    "create_chat_model",
    "extract_text",
    "get_default_model",
]
