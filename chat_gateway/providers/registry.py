"""Provider registry — singleton map of provider name → instance."""

from chat_gateway.endpoints.types import Endpoint
from chat_gateway.providers.base import LLMProvider

# Everything except Anthropic speaks the OpenAI wire format (Google and
# Bedrock models are reached through the LiteLLM gateway).
ENDPOINT_PROVIDERS: dict[Endpoint, str] = {
    Endpoint.OPENAI: "openai",
    Endpoint.AZURE_OPENAI: "openai",
    Endpoint.ANTHROPIC: "anthropic",
    Endpoint.GOOGLE: "openai",
    Endpoint.BEDROCK: "openai",
    Endpoint.CUSTOM: "openai",
}

_providers: dict[str, LLMProvider] = {}


def get_provider(name: str) -> LLMProvider:
    """Get or create a provider instance by name."""
    if name in _providers:
        return _providers[name]

    if name == "openai":
        from chat_gateway.providers.openai import OpenAIProvider
        _providers[name] = OpenAIProvider()
    elif name == "anthropic":
        from chat_gateway.providers.anthropic import AnthropicProvider
        _providers[name] = AnthropicProvider()
    else:
        raise ValueError(f"Unknown provider: {name}")

    return _providers[name]


def get_provider_for_endpoint(kind: Endpoint) -> LLMProvider:
    return get_provider(ENDPOINT_PROVIDERS[kind])


async def close_all_providers() -> None:
    """Gracefully shut down all provider connections."""
    for provider in _providers.values():
        await provider.close()
    _providers.clear()
