"""Proxy handler — thin wrapper delegating to the provider registry."""

from chat_gateway.endpoints.types import Endpoint
from chat_gateway.providers.base import ProviderResponse
from chat_gateway.providers.registry import close_all_providers, get_provider_for_endpoint
from chat_gateway.resolution.options import ClientOptions


async def forward_to_provider(kind: Endpoint, body: dict, options: ClientOptions) -> ProviderResponse:
    """Route a request to the provider that speaks the endpoint's wire format."""
    provider = get_provider_for_endpoint(kind)
    return await provider.chat_completion(body=body, options=options)


async def close_client() -> None:
    """Gracefully close all providers on shutdown."""
    await close_all_providers()
