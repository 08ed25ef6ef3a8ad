"""Tests for chat_gateway/providers/registry.py and proxy/handler.py."""

from unittest.mock import AsyncMock, patch

import pytest

import chat_gateway.providers.registry as registry_mod
from chat_gateway.endpoints.types import Endpoint
from chat_gateway.providers.anthropic import AnthropicProvider
from chat_gateway.providers.base import ProviderResponse
from chat_gateway.providers.openai import OpenAIProvider
from chat_gateway.proxy.handler import close_client, forward_to_provider
from chat_gateway.resolution.options import ClientOptions


@pytest.fixture(autouse=True)
def reset_registry(monkeypatch):
    """Clear the provider registry between tests."""
    monkeypatch.setattr(registry_mod, "_providers", {})
    yield
    monkeypatch.setattr(registry_mod, "_providers", {})


class TestGetProvider:

    def test_creates_providers(self):
        assert isinstance(registry_mod.get_provider("openai"), OpenAIProvider)
        assert isinstance(registry_mod.get_provider("anthropic"), AnthropicProvider)

    def test_singleton_behavior(self):
        assert registry_mod.get_provider("openai") is registry_mod.get_provider("openai")

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            registry_mod.get_provider("fake-provider")

    @pytest.mark.parametrize("kind", list(Endpoint))
    def test_every_endpoint_has_a_provider(self, kind):
        assert registry_mod.get_provider_for_endpoint(kind) is not None

    def test_anthropic_endpoint(self):
        assert isinstance(registry_mod.get_provider_for_endpoint(Endpoint.ANTHROPIC), AnthropicProvider)


class TestCloseAllProviders:

    async def test_close_all(self):
        registry_mod.get_provider("openai")
        await registry_mod.close_all_providers()
        assert registry_mod._providers == {}


class TestProxyHandler:

    async def test_forwards_options(self):
        mock_provider = AsyncMock()
        mock_provider.chat_completion.return_value = ProviderResponse(status_code=200, body={})
        options = ClientOptions(
            endpoint="openAI", api_key="sk", reverse_proxy_url=None, headers={}, model_options={}
        )

        with patch(
            "chat_gateway.proxy.handler.get_provider_for_endpoint", return_value=mock_provider
        ) as mock_get:
            result = await forward_to_provider(Endpoint.OPENAI, {"messages": []}, options)

        mock_get.assert_called_once_with(Endpoint.OPENAI)
        mock_provider.chat_completion.assert_called_once_with(body={"messages": []}, options=options)
        assert result.status_code == 200

    async def test_close_client_delegates(self):
        with patch("chat_gateway.proxy.handler.close_all_providers", new_callable=AsyncMock) as mock_close:
            await close_client()
            mock_close.assert_called_once()
