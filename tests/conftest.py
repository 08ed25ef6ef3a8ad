"""Shared fixtures for the chat gateway test suite."""

import json

import pytest

from chat_gateway.config.app_config import AppConfig
from chat_gateway.config.settings import Settings, get_settings
from chat_gateway.resolution.request import AuthenticatedUser, ChatRequest
from chat_gateway.users.store import JSONUserKeyStore


@pytest.fixture
def user() -> AuthenticatedUser:
    return AuthenticatedUser(id="user-123", email="ada@example.com")


@pytest.fixture
def chat_request(user) -> ChatRequest:
    """A typical OpenAI request with no user key marker."""
    return ChatRequest(user=user, endpoint="openAI", model="gpt-4o")


@pytest.fixture
def settings(monkeypatch) -> Settings:
    """Settings with every provider credential unset (no .env leakage)."""
    for name in Settings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
    return Settings(_env_file=None)


@pytest.fixture
def azure_app_config() -> AppConfig:
    """Two Azure groups: an instance-name group and a serverless group."""
    return AppConfig.from_dict({
        "endpoints": {
            "azureOpenAI": {
                "titleConvo": True,
                "groups": [
                    {
                        "group": "eastus",
                        "apiKey": "az-east-key",
                        "instanceName": "east-instance",
                        "version": "2024-02-15-preview",
                        "models": {
                            "gpt-4-turbo": {"deploymentName": "gpt4-turbo-deploy"},
                            "gpt-35-turbo": True,
                        },
                    },
                    {
                        "group": "mistral-inference",
                        "apiKey": "az-mistral-key",
                        "baseURL": "https://Mistral-large.westus.inference.ai.azure.com/v1",
                        "serverless": True,
                        "models": {"mistral-large": True},
                    },
                ],
            }
        }
    })


@pytest.fixture
def custom_app_config() -> AppConfig:
    return AppConfig.from_dict({
        "endpoints": {
            "custom": [
                {
                    "name": "OpenRouter",
                    "apiKey": "${OPENROUTER_KEY}",
                    "baseURL": "https://openrouter.ai/api/v1",
                    "models": {"default": ["meta-llama/llama-3-70b"], "fetch": True},
                    "headers": {"X-User": "{{LIBRECHAT_USER_ID}}"},
                },
                {
                    "name": "Mine",
                    "apiKey": "user_provided",
                    "baseURL": "user_provided",
                    "models": {"default": ["my-model"]},
                },
            ]
        }
    })


@pytest.fixture
def key_store(tmp_path) -> JSONUserKeyStore:
    return JSONUserKeyStore(str(tmp_path / "user_keys.json"))


@pytest.fixture
def user_keys_file(tmp_path):
    """Create a temp user_keys.json file and return its path."""
    data = {
        "keys": [
            {
                "user_id": "user-123",
                "name": "openAI",
                "value": {"apiKey": "sk-user-openai"},
                "expires_at": "2999-01-01T00:00:00Z",
            },
            {
                "user_id": "user-123",
                "name": "anthropic",
                "value": {"apiKey": "sk-ant-old"},
                "expires_at": "2000-01-01T00:00:00Z",
            },
        ]
    }
    path = tmp_path / "user_keys.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(OPENAI_API_KEY="sk-test", LITELLM_URL="http://litellm:4000")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()
