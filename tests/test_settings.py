"""Tests for chat_gateway/config/settings.py — Settings and model lists."""

from chat_gateway.config.settings import get_settings


class TestSettings:

    def test_defaults(self, override_settings):
        override_settings()
        s = get_settings()
        assert s.user_key_store_backend == "json"
        assert s.jwt_algorithm == "HS256"
        assert s.upstream_timeout == 10.0
        assert s.models_cache_ttl == 0
        assert s.log_level == "INFO"

    def test_models_list_single(self, override_settings):
        override_settings(OPENAI_MODELS="gpt-4o")
        s = get_settings()
        assert s.openai_models_list == ["gpt-4o"]

    def test_models_list_multiple(self, override_settings):
        override_settings(ANTHROPIC_MODELS="claude-3-opus, claude-3-haiku , claude-3-7-sonnet")
        s = get_settings()
        assert s.anthropic_models_list == ["claude-3-opus", "claude-3-haiku", "claude-3-7-sonnet"]

    def test_models_list_strips_empty(self, override_settings):
        override_settings(GOOGLE_MODELS="g1,,g2,")
        s = get_settings()
        assert s.google_models_list == ["g1", "g2"]

    def test_env_override(self, override_settings):
        override_settings(
            OPENAI_API_KEY="user_provided",
            LITELLM_URL="http://litellm:4000",
            DEBUG_OPENAI="true",
            MODELS_CACHE_TTL="300",
        )
        s = get_settings()
        assert s.openai_api_key == "user_provided"
        assert s.litellm_url == "http://litellm:4000"
        assert s.debug_openai is True
        assert s.models_cache_ttl == 300
