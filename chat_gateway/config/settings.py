"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Provider credentials: a literal key, "user_provided" or "openid"
    openai_api_key: str = ""
    azure_api_key: str = ""
    anthropic_api_key: str = ""
    google_key: str = ""
    bedrock_api_key: str = ""

    # Base URL overrides (may also be "user_provided")
    openai_reverse_proxy: str = ""
    azure_openai_baseurl: str = ""
    anthropic_reverse_proxy: str = ""
    google_reverse_proxy: str = ""

    # Azure credentials used when no model groups are configured
    azure_openai_api_instance_name: str = ""
    azure_openai_api_deployment_name: str = ""
    azure_openai_api_version: str = ""

    # LiteLLM gateway; also the base URL fallback for every provider
    litellm_url: str = ""

    proxy: str = ""
    debug_openai: bool = False
    openai_summarize: bool = False

    # Comma-separated default model lists
    openai_models: str = ""
    anthropic_models: str = ""
    google_models: str = ""

    # App config (endpoints section) and user key store
    app_config_path: str = "librechat.json"
    user_key_store_backend: str = "json"  # "json" | "dynamodb"
    user_key_store_path: str = "user_keys.json"
    dynamodb_table_name: str = "chat-gateway-user-keys"
    aws_region: str = "us-east-1"

    # Caller authentication
    jwt_secret: str = "dev-secret"
    jwt_algorithm: str = "HS256"

    upstream_timeout: float = 10.0
    models_cache_ttl: int = 0  # 0 = cache until invalidated

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @staticmethod
    def _split(value: str) -> list[str]:
        return [m.strip() for m in value.split(",") if m.strip()]

    @property
    def openai_models_list(self) -> list[str]:
        return self._split(self.openai_models)

    @property
    def anthropic_models_list(self) -> list[str]:
        return self._split(self.anthropic_models)

    @property
    def google_models_list(self) -> list[str]:
        return self._split(self.google_models)


@lru_cache
def get_settings() -> Settings:
    return Settings()
