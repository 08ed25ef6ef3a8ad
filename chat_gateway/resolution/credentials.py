"""Credential resolution: which API key and base URL a request uses.

Sources, per endpoint:
  - a static value from the environment,
  - "user_provided": the caller's stored key (optionally expiring),
  - "openid": the caller's own bearer token, forwarded as-is.

When no base URL resolves and LITELLM_URL is set, the gateway URL is used
so a single LiteLLM deployment can front every provider.
"""

from dataclasses import dataclass

from chat_gateway.config.app_config import AppConfig
from chat_gateway.config.settings import Settings
from chat_gateway.endpoints.types import Endpoint, EndpointRef
from chat_gateway.errors import (
    ExpiredUserKeyError,
    MissingAPIKeyError,
    MissingAuthHeaderError,
    NoUserKeyError,
    UnknownEndpointError,
)
from chat_gateway.resolution.env import OPENID, extract_env_variable, is_user_provided
from chat_gateway.resolution.request import ChatRequest
from chat_gateway.users.models import check_user_key_expiry
from chat_gateway.users.store import UserKeyStore

# (credential setting, base URL setting) per built-in endpoint
ENV_SOURCES: dict[Endpoint, tuple[str, str | None]] = {
    Endpoint.OPENAI: ("openai_api_key", "openai_reverse_proxy"),
    Endpoint.AZURE_OPENAI: ("azure_api_key", "azure_openai_baseurl"),
    Endpoint.ANTHROPIC: ("anthropic_api_key", "anthropic_reverse_proxy"),
    Endpoint.GOOGLE: ("google_key", "google_reverse_proxy"),
    Endpoint.BEDROCK: ("bedrock_api_key", None),
}

# SDKs for these endpoints add the "Bearer " prefix themselves
STRIP_BEARER = frozenset({Endpoint.ANTHROPIC})


@dataclass(frozen=True)
class Credentials:
    api_key: str
    base_url: str | None
    auth_header: str | None = None  # set when the client must forward the caller's header
    use_openid: bool = False
    user_provides_key: bool = False
    user_values: dict | None = None


def credential_source(ref: EndpointRef, settings: Settings, app_config: AppConfig) -> tuple[str, str]:
    """Return the raw (credential, base URL) configured for an endpoint."""
    if ref.kind is Endpoint.CUSTOM:
        custom = app_config.find_custom(ref.name)
        if custom is None:
            raise UnknownEndpointError(f"Custom endpoint '{ref.name}' is not configured")
        return extract_env_variable(custom.apiKey), extract_env_variable(custom.baseURL)

    key_attr, url_attr = ENV_SOURCES[ref.kind]
    base_url = getattr(settings, url_attr) if url_attr else ""
    return getattr(settings, key_attr), base_url


def strip_bearer(header: str) -> str:
    if header.startswith("Bearer "):
        return header[len("Bearer "):]
    return header


async def resolve_credentials(
    ref: EndpointRef,
    request: ChatRequest,
    settings: Settings,
    app_config: AppConfig,
    user_keys: UserKeyStore,
    require_key: bool = True,
) -> Credentials:
    """Resolve (api_key, base_url) for one request.

    ``require_key=False`` defers the missing-key check to the caller, which
    Azure model groups need since the group supplies its own key.
    """
    credential, base_url = credential_source(ref, settings, app_config)
    use_openid = credential == OPENID
    user_provides_key = is_user_provided(credential)
    user_provides_url = is_user_provided(base_url)

    user_values = None
    if user_provides_key or user_provides_url:
        # Expiry marker is checked before touching the store
        if request.key:
            check_user_key_expiry(request.key, ref.name)
        stored = await user_keys.get_user_key(request.user.id, ref.name)
        if stored is None:
            raise NoUserKeyError(f"{ref.name} user key not provided. Please provide it again.")
        if stored.is_expired():
            raise ExpiredUserKeyError(endpoint=ref.name, expired_at=stored.expires_at)
        user_values = dict(stored.value)

    api_key = (user_values or {}).get("apiKey", "") if user_provides_key else credential
    if user_provides_url:
        base_url = (user_values or {}).get("baseURL", "")

    if not base_url and settings.litellm_url:
        base_url = settings.litellm_url

    auth_header = None
    if use_openid:
        if not request.authorization:
            raise MissingAuthHeaderError(
                f"{ref.name} Authorization header not provided for OpenID authentication."
            )
        auth_header = request.authorization
        api_key = strip_bearer(auth_header) if ref.kind in STRIP_BEARER else auth_header

    credentials = Credentials(
        api_key=api_key or "",
        base_url=base_url or None,
        auth_header=auth_header,
        use_openid=use_openid,
        user_provides_key=user_provides_key,
        user_values=user_values,
    )
    if require_key:
        ensure_api_key(ref, credentials)
    return credentials


def ensure_api_key(ref: EndpointRef, credentials: Credentials, api_key: str | None = None) -> None:
    """Raise when no usable key resolved (OpenID requests carry the header instead)."""
    key = credentials.api_key if api_key is None else api_key
    if credentials.use_openid or key:
        return
    if credentials.user_provides_key:
        raise NoUserKeyError(f"{ref.name} user key not provided. Please provide it again.")
    raise MissingAPIKeyError(f"{ref.name} API Key not provided.")
