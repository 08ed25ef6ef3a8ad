"""Per-request client initialisation: credentials + Azure routing + merge."""

import json
import logging

from chat_gateway.config.app_config import AppConfig, EndpointSettings
from chat_gateway.config.settings import Settings
from chat_gateway.endpoints.types import Endpoint, EndpointRef, parse_endpoint
from chat_gateway.errors import NoUserKeyError
from chat_gateway.logging.audit import mask_secret
from chat_gateway.resolution.azure import get_azure_credentials, map_model_to_azure_config
from chat_gateway.resolution.credentials import Credentials, ensure_api_key, resolve_credentials
from chat_gateway.resolution.llm_config import get_anthropic_config, get_openai_config
from chat_gateway.resolution.options import (
    ClientOptions,
    OptionsInputs,
    build_client_options,
    effective_model,
)
from chat_gateway.resolution.request import ChatRequest
from chat_gateway.users.store import UserKeyStore

logger = logging.getLogger("chat_gateway.resolution")

LLM_CONFIG_BUILDERS = {
    Endpoint.OPENAI: get_openai_config,
    Endpoint.AZURE_OPENAI: get_openai_config,
    Endpoint.ANTHROPIC: get_anthropic_config,
    Endpoint.GOOGLE: get_openai_config,  # served through the gateway's OpenAI-compatible API
    Endpoint.BEDROCK: get_openai_config,
    Endpoint.CUSTOM: get_openai_config,
}


def _user_azure_options(credentials: Credentials) -> dict:
    """User-provided Azure keys are stored as a JSON object of Azure options."""
    raw = (credentials.user_values or {}).get("apiKey")
    if isinstance(raw, dict):
        return dict(raw)
    try:
        return json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        raise NoUserKeyError("azureOpenAI user key is not a valid Azure credentials object.")


def _endpoint_settings(ref: EndpointRef, app_config: AppConfig) -> EndpointSettings | None:
    if ref.is_custom:
        custom = app_config.find_custom(ref.name)
        return EndpointSettings(streamRate=custom.streamRate, titleModel=custom.titleModel)
    return app_config.endpoint_settings(ref.name)


async def resolve_client(
    endpoint: str | None,
    request: ChatRequest,
    *,
    settings: Settings,
    app_config: AppConfig,
    user_keys: UserKeyStore,
    override_model: str | None = None,
    override_endpoint: str | None = None,
) -> tuple[EndpointRef, ClientOptions]:
    name = override_endpoint or endpoint or request.endpoint
    ref = parse_endpoint(name, [c.name for c in app_config.custom])
    model_name = effective_model(request.model, request.model_parameters, override_model)
    is_azure = ref.kind is Endpoint.AZURE_OPENAI

    credentials = await resolve_credentials(
        ref, request, settings, app_config, user_keys, require_key=not is_azure
    )

    api_key = credentials.api_key
    azure_group = None
    azure_options = None
    azure_config = app_config.azureOpenAI if is_azure else None

    if azure_config is not None and azure_config.modelGroupMap:
        azure_group = map_model_to_azure_config(
            model_name, azure_config.modelGroupMap, azure_config.groupMap
        )
        if not credentials.use_openid:
            api_key = azure_group.azure_options["azureOpenAIApiKey"] or api_key
    elif is_azure:
        if credentials.use_openid:
            azure_options = get_azure_credentials(settings)
        else:
            azure_options = (
                _user_azure_options(credentials)
                if credentials.user_provides_key
                else get_azure_credentials(settings)
            )
            api_key = azure_options.get("azureOpenAIApiKey", "")

    if is_azure:
        ensure_api_key(ref, credentials, api_key)

    headers = {}
    if ref.is_custom:
        headers = dict(app_config.find_custom(ref.name).headers)

    inputs = OptionsInputs(
        ref=ref,
        user=request.user,
        api_key=api_key,
        base_url=credentials.base_url,
        auth_header=credentials.auth_header,
        model=request.model,
        model_parameters=dict(request.model_parameters),
        override_model=override_model,
        endpoint_settings=_endpoint_settings(ref, app_config),
        all_settings=app_config.all,
        headers=headers,
        azure_group=azure_group,
        azure_settings=(
            EndpointSettings(
                streamRate=azure_config.streamRate,
                titleModel=azure_config.titleModel,
                titleConvo=azure_config.titleConvo,
                titleMethod=azure_config.titleMethod,
            )
            if azure_config is not None
            else None
        ),
        azure_options=azure_options,
        proxy=settings.proxy or None,
        debug=settings.debug_openai,
        context_strategy="summarize" if settings.openai_summarize else None,
    )
    options = build_client_options(inputs)

    logger.debug(
        "Client options resolved",
        extra={"audit_data": {
            "endpoint": ref.name,
            "model": options.model,
            "user_id": request.user.id,
            "api_key": mask_secret(options.api_key),
            "azure_group": azure_group.group if azure_group else None,
            "openid": credentials.use_openid,
            "has_base_url": options.reverse_proxy_url is not None,
        }},
    )
    return ref, options


async def get_client_options(endpoint: str | None, request: ChatRequest, **kwargs) -> ClientOptions:
    """Resolve the full ClientOptions for one request.

    Keyword arguments: settings, app_config, user_keys and optionally
    override_model / override_endpoint.
    """
    _, options = await resolve_client(endpoint, request, **kwargs)
    return options


async def get_llm_config(endpoint: str | None, request: ChatRequest, **kwargs) -> dict:
    """Options-only initialisation: the provider projection, no live client."""
    ref, options = await resolve_client(endpoint, request, **kwargs)
    return LLM_CONFIG_BUILDERS[ref.kind](options)
