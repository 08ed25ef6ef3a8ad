"""Model catalog loading: static lists, custom endpoint discovery, LiteLLM.

Custom endpoints that share a (baseURL, apiKey) pair are fetched once per
load. A failed or empty fetch degrades to the endpoint's configured
``models.default`` list; the degraded catalog is cached like any other.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from chat_gateway.catalog.cache import MODELS_CONFIG, KeyValueCache
from chat_gateway.catalog.fetch import fetch_models
from chat_gateway.config.app_config import AppConfig, CustomEndpoint
from chat_gateway.config.settings import Settings
from chat_gateway.endpoints.types import Endpoint, normalize_endpoint_name
from chat_gateway.errors import UpstreamFetchError
from chat_gateway.litellm_proxy.client import LiteLLMClient
from chat_gateway.resolution.env import extract_env_variable, is_user_provided, resolve_headers
from chat_gateway.resolution.request import ChatRequest

logger = logging.getLogger("chat_gateway.catalog")

DEFAULT_MODELS: dict[Endpoint, list[str]] = {
    Endpoint.OPENAI: ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
    Endpoint.ANTHROPIC: ["claude-3-5-sonnet-latest", "claude-3-5-haiku-latest", "claude-3-opus-latest"],
    Endpoint.GOOGLE: ["gemini-1.5-pro", "gemini-1.5-flash"],
}

# LiteLLM provider tag -> endpoint bucket
PROVIDER_BUCKETS: dict[str, Endpoint] = {
    "openai": Endpoint.OPENAI,
    "anthropic": Endpoint.ANTHROPIC,
    "vertex_ai-anthropic_models": Endpoint.ANTHROPIC,
    "google": Endpoint.GOOGLE,
    "gemini": Endpoint.GOOGLE,
    "vertex_ai-language-models": Endpoint.GOOGLE,
    "bedrock": Endpoint.BEDROCK,
}
BUCKET_ORDER = (Endpoint.OPENAI, Endpoint.ANTHROPIC, Endpoint.GOOGLE, Endpoint.BEDROCK)


@dataclass
class ModelCatalog:
    models: dict[str, list[str]] = field(default_factory=dict)
    model_providers: dict[str, str] = field(default_factory=dict)  # model name -> LiteLLM provider

    def to_dict(self) -> dict:
        data = {endpoint: list(names) for endpoint, names in self.models.items()}
        if self.model_providers:
            data["_modelProviders"] = dict(self.model_providers)
        return data


class FetchState(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    RESOLVED = "resolved"
    FAILED_FALLBACK = "failed_fallback"


@dataclass
class _FetchJob:
    """One upstream model-list fetch, shared by every endpoint with the same key."""

    base_url: str
    api_key: str
    headers: dict[str, str]
    user_id_query: bool
    endpoints: list[str] = field(default_factory=list)
    state: FetchState = FetchState.PENDING


def load_default_models(settings: Settings) -> dict[str, list[str]]:
    """Static model lists for the built-in endpoints that have a credential."""
    sources = {
        Endpoint.OPENAI: (settings.openai_api_key, settings.openai_models_list),
        Endpoint.ANTHROPIC: (settings.anthropic_api_key, settings.anthropic_models_list),
        Endpoint.GOOGLE: (settings.google_key, settings.google_models_list),
    }
    models = {}
    for endpoint, (credential, configured) in sources.items():
        if credential:
            models[endpoint.value] = configured or list(DEFAULT_MODELS[endpoint])
    return models


def _is_litellm_endpoint(name: str) -> bool:
    return "lite" in name.lower()


def _forwards_caller_token(request: ChatRequest, app_config: AppConfig) -> bool:
    """True when a discovery fetch for this request carries the caller's token."""
    if not request.authorization:
        return False
    return any(
        e.models.fetch and e.name and _is_litellm_endpoint(normalize_endpoint_name(e.name))
        for e in app_config.custom
    )


def _fetch_headers(endpoint: CustomEndpoint, name: str, request: ChatRequest) -> dict[str, str]:
    headers = resolve_headers(endpoint.headers, request.user)
    # LiteLLM applies per-user model access, so it sees the caller's own token
    if _is_litellm_endpoint(name) and request.authorization:
        headers["Authorization"] = request.authorization
    return headers


async def _run_fetch(job: _FetchJob, request: ChatRequest, settings: Settings) -> list[str]:
    job.state = FetchState.FETCHING
    try:
        models = await fetch_models(
            base_url=job.base_url,
            api_key=job.api_key,
            user_id=request.user.id,
            user_id_query=job.user_id_query,
            headers=job.headers or None,
            timeout=settings.upstream_timeout,
        )
    except UpstreamFetchError as e:
        logger.warning(
            "Model fetch failed, using configured defaults",
            extra={"audit_data": {
                "endpoints": job.endpoints,
                "base_url": job.base_url,
                "upstream_status": e.upstream_status,
                "reason": e.reason,
            }},
        )
        models = []

    job.state = FetchState.RESOLVED if models else FetchState.FAILED_FALLBACK
    return models


async def load_config_models(request: ChatRequest, app_config: AppConfig, settings: Settings) -> dict[str, list[str]]:
    """Models for Azure groups and custom endpoints from the app config."""
    models_config: dict[str, list[str]] = {}

    azure = app_config.azureOpenAI
    if azure is not None and azure.modelNames:
        models_config[Endpoint.AZURE_OPENAI.value] = azure.modelNames
        if azure.plugins:
            models_config["gptPlugins"] = azure.modelNames
    if azure is not None and azure.assistants and azure.assistantModels:
        models_config["azureAssistants"] = list(azure.assistantModels)

    custom_endpoints = [
        e for e in app_config.custom
        if e.baseURL and e.apiKey and e.name and (e.models.fetch or e.models.default)
    ]

    endpoints_by_name: dict[str, CustomEndpoint] = {}
    jobs: dict[str, _FetchJob] = {}

    for endpoint in custom_endpoints:
        name = normalize_endpoint_name(endpoint.name)
        endpoints_by_name[name] = endpoint
        api_key = extract_env_variable(endpoint.apiKey)
        base_url = extract_env_variable(endpoint.baseURL)
        models_config[name] = []

        if endpoint.models.fetch and not is_user_provided(base_url):
            headers = _fetch_headers(endpoint, name, request)
            if is_user_provided(api_key):
                api_key = ""
            if headers or api_key:
                unique_key = f"{base_url}__{api_key}"
                job = jobs.get(unique_key)
                if job is None:
                    job = _FetchJob(
                        base_url=base_url,
                        api_key=api_key,
                        headers=headers,
                        user_id_query=endpoint.models.userIdQuery,
                    )
                    jobs[unique_key] = job
                job.endpoints.append(name)
                continue

        models_config[name] = list(endpoint.models.default)

    results = await asyncio.gather(*(_run_fetch(job, request, settings) for job in jobs.values()))

    for job, fetched in zip(jobs.values(), results):
        for name in job.endpoints:
            models_config[name] = list(fetched) if fetched else list(endpoints_by_name[name].models.default)

    logger.debug(
        "Config models loaded",
        extra={"audit_data": {
            "endpoints": list(models_config),
            "fetches": [
                {"base_url": j.base_url, "endpoints": j.endpoints, "state": j.state.value}
                for j in jobs.values()
            ],
        }},
    )
    return models_config


async def load_models(
    request: ChatRequest, cache: KeyValueCache, app_config: AppConfig, settings: Settings
) -> ModelCatalog:
    """Cached catalog of default + config models.

    A catalog fetched with the caller's token is cached for that user only.
    """
    cache_key = MODELS_CONFIG
    if _forwards_caller_token(request, app_config):
        cache_key = f"{MODELS_CONFIG}:config:{request.user.id}"

    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    models = load_default_models(settings)
    models.update(await load_config_models(request, app_config, settings))
    catalog = ModelCatalog(models=models)

    await cache.set(cache_key, catalog)
    return catalog


async def load_models_from_litellm(
    request: ChatRequest, cache: KeyValueCache, client: LiteLLMClient
) -> ModelCatalog:
    """Catalog from LiteLLM ``/model/info``, bucketed by provider.

    Results depend on the caller's token, so they are cached per user.
    A failed lookup returns an empty catalog and is not cached.
    """
    cache_key = f"{MODELS_CONFIG}:litellm:{request.user.id}"
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        data = await client.model_info(request.authorization or "")
    except UpstreamFetchError as e:
        logger.error(
            "Error fetching models from LiteLLM",
            extra={"audit_data": {"upstream_status": e.upstream_status, "reason": e.reason}},
        )
        return ModelCatalog()

    entries = data.get("data") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        logger.error("Invalid response from LiteLLM API")
        return ModelCatalog()

    buckets: dict[Endpoint, list[str]] = {endpoint: [] for endpoint in BUCKET_ORDER}
    providers: dict[str, str] = {}

    for entry in entries:
        info = entry.get("model_info") or {}
        if info.get("mode") == "embedding":
            continue
        provider = info.get("litellm_provider")
        model_name = entry.get("model_name")
        if not provider or not model_name:
            continue

        providers[model_name] = provider
        bucket = PROVIDER_BUCKETS.get(provider)
        if bucket is not None:
            buckets[bucket].append(model_name)

    catalog = ModelCatalog(
        models={endpoint.value: names for endpoint, names in buckets.items() if names},
        model_providers=providers,
    )
    logger.info(
        "Loaded endpoints from LiteLLM",
        extra={"audit_data": {"endpoints": list(catalog.models), "models": len(providers)}},
    )

    await cache.set(cache_key, catalog)
    return catalog


async def get_models_config(
    request: ChatRequest,
    cache: KeyValueCache,
    app_config: AppConfig,
    settings: Settings,
    litellm_client: LiteLLMClient | None = None,
) -> ModelCatalog:
    """LiteLLM catalog when a gateway is configured, else the config catalog."""
    if settings.litellm_url and litellm_client is not None:
        return await load_models_from_litellm(request, cache, litellm_client)
    return await load_models(request, cache, app_config, settings)
