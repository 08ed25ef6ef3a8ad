"""Chat Gateway — FastAPI application entry point.

Resolves per-request endpoint credentials and client options, serves the
model catalog, and manages user-provided and LiteLLM virtual keys.
"""

import json
from contextlib import asynccontextmanager

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from chat_gateway.catalog.cache import KeyValueCache, MemoryCache
from chat_gateway.catalog.loader import get_models_config
from chat_gateway.catalog.routing import route_vertex_anthropic
from chat_gateway.config.app_config import AppConfig, get_app_config
from chat_gateway.config.settings import Settings, get_settings
from chat_gateway.errors import GatewayError, UpstreamFetchError
from chat_gateway.litellm_proxy.client import LiteLLMClient, close_litellm_client, get_litellm_client
from chat_gateway.logging.audit import (
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    mask_secret,
    request_id_var,
    setup_logging,
)
from chat_gateway.proxy.handler import close_client, forward_to_provider
from chat_gateway.resolution.initialize import LLM_CONFIG_BUILDERS, resolve_client
from chat_gateway.resolution.options import effective_model
from chat_gateway.resolution.request import AuthenticatedUser, ChatRequest
from chat_gateway.security.auth import require_user
from chat_gateway.users.factory import get_user_key_store
from chat_gateway.users.models import parse_expiry
from chat_gateway.users.store import UserKeyStore

VERSION = "0.1.0"

_models_cache: MemoryCache | None = None


def get_models_cache() -> KeyValueCache:
    """Process-wide catalog cache; TTL from MODELS_CACHE_TTL (0 = no expiry)."""
    global _models_cache
    if _models_cache is None:
        _models_cache = MemoryCache(ttl=get_settings().models_cache_ttl)
    return _models_cache


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging()
    get_audit_logger().info("Gateway started", extra={"audit_data": {"version": VERSION}})
    yield
    await close_client()
    await close_litellm_client()
    get_audit_logger().info("Gateway stopped")


app = FastAPI(
    title="Chat Gateway",
    description="Endpoint credential and model catalog resolution for chat clients",
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    get_audit_logger().warning(
        "Request rejected",
        extra={"audit_data": {"path": request.url.path, "error_type": exc.error_type}},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def _chat_request(request: Request, user: AuthenticatedUser, body: dict | None = None) -> ChatRequest:
    authorization = request.headers.get("authorization")
    if body is None:
        return ChatRequest(user=user, authorization=authorization)
    return ChatRequest.from_body(body, user, authorization)


def _require_litellm(client: LiteLLMClient | None) -> LiteLLMClient:
    if client is None:
        raise HTTPException(status_code=500, detail="LITELLM_URL not configured")
    return client


def _litellm_http_error(exc: UpstreamFetchError) -> HTTPException:
    """Translate a LiteLLM failure into the status the caller should see."""
    if exc.reason == "unreachable":
        return HTTPException(status_code=503, detail="LiteLLM server is not reachable")
    if exc.reason == "timeout":
        return HTTPException(status_code=504, detail="LiteLLM request timeout")
    if exc.upstream_status in (401, 403, 404):
        return HTTPException(status_code=exc.upstream_status, detail=exc.detail or exc.message)
    return HTTPException(status_code=502, detail=exc.detail or exc.message)


async def _call_litellm(call):
    try:
        return await call
    except UpstreamFetchError as e:
        raise _litellm_http_error(e) from e


def _redact_llm_config(config: dict) -> dict:
    """Mask the resolved key before handing the config back to the caller."""
    llm_config = dict(config.get("llmConfig", {}))
    for name in ("apiKey", "azureOpenAIApiKey"):
        if llm_config.get(name):
            llm_config[name] = mask_secret(llm_config[name])
    return {**config, "llmConfig": llm_config}


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


# --- Model catalog ---


@app.get("/api/models")
async def list_models(
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
    settings: Settings = Depends(get_settings),
    app_config: AppConfig = Depends(get_app_config),
    cache: KeyValueCache = Depends(get_models_cache),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    catalog = await get_models_config(_chat_request(request, user), cache, app_config, settings, litellm)
    return catalog.to_dict()


@app.get("/api/models/config")
async def models_config(
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    """Raw LiteLLM model info, for clients that need per-model metadata."""
    client = _require_litellm(litellm)
    return await _call_litellm(client.model_info(request.headers.get("authorization", "")))


# --- Client resolution ---


async def _resolve_for_body(
    request: Request,
    body: dict,
    user: AuthenticatedUser,
    settings: Settings,
    app_config: AppConfig,
    user_keys: UserKeyStore,
    cache: KeyValueCache,
    litellm: LiteLLMClient | None,
):
    chat_request = _chat_request(request, user, body)
    model = effective_model(chat_request.model, chat_request.model_parameters)
    endpoint = await route_vertex_anthropic(
        chat_request.endpoint,
        model,
        lambda: get_models_config(chat_request, cache, app_config, settings, litellm),
    )
    ref, options = await resolve_client(
        endpoint, chat_request, settings=settings, app_config=app_config, user_keys=user_keys
    )
    return chat_request, ref, options


@app.post("/api/endpoints/options")
async def endpoint_options(
    request: Request,
    body: dict = Body(...),
    user: AuthenticatedUser = Depends(require_user),
    settings: Settings = Depends(get_settings),
    app_config: AppConfig = Depends(get_app_config),
    user_keys: UserKeyStore = Depends(get_user_key_store),
    cache: KeyValueCache = Depends(get_models_cache),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    """Options-only resolution: the provider config a client would be built from."""
    _, ref, options = await _resolve_for_body(
        request, body, user, settings, app_config, user_keys, cache, litellm
    )
    config = LLM_CONFIG_BUILDERS[ref.kind](options)
    return {"endpoint": ref.name, **_redact_llm_config(config)}


@app.post("/api/ask")
async def ask(
    request: Request,
    body: dict = Body(...),
    user: AuthenticatedUser = Depends(require_user),
    settings: Settings = Depends(get_settings),
    app_config: AppConfig = Depends(get_app_config),
    user_keys: UserKeyStore = Depends(get_user_key_store),
    cache: KeyValueCache = Depends(get_models_cache),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    """Resolve the endpoint's client options and forward one chat completion."""
    logger = get_audit_logger()
    rid = generate_request_id()
    request_id_var.set(rid)

    chat_request, ref, options = await _resolve_for_body(
        request, body, user, settings, app_config, user_keys, cache, litellm
    )
    # Parameters travel in options.model_options; the body carries the conversation only
    completion = {"messages": body.get("messages", [])}

    with RequestTimer() as timer:
        result = await forward_to_provider(ref.kind, completion, options)

    logger.info(
        "Request proxied",
        extra={"audit_data": {
            "user_id": user.id,
            "endpoint": ref.name,
            "model": options.model,
            "api_key": mask_secret(options.api_key),
            "upstream_status": result.status_code,
            "latency_ms": timer.elapsed_ms,
        }},
    )

    return JSONResponse(
        status_code=result.status_code,
        content=result.body,
        headers={"X-Request-Id": rid},
    )


# --- User-provided keys ---


def _parse_key_value(value) -> dict:
    """Key values arrive as a JSON object, a JSON string, or a bare key."""
    if isinstance(value, dict):
        return value
    if not isinstance(value, str) or not value:
        raise HTTPException(status_code=400, detail="Key value is required")
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return {"apiKey": value}
    return parsed if isinstance(parsed, dict) else {"apiKey": value}


@app.put("/api/keys", status_code=201)
async def update_key(
    body: dict = Body(...),
    user: AuthenticatedUser = Depends(require_user),
    user_keys: UserKeyStore = Depends(get_user_key_store),
):
    name = body.get("name")
    if not name:
        raise HTTPException(status_code=400, detail="Key name is required")
    # Unparsable timestamps are rejected before anything is stored
    if body.get("expiresAt") is not None:
        parse_expiry(body["expiresAt"])
    await user_keys.update_user_key(
        user.id, name, _parse_key_value(body.get("value")), body.get("expiresAt")
    )
    get_audit_logger().info(
        "User key updated",
        extra={"audit_data": {"user_id": user.id, "endpoint": name, "expires_at": body.get("expiresAt")}},
    )
    return {"name": name, "expiresAt": body.get("expiresAt")}


@app.get("/api/keys")
async def get_key_expiry(
    name: str = Query(...),
    user: AuthenticatedUser = Depends(require_user),
    user_keys: UserKeyStore = Depends(get_user_key_store),
):
    return await user_keys.get_user_key_expiry(user.id, name)


@app.delete("/api/keys/delete/{key_alias}")
async def delete_virtual_key(
    key_alias: str,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    if not key_alias.strip():
        raise HTTPException(status_code=400, detail="Key alias is required")
    client = _require_litellm(litellm)
    return await _call_litellm(client.delete_key(request.headers.get("authorization", ""), key_alias))


@app.delete("/api/keys/{name}", status_code=204)
async def delete_key(
    name: str,
    user: AuthenticatedUser = Depends(require_user),
    user_keys: UserKeyStore = Depends(get_user_key_store),
):
    await user_keys.delete_user_key(user.id, name=name)


@app.delete("/api/keys", status_code=204)
async def delete_all_keys(
    all: bool = Query(False),
    user: AuthenticatedUser = Depends(require_user),
    user_keys: UserKeyStore = Depends(get_user_key_store),
):
    if not all:
        raise HTTPException(status_code=400, detail="Specify either all=true to delete all keys.")
    await user_keys.delete_user_key(user.id, all=True)


# --- LiteLLM virtual keys, usage and guardrails ---


@app.get("/api/keys/list")
async def list_virtual_keys(
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    client = _require_litellm(litellm)
    return await _call_litellm(client.list_keys(request.headers.get("authorization", "")))


@app.post("/api/keys/generate")
async def generate_virtual_key(
    request: Request,
    body: dict | None = Body(None),
    user: AuthenticatedUser = Depends(require_user),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    client = _require_litellm(litellm)
    body = body or {}
    return await _call_litellm(client.generate_key(
        request.headers.get("authorization", ""),
        key_alias=body.get("key_alias"),
        duration=body.get("duration"),
        user_id=user.id,
    ))


@app.get("/api/usage")
async def usage(
    request: Request,
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    user: AuthenticatedUser = Depends(require_user),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    client = _require_litellm(litellm)
    return await _call_litellm(
        client.daily_activity(request.headers.get("authorization", ""), start_date, end_date)
    )


@app.get("/api/guardrails")
async def guardrails(
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
    litellm: LiteLLMClient | None = Depends(get_litellm_client),
):
    if litellm is None:
        raise HTTPException(status_code=400, detail="LiteLLM is not configured")
    return {"guardrails": await litellm.list_guardrails(request.headers.get("authorization", ""))}


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("chat_gateway.main:app", host=settings.host, port=settings.port)
