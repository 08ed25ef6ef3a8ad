"""Provider-specific projections of ClientOptions ("options only" mode).

Both functions are pure: they build new dicts and never open connections,
so the resolved configuration can be inspected and tested without a client.
"""

import re

from chat_gateway.resolution.options import ClientOptions

ANTHROPIC_DEFAULT_MODEL = "claude-3-5-sonnet-latest"
ANTHROPIC_DEFAULT_MAX_TOKENS = 8192
ANTHROPIC_DEFAULT_THINKING_BUDGET = 2000
PROMPT_CACHING_BETA = "prompt-caching-2024-07-31"

_CLAUDE_37 = re.compile(r"claude-3[-.]7")
_THINKING_MODELS = re.compile(r"claude-3[-.]7|claude-(?:sonnet|opus|haiku)-[4-9]|claude-[4-9]")
_PROMPT_CACHE_MODELS = re.compile(
    r"claude-3[-.]5-(?:sonnet|haiku)|claude-3-(?:haiku|opus)|claude-3[-.]7"
    r"|claude-(?:sonnet|opus|haiku)-[4-9]|claude-[4-9]"
)


def _without_nullish(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def get_openai_config(options: ClientOptions) -> dict:
    """Config for OpenAI-compatible clients (OpenAI, Azure, custom, LiteLLM)."""
    llm_config = {"streaming": options.streaming, "apiKey": options.api_key}
    llm_config.update(options.model_options)
    if options.azure:
        llm_config.update(options.azure)
    if options.serverless:
        llm_config["useLegacyContent"] = True

    configuration = {}
    if options.reverse_proxy_url:
        configuration["baseURL"] = options.reverse_proxy_url
    headers = dict(options.headers)
    if options.auth_header:
        headers["Authorization"] = options.auth_header
    if headers:
        configuration["defaultHeaders"] = headers
    if options.default_query:
        configuration["defaultQuery"] = dict(options.default_query)
    if options.proxy:
        configuration["proxy"] = options.proxy

    result = {"llmConfig": _without_nullish(llm_config), "configuration": configuration}
    if options.stream_rate:
        result["streamRate"] = options.stream_rate
    return result


def get_anthropic_config(options: ClientOptions) -> dict:
    """Config for the Anthropic Messages client."""
    model_options = dict(options.model_options)
    thinking = model_options.pop("thinking", True)
    prompt_cache = model_options.pop("promptCache", True)
    thinking_budget = model_options.pop("thinkingBudget", ANTHROPIC_DEFAULT_THINKING_BUDGET)
    guardrails = model_options.pop("guardrails", None)

    model = model_options.get("model") or ANTHROPIC_DEFAULT_MODEL
    max_tokens = model_options.get("maxOutputTokens") or ANTHROPIC_DEFAULT_MAX_TOKENS

    invocation_kwargs = {"metadata": {"user_id": model_options.get("user")}}
    # Guardrails travel in the request body so LiteLLM can enforce them
    if guardrails:
        invocation_kwargs["guardrails"] = guardrails

    llm_config = {
        "apiKey": options.api_key,
        "model": model,
        "stream": model_options.get("stream", options.streaming),
        "temperature": model_options.get("temperature"),
        "stopSequences": model_options.get("stop"),
        "maxTokens": max_tokens,
        "clientOptions": {},
        "invocationKwargs": invocation_kwargs,
    }

    if thinking and _THINKING_MODELS.search(model):
        llm_config["thinking"] = {
            "type": "enabled",
            "budget_tokens": min(thinking_budget, max_tokens - 1),
        }

    if not _CLAUDE_37.search(model) or "thinking" not in llm_config:
        llm_config["topP"] = model_options.get("topP")
        llm_config["topK"] = model_options.get("topK")

    client_options = llm_config["clientOptions"]
    headers = dict(options.headers)
    if prompt_cache and _PROMPT_CACHE_MODELS.search(model):
        headers["anthropic-beta"] = PROMPT_CACHING_BETA
    if headers:
        client_options["defaultHeaders"] = headers
    if options.proxy:
        client_options["proxy"] = options.proxy
    if options.reverse_proxy_url:
        client_options["baseURL"] = options.reverse_proxy_url
        llm_config["anthropicApiUrl"] = options.reverse_proxy_url

    tools = []
    if model_options.get("web_search"):
        tools.append({"type": "web_search_20250305", "name": "web_search"})

    result = {"llmConfig": _without_nullish(llm_config), "tools": tools}
    if options.stream_rate:
        result["streamRate"] = options.stream_rate
    return result
