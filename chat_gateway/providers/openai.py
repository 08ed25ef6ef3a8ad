"""OpenAI-compatible provider: OpenAI, Azure deployments, custom endpoints, LiteLLM."""

import httpx
from fastapi import HTTPException

from chat_gateway.providers.base import LLMProvider, ProviderResponse
from chat_gateway.resolution.options import ClientOptions

DEFAULT_BASE_URL = "https://api.openai.com/v1"
AZURE_DEPLOYMENT_URL = "https://{instance}.openai.azure.com/openai/deployments/{deployment}"

# Client-side switches in model options that are not Chat Completions parameters
CLIENT_ONLY_PARAMS = frozenset({"streaming", "stream", "thinking", "thinkingBudget", "promptCache", "web_search"})


class OpenAIProvider(LLMProvider):
    """Forwards requests to OpenAI-compatible APIs."""

    def __init__(self, timeout: float = 60.0):
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=10.0))
        return self._client

    @staticmethod
    def _build_url(options: ClientOptions) -> tuple[str, dict | None]:
        azure = options.azure or {}
        version = azure.get("azureOpenAIApiVersion")

        if azure and not options.reverse_proxy_url:
            base = AZURE_DEPLOYMENT_URL.format(
                instance=azure.get("azureOpenAIApiInstanceName", ""),
                deployment=azure.get("azureOpenAIApiDeploymentName", ""),
            )
            return f"{base}/chat/completions", {"api-version": version} if version else None

        base = (options.reverse_proxy_url or DEFAULT_BASE_URL).rstrip("/")
        if options.default_query:
            return f"{base}/chat/completions", dict(options.default_query)
        return f"{base}/chat/completions", {"api-version": version} if version else None

    @staticmethod
    def _build_headers(options: ClientOptions) -> dict:
        headers = {"Content-Type": "application/json", **options.headers}
        if options.azure or options.serverless:
            headers.setdefault("api-key", options.api_key)
        else:
            # OpenID requests forward the caller's header untouched
            headers["Authorization"] = options.auth_header or f"Bearer {options.api_key}"
        return headers

    @staticmethod
    def _build_body(body: dict, options: ClientOptions) -> dict:
        """Only the conversation comes from the body; parameters and model are the resolved ones."""
        payload = {k: v for k, v in options.model_options.items() if k not in CLIENT_ONLY_PARAMS}
        payload["messages"] = body.get("messages", [])
        payload["model"] = options.model
        payload["stream"] = False
        return payload

    async def chat_completion(self, body: dict, options: ClientOptions) -> ProviderResponse:
        url, params = self._build_url(options)
        headers = self._build_headers(options)
        payload = self._build_body(body, options)

        client = await self._get_client()
        try:
            response = await client.post(url, json=payload, headers=headers, params=params)
            return ProviderResponse(status_code=response.status_code, body=response.json())
        except httpx.ConnectError:
            raise HTTPException(status_code=502, detail="Cannot reach upstream provider")
        except httpx.TimeoutException:
            raise HTTPException(status_code=504, detail="Upstream provider timed out")
        except httpx.HTTPError as e:
            raise HTTPException(status_code=502, detail=f"Upstream error: {e}")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
