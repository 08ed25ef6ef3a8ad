"""Anthropic Messages API provider — translates OpenAI format to/from Messages."""

import time

import httpx
from fastapi import HTTPException

from chat_gateway.providers.base import LLMProvider, ProviderResponse
from chat_gateway.resolution.llm_config import get_anthropic_config
from chat_gateway.resolution.options import ClientOptions

DEFAULT_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"

# llmConfig field -> Messages API parameter
WIRE_PARAMS = (
    ("temperature", "temperature"),
    ("topP", "top_p"),
    ("topK", "top_k"),
    ("thinking", "thinking"),
)


class AnthropicProvider(LLMProvider):
    """Sends requests to the Anthropic Messages API (directly or via LiteLLM)."""

    def __init__(self, timeout: float = 60.0):
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=10.0))
        return self._client

    @staticmethod
    def _translate_request(body: dict, options: ClientOptions) -> dict:
        """Messages params: the conversation from the body, everything else from the resolved options."""
        projection = get_anthropic_config(options)
        llm_config = projection["llmConfig"]

        # Separate system messages from conversation messages
        system_parts = []
        messages = []
        for msg in body.get("messages", []):
            if msg.get("role") == "system":
                system_parts.append(msg["content"])
            else:
                messages.append({"role": msg["role"], "content": msg["content"]})

        payload = {
            "model": llm_config["model"],
            "messages": messages,
            "max_tokens": llm_config["maxTokens"],
            **llm_config["invocationKwargs"],
        }
        if system_parts:
            payload["system"] = "\n".join(system_parts)

        for source, target in WIRE_PARAMS:
            if source in llm_config:
                payload[target] = llm_config[source]
        stop = llm_config.get("stopSequences")
        if stop:
            payload["stop_sequences"] = [stop] if isinstance(stop, str) else list(stop)
        if projection["tools"]:
            payload["tools"] = projection["tools"]

        return payload

    @staticmethod
    def _translate_response(response: dict, model: str) -> dict:
        """Translate a Messages response to OpenAI-compatible format."""
        text = "".join(
            block.get("text", "") for block in response.get("content", []) if block.get("type") == "text"
        )
        finish_reason = "length" if response.get("stop_reason") == "max_tokens" else "stop"
        usage = response.get("usage", {})

        return {
            "id": response.get("id", f"anthropic-{int(time.time())}"),
            "object": "chat.completion",
            "created": int(time.time()),
            "model": response.get("model", model),
            "choices": [{
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": finish_reason,
            }],
            "usage": {
                "prompt_tokens": usage.get("input_tokens", 0),
                "completion_tokens": usage.get("output_tokens", 0),
                "total_tokens": usage.get("input_tokens", 0) + usage.get("output_tokens", 0),
            },
        }

    @staticmethod
    def _build_headers(options: ClientOptions) -> dict:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
            "x-api-key": options.api_key,
            **options.headers,
        }
        if options.auth_header:
            headers["Authorization"] = options.auth_header
        return headers

    async def chat_completion(self, body: dict, options: ClientOptions) -> ProviderResponse:
        base = (options.reverse_proxy_url or DEFAULT_BASE_URL).rstrip("/")
        payload = self._translate_request(body, options)

        client = await self._get_client()
        try:
            response = await client.post(
                f"{base}/v1/messages", json=payload, headers=self._build_headers(options)
            )
            data = response.json()
        except httpx.ConnectError:
            raise HTTPException(status_code=502, detail="Cannot reach upstream provider")
        except httpx.TimeoutException:
            raise HTTPException(status_code=504, detail="Upstream provider timed out")
        except httpx.HTTPError as e:
            raise HTTPException(status_code=502, detail=f"Upstream error: {e}")

        if response.status_code != 200:
            return ProviderResponse(status_code=response.status_code, body=data)
        return ProviderResponse(status_code=200, body=self._translate_response(data, payload["model"]))

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
