"""HTTP client for the LiteLLM gateway's management API.

Every call forwards the caller's own Authorization header, so LiteLLM
applies that user's permissions to key, usage and model lookups.
"""

import logging
from typing import Any

import httpx

from chat_gateway.config.settings import get_settings
from chat_gateway.errors import UpstreamFetchError

logger = logging.getLogger("chat_gateway.litellm")


def _error_message(response: httpx.Response) -> str:
    """Pull the most specific message out of a LiteLLM error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    if not isinstance(data, dict):
        return str(data)
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if error:
        return str(error)
    return str(data.get("message") or data.get("detail") or data)


class LiteLLMClient:
    """Thin async wrapper over the LiteLLM REST endpoints used by the app."""

    def __init__(self, base_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, path: str, authorization: str, **kwargs) -> Any:
        headers = {"Authorization": authorization, "Content-Type": "application/json"}
        client = await self._get_client()
        try:
            response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.ConnectError as e:
            raise UpstreamFetchError("LiteLLM server is not reachable", detail=str(e), reason="unreachable")
        except httpx.TimeoutException as e:
            raise UpstreamFetchError("LiteLLM request timeout", detail=str(e), reason="timeout")
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"LiteLLM error: {e}", reason="unreachable")

        if response.status_code >= 400:
            detail = _error_message(response)
            logger.warning(
                "LiteLLM request failed",
                extra={"audit_data": {"path": path, "status": response.status_code, "detail": detail}},
            )
            raise UpstreamFetchError(
                f"LiteLLM {method} {path} failed", status_code=response.status_code, detail=detail
            )

        try:
            return response.json()
        except ValueError:
            raise UpstreamFetchError(
                f"Invalid JSON from LiteLLM {path}", status_code=response.status_code, reason="invalid"
            )

    async def model_info(self, authorization: str) -> dict:
        return await self._request("GET", "/model/info", authorization)

    async def list_keys(self, authorization: str) -> dict:
        return await self._request(
            "GET", "/key/list", authorization, params={"return_full_object": "true"}
        )

    async def generate_key(
        self, authorization: str, key_alias: str | None, duration: str | None, user_id: str
    ) -> dict:
        payload = {"key_alias": key_alias, "duration": duration, "user_id": user_id}
        return await self._request("POST", "/key/generate", authorization, json=payload)

    async def delete_key(self, authorization: str, key_alias: str) -> dict:
        payload = {"key_aliases": [key_alias.strip()]}
        return await self._request("POST", "/key/delete", authorization, json=payload)

    async def daily_activity(
        self, authorization: str, start_date: str | None = None, end_date: str | None = None
    ) -> dict:
        params = {}
        if start_date:
            params["start_date"] = start_date
        if end_date:
            params["end_date"] = end_date
        return await self._request("GET", "/user/daily/activity", authorization, params=params)

    async def list_guardrails(self, authorization: str) -> list:
        """Available guardrails; an empty list when LiteLLM can't be asked."""
        try:
            data = await self._request("GET", "/guardrails/list", authorization)
        except UpstreamFetchError as e:
            logger.warning("Failed to fetch guardrails", extra={"audit_data": {"error": e.message}})
            return []
        return data.get("guardrails", []) if isinstance(data, dict) else []

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


_client: LiteLLMClient | None = None


def get_litellm_client() -> LiteLLMClient | None:
    """LiteLLM client singleton, or None when LITELLM_URL is not configured."""
    global _client
    settings = get_settings()
    if not settings.litellm_url:
        return None
    if _client is None or _client.base_url != settings.litellm_url.rstrip("/"):
        _client = LiteLLMClient(settings.litellm_url, timeout=settings.upstream_timeout)
    return _client


async def close_litellm_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
