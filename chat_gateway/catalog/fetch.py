"""Model list discovery against OpenAI-compatible endpoints."""

import httpx

from chat_gateway.errors import UpstreamFetchError


async def fetch_models(
    *,
    base_url: str,
    api_key: str = "",
    user_id: str | None = None,
    user_id_query: bool = False,
    headers: dict[str, str] | None = None,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[str]:
    """GET ``{base_url}/models`` and return the model ids.

    Resolved ``headers`` are layered over ``Authorization: Bearer <key>``.

    Raises:
        UpstreamFetchError: network failure, non-2xx status or unreadable body.
    """
    url = f"{base_url.rstrip('/')}/models"
    request_headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    request_headers.update(headers or {})
    params = {"user": user_id} if user_id_query and user_id else None

    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport) as client:
        try:
            response = await client.get(url, headers=request_headers, params=params)
        except httpx.ConnectError as e:
            raise UpstreamFetchError(f"Cannot reach {url}", detail=str(e), reason="unreachable")
        except httpx.TimeoutException as e:
            raise UpstreamFetchError(f"Timed out fetching {url}", detail=str(e), reason="timeout")
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"Error fetching {url}: {e}", reason="unreachable")

    if response.status_code >= 400:
        raise UpstreamFetchError(
            f"Model list request to {url} failed",
            status_code=response.status_code,
            detail=response.text[:500],
        )

    try:
        payload = response.json()
    except ValueError:
        raise UpstreamFetchError(f"Invalid JSON from {url}", status_code=response.status_code, reason="invalid")

    entries = payload.get("data", []) if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        return []

    models = []
    for entry in entries:
        if isinstance(entry, str):
            models.append(entry)
        elif isinstance(entry, dict) and entry.get("id"):
            models.append(entry["id"])
    return models
