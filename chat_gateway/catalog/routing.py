"""Reroute Anthropic models hosted on Vertex AI to the Google client."""

import logging
from collections.abc import Awaitable, Callable

import httpx

from chat_gateway.catalog.loader import ModelCatalog
from chat_gateway.endpoints.types import Endpoint
from chat_gateway.errors import GatewayError

logger = logging.getLogger("chat_gateway.routing")

VERTEX_ANTHROPIC_PROVIDER = "vertex_ai-anthropic_models"


async def route_vertex_anthropic(
    endpoint: str,
    model: str,
    load_catalog: Callable[[], Awaitable[ModelCatalog]],
) -> str:
    """Return the endpoint a request should use.

    Only Anthropic requests are inspected; if the catalog can't be loaded the
    endpoint is left unchanged.
    """
    if not model or endpoint != Endpoint.ANTHROPIC.value:
        return endpoint

    try:
        catalog = await load_catalog()
    except (GatewayError, httpx.HTTPError) as e:
        logger.warning(
            "Error checking model provider",
            extra={"audit_data": {"model": model, "error": str(e)}},
        )
        return endpoint

    if catalog.model_providers.get(model) == VERTEX_ANTHROPIC_PROVIDER:
        logger.info(
            "Routing Vertex AI Anthropic model to Google endpoint",
            extra={"audit_data": {"model": model, "provider": VERTEX_ANTHROPIC_PROVIDER}},
        )
        return Endpoint.GOOGLE.value
    return endpoint
