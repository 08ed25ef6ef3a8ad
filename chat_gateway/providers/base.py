"""Abstract base for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from chat_gateway.resolution.options import ClientOptions


@dataclass
class ProviderResponse:
    status_code: int
    body: dict


class LLMProvider(ABC):
    """Base class for provider clients driven by resolved ClientOptions."""

    @abstractmethod
    async def chat_completion(self, body: dict, options: ClientOptions) -> ProviderResponse:
        """Send a chat completion request to the provider.

        Args:
            body: OpenAI-compatible request body.
            options: Resolved credentials, base URL, headers and model options.

        Returns:
            ProviderResponse with status code and an OpenAI-shaped body.
        """
        ...

    async def close(self) -> None:
        """Cleanup resources. Override if provider holds connections."""
        pass
