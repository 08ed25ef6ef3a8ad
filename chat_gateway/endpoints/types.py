"""Provider endpoint families and the tagged reference used for dispatch."""

from dataclasses import dataclass
from enum import Enum

from chat_gateway.errors import UnknownEndpointError


class Endpoint(str, Enum):
    OPENAI = "openAI"
    AZURE_OPENAI = "azureOpenAI"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    BEDROCK = "bedrock"
    CUSTOM = "custom"


@dataclass(frozen=True)
class EndpointRef:
    kind: Endpoint
    name: str  # configured name for custom endpoints, enum value otherwise

    @property
    def is_custom(self) -> bool:
        return self.kind is Endpoint.CUSTOM


def normalize_endpoint_name(name: str) -> str:
    """Collapse the many spellings of Ollama endpoints onto one key."""
    if name.lower().startswith("ollama"):
        return "ollama"
    return name


def parse_endpoint(name: str, custom_names: list[str] | None = None) -> EndpointRef:
    """Resolve a request's ``endpoint`` string to an EndpointRef."""
    if not name:
        raise UnknownEndpointError("Endpoint not provided")

    for member in Endpoint:
        if member is not Endpoint.CUSTOM and member.value == name:
            return EndpointRef(kind=member, name=member.value)

    normalized = normalize_endpoint_name(name)
    for custom in custom_names or []:
        if normalize_endpoint_name(custom) == normalized:
            return EndpointRef(kind=Endpoint.CUSTOM, name=normalized)

    raise UnknownEndpointError(f"Unknown endpoint: {name}")
