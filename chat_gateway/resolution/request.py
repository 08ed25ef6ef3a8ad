"""Immutable request inputs consumed by the resolution layer."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str = ""
    role: str = "USER"


@dataclass(frozen=True)
class ChatRequest:
    """The parts of an inbound chat request that drive client resolution."""

    user: AuthenticatedUser
    endpoint: str = ""
    model: str = ""
    model_parameters: dict = field(default_factory=dict)
    key: str | None = None  # user key expiry marker sent by the frontend
    authorization: str | None = None  # raw Authorization header

    @classmethod
    def from_body(cls, body: dict, user: AuthenticatedUser, authorization: str | None) -> "ChatRequest":
        return cls(
            user=user,
            endpoint=body.get("endpoint", ""),
            model=body.get("model", "") or "",
            model_parameters=dict(body.get("model_parameters") or {}),
            key=body.get("key"),
            authorization=authorization,
        )
