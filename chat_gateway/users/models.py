"""User-provided key model and expiry checks."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from chat_gateway.errors import ExpiredUserKeyError, InvalidKeyExpiryError


@dataclass
class UserKey:
    user_id: str
    name: str  # endpoint name the key belongs to
    value: dict = field(default_factory=dict)  # {"apiKey": ..., "baseURL": ...}
    expires_at: str | None = None  # ISO-8601, None = never expires

    def is_expired(self, now: datetime | None = None) -> bool:
        if not self.expires_at:
            return False
        return parse_expiry(self.expires_at) <= (now or datetime.now(timezone.utc))


def parse_expiry(value: str | datetime) -> datetime:
    """ISO-8601 expiry as an aware datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidKeyExpiryError(value) from None
    else:
        raise InvalidKeyExpiryError(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def check_user_key_expiry(expires_at: str | datetime, endpoint: str) -> None:
    """Raise ExpiredUserKeyError if the expiry marker lies in the past."""
    expiry = parse_expiry(expires_at)
    if expiry <= datetime.now(timezone.utc):
        raise ExpiredUserKeyError(endpoint=endpoint, expired_at=expiry.isoformat())
