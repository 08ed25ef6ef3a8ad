"""Domain errors raised while resolving endpoint credentials and options.

Each error carries a machine-readable ``error_type`` so the frontend can
prompt the user to re-enter a key instead of showing a generic failure.
"""


class GatewayError(Exception):
    """Base class for resolution errors surfaced to the caller."""

    error_type = "gateway_error"
    status_code = 400

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"type": self.error_type, "message": self.message, **self.extra}


class MissingAPIKeyError(GatewayError):
    error_type = "missing_api_key"


class NoUserKeyError(GatewayError):
    error_type = "no_user_key"


class ExpiredUserKeyError(NoUserKeyError):
    error_type = "expired_user_key"

    def __init__(self, endpoint: str, expired_at: str):
        super().__init__(
            f"{endpoint} user key expired at {expired_at}. Please provide it again.",
            expiredAt=expired_at,
            endpoint=endpoint,
        )


class InvalidKeyExpiryError(GatewayError):
    error_type = "invalid_key_expiry"

    def __init__(self, value):
        super().__init__(f"Invalid key expiry {value!r}: expected an ISO-8601 timestamp.", expiresAt=value)


class MissingAuthHeaderError(GatewayError):
    error_type = "missing_auth_header"
    status_code = 401


class UnknownModelGroupError(GatewayError):
    error_type = "unknown_model_group"


class UnknownEndpointError(GatewayError):
    error_type = "unknown_endpoint"


class UpstreamFetchError(GatewayError):
    """Non-2xx response or network failure from a provider or the gateway."""

    error_type = "upstream_fetch_error"
    status_code = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str = "",
        reason: str = "status",  # "status" | "unreachable" | "timeout" | "invalid"
    ):
        super().__init__(message, upstream_status=status_code, detail=detail)
        self.upstream_status = status_code
        self.detail = detail
        self.reason = reason
