"""Helpers for config values that reference the environment or the caller."""

import os
import re

from chat_gateway.resolution.request import AuthenticatedUser

USER_PROVIDED = "user_provided"
OPENID = "openid"

_ENV_VAR = re.compile(r"^\$\{(\w+)\}$")


def is_user_provided(value: str | None) -> bool:
    return value == USER_PROVIDED


def extract_env_variable(value: str | None) -> str:
    """Expand a whole-value ``${VAR}`` reference; unset variables keep the literal."""
    if not value:
        return ""
    match = _ENV_VAR.match(value.strip())
    if match:
        return os.environ.get(match.group(1)) or value
    return value


def resolve_headers(headers: dict[str, str] | None, user: AuthenticatedUser | None = None) -> dict[str, str]:
    """Return a new header dict with env references and user placeholders filled in."""
    resolved = {}
    for name, value in (headers or {}).items():
        value = extract_env_variable(value)
        if user is not None:
            value = value.replace("{{LIBRECHAT_USER_ID}}", user.id)
            value = value.replace("{{LIBRECHAT_USER_EMAIL}}", user.email)
        resolved[name] = value
    return resolved
