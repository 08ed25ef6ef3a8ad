"""Factory for user key store backends."""

from chat_gateway.config.settings import get_settings
from chat_gateway.users.store import JSONUserKeyStore, UserKeyStore

_store: UserKeyStore | None = None


def get_user_key_store() -> UserKeyStore:
    """Get the user key store singleton."""
    global _store
    if _store is not None:
        return _store

    settings = get_settings()
    backend = settings.user_key_store_backend

    if backend == "dynamodb":
        # Lazy import to avoid boto3 dependency when not needed
        from chat_gateway.users.dynamodb_store import DynamoDBUserKeyStore
        _store = DynamoDBUserKeyStore(
            table_name=settings.dynamodb_table_name,
            region=settings.aws_region,
        )
        return _store

    if backend != "json":
        raise ValueError(f"Unknown user key store backend: {backend}")

    _store = JSONUserKeyStore(settings.user_key_store_path)
    return _store
