"""DynamoDB-backed user key store with in-memory TTL cache."""

import asyncio
import json
import time

from chat_gateway.users.models import UserKey
from chat_gateway.users.store import UserKeyStore


class DynamoDBUserKeyStore(UserKeyStore):
    """Keys live in a table with partition key user_id and sort key name."""

    CACHE_TTL = 60

    def __init__(self, table_name: str, region: str = "us-east-1"):
        self._table_name = table_name
        self._region = region
        self._table = None
        self._cache: dict[tuple[str, str], tuple[UserKey, float]] = {}

    def _get_table(self):
        """Lazy-init boto3 Table resource."""
        if self._table is None:
            import boto3

            dynamodb = boto3.resource("dynamodb", region_name=self._region)
            self._table = dynamodb.Table(self._table_name)
        return self._table

    async def get_user_key(self, user_id: str, name: str) -> UserKey | None:
        cache_key = (user_id, name)
        if cache_key in self._cache:
            key, expires_at = self._cache[cache_key]
            if time.monotonic() < expires_at:
                return key
            del self._cache[cache_key]

        result = await asyncio.to_thread(self._get_item, user_id, name)

        # Only cache hits so a freshly stored key is picked up immediately
        if result is not None:
            self._cache[cache_key] = (result, time.monotonic() + self.CACHE_TTL)

        return result

    def _get_item(self, user_id: str, name: str) -> UserKey | None:
        resp = self._get_table().get_item(Key={"user_id": user_id, "name": name})
        item = resp.get("Item")
        if not item:
            return None
        return UserKey(
            user_id=item["user_id"],
            name=item["name"],
            value=json.loads(item.get("value", "{}")),
            expires_at=item.get("expires_at"),
        )

    async def update_user_key(
        self, user_id: str, name: str, value: dict, expires_at: str | None = None
    ) -> UserKey:
        item = {"user_id": user_id, "name": name, "value": json.dumps(value)}
        if expires_at:
            item["expires_at"] = expires_at
        await asyncio.to_thread(self._get_table().put_item, Item=item)
        self._cache.pop((user_id, name), None)
        return UserKey(user_id=user_id, name=name, value=dict(value), expires_at=expires_at)

    async def delete_user_key(self, user_id: str, name: str | None = None, all: bool = False) -> int:
        if all:
            names = await asyncio.to_thread(self._query_names, user_id)
        else:
            names = [name] if name else []

        table = self._get_table()
        for key_name in names:
            await asyncio.to_thread(table.delete_item, Key={"user_id": user_id, "name": key_name})
            self._cache.pop((user_id, key_name), None)
        return len(names)

    def _query_names(self, user_id: str) -> list[str]:
        from boto3.dynamodb.conditions import Key

        table = self._get_table()
        query = {"KeyConditionExpression": Key("user_id").eq(user_id)}
        names = []
        while True:
            resp = table.query(**query)
            names.extend(item["name"] for item in resp.get("Items", []))
            if "LastEvaluatedKey" not in resp:
                return names
            query["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
