"""Shared plumbing for collection-backed services."""

from typing import Any

from app.config import settings


class CollectionService:
    """
    Base for stateless services bound to one MongoDB collection.

    Services receive the Motor database on every call (from the get_db
    dependency) and hold no per-request state, so one module-level instance
    serves every request.
    """

    collection_name: str = ""

    def collection(self, db: Any) -> Any:
        return db[self.collection_name]

    @property
    def max_time_ms(self) -> int:
        # Per-query server-side limit; exceeding it raises ExecutionTimeout (→ 504)
        return settings.db_query_timeout_ms
