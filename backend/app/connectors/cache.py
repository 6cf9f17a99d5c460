"""Cache-through wrapper for source adapters."""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Awaitable, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.connectors.base import BaseTimeTrackingConnector, EntryFilter, Identity
from app.models.api_cache import ApiCache
from app.schemas.time_entry import TimeEntry
from app.schemas.toggl import Workspace, Client, Project, Tag
from app.utils.dates import utcnow

log = logging.getLogger(__name__)


class ApiCacheBackend(ABC):
    """Key/value store for API payloads with per-entry expiry."""

    @abstractmethod
    async def get(self, cache_key: str) -> Optional[Any]:
        """Returns the cached payload, or None when missing or expired."""
        pass

    @abstractmethod
    async def set(self, account_id: int, endpoint: str, cache_key: str, data: Any, ttl_minutes: int) -> None:
        pass

    @abstractmethod
    async def clear_account(self, account_id: int) -> int:
        """Drops every cached payload of an account, returns the number removed."""
        pass


class SqlApiCache(ApiCacheBackend):
    """ApiCacheBackend stored in the api_cache table."""

    def __init__(self, db: Session):
        self.db = db

    async def get(self, cache_key: str) -> Optional[Any]:
        row = self.db.query(ApiCache).filter(
            ApiCache.cache_key == cache_key,
            ApiCache.expires_at > utcnow(),
        ).first()
        return row.data if row else None

    async def set(self, account_id: int, endpoint: str, cache_key: str, data: Any, ttl_minutes: int) -> None:
        expires_at = utcnow() + timedelta(minutes=ttl_minutes)
        try:
            row = self.db.query(ApiCache).filter(ApiCache.cache_key == cache_key).first()
            if row is None:
                row = ApiCache(cache_key=cache_key, account_id=account_id, endpoint=endpoint)
                self.db.add(row)
            row.data = data
            row.expires_at = expires_at
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    async def clear_account(self, account_id: int) -> int:
        try:
            removed = self.db.query(ApiCache).filter(ApiCache.account_id == account_id).delete()
            self.db.commit()
            return removed
        except SQLAlchemyError:
            self.db.rollback()
            raise


class CachedConnector(BaseTimeTrackingConnector):
    """
    Wraps a connector with a read-through cache: read the cache, else call the
    inner connector and store its answer. Cache failures fall through to the
    live call and never fail the request.
    """

    def __init__(
        self,
        inner: BaseTimeTrackingConnector,
        cache: ApiCacheBackend,
        metadata_ttl_minutes: Optional[int] = None,
        entries_ttl_minutes: Optional[int] = None,
    ):
        super().__init__(inner.config)
        self.inner = inner
        self.cache = cache
        self.metadata_ttl_minutes = metadata_ttl_minutes or settings.api_cache_ttl_minutes
        self.entries_ttl_minutes = entries_ttl_minutes or settings.entries_cache_ttl_minutes

    def _cache_key(self, endpoint: str, params: str = "") -> str:
        key = f"{self.account_id}:{endpoint}"
        return f"{key}?{params}" if params else key

    async def _through(
        self,
        endpoint: str,
        loader: Callable[[], Awaitable[Any]],
        model: type,
        ttl_minutes: int,
        params: str = "",
        many: bool = True,
    ) -> Any:
        cache_key = self._cache_key(endpoint, params)

        try:
            cached = await self.cache.get(cache_key)
        except Exception as e:
            log.warning(f"Cache read failed for {cache_key}: {e}")
            cached = None

        if cached is not None:
            log.trace(f"Cache hit: {cache_key}")
            if many:
                return [model.model_validate(item) for item in cached]
            return model.model_validate(cached)

        log.trace(f"Cache miss: {cache_key}")
        result = await loader()

        if many:
            payload = [item.model_dump(mode="json") for item in result]
        else:
            payload = result.model_dump(mode="json")
        try:
            await self.cache.set(self.account_id, endpoint, cache_key, payload, ttl_minutes)
        except Exception as e:
            log.warning(f"Cache write failed for {cache_key}: {e}")
        return result

    async def list_entries(self, filters: EntryFilter) -> List[TimeEntry]:
        return await self._through(
            "/me/time_entries",
            lambda: self.inner.list_entries(filters),
            TimeEntry,
            self.entries_ttl_minutes,
            params=filters.cache_params(),
        )

    async def resolve_identity(self) -> Identity:
        return await self._through("/me", self.inner.resolve_identity, Identity, self.metadata_ttl_minutes, many=False)

    async def fetch_workspaces(self) -> List[Workspace]:
        return await self._through("/workspaces", self.inner.fetch_workspaces, Workspace, self.metadata_ttl_minutes)

    async def fetch_clients(self, workspace_id: int) -> List[Client]:
        return await self._through(
            f"/workspaces/{workspace_id}/clients",
            lambda: self.inner.fetch_clients(workspace_id),
            Client,
            self.metadata_ttl_minutes,
        )

    async def fetch_projects(self, workspace_id: int) -> List[Project]:
        return await self._through(
            f"/workspaces/{workspace_id}/projects",
            lambda: self.inner.fetch_projects(workspace_id),
            Project,
            self.metadata_ttl_minutes,
        )

    async def fetch_tags(self, workspace_id: int) -> List[Tag]:
        return await self._through(
            f"/workspaces/{workspace_id}/tags",
            lambda: self.inner.fetch_tags(workspace_id),
            Tag,
            self.metadata_ttl_minutes,
        )

    async def validate_connection(self) -> bool:
        return await self.inner.validate_connection()

    async def close(self) -> None:
        await self.inner.close()
