import asyncio
import httpx
import logging
from datetime import timedelta
from typing import Dict, Any, List, Optional

from app.config import settings
from app.connectors.base import BaseTimeTrackingConnector, EntryFilter, Identity
from app.exceptions import AuthError, RateLimitError, UpstreamError
from app.schemas.time_entry import TimeEntry
from app.schemas.toggl import Workspace, Client, Project, Tag
from app.services.normalizer import NormalizerService

log = logging.getLogger(__name__)


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class TogglConnector(BaseTimeTrackingConnector):
    """
    Connector for the Toggl Track API v9.
    Lists time entries for the token owner and the workspace metadata used
    for filtering and enrichment.

    Notes:
    - Authenticates with HTTP Basic '<token>:api_token'
    - /me/time_entries treats end_date as exclusive, so the inclusive
      report end date is shifted by one day
    - Workspace, client, project and tag filters are applied client-side
    """

    def __init__(self, config: Dict[str, Any], normalizer: Optional[NormalizerService] = None):
        super().__init__(config)
        self.base_url = (self.config.get("base_url") or settings.toggl_api_base_url).rstrip("/")
        self.api_token = self.config["api_token"]  # Already decrypted by the caller
        self.normalizer = normalizer or NormalizerService()

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.api_token, "api_token"),
            headers={"Content-Type": "application/json"},
            follow_redirects=True,
            timeout=self.config.get("timeout", settings.toggl_timeout_seconds),
        )

        log.debug(f"Toggl connector initialized for account {self.account_name!r} with base URL: {self.base_url}")

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Helper to make authenticated requests to the Toggl API.
        Maps failures onto AuthError, RateLimitError and UpstreamError.
        """
        if not path.startswith("/"):
            path = f"/{path}"

        try:
            log.trace(f"Toggl API {method} {self.base_url}{path} params={kwargs.get('params')}")
            response = await self.client.request(method, path, **kwargs)
            log.trace(f"Toggl API response: {response.status_code}")
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            url = str(e.request.url)
            response_text = e.response.text[:200]

            if status in (401, 403):
                error_msg = f"Toggl authentication failed for account {self.account_name!r}: HTTP {status}"
                log.error(error_msg)
                raise AuthError(error_msg)

            elif status == 429:
                retry_after = _retry_after(e.response)
                error_msg = f"Toggl rate limit exhausted for account {self.account_name!r} (retry after {retry_after}s)"
                log.warning(error_msg)
                raise RateLimitError(error_msg, retry_after=retry_after)

            else:
                error_msg = f"Toggl HTTP {status} error for {url}: {response_text}"
                log.error(error_msg)
                raise UpstreamError(error_msg, status_code=status)

        except httpx.RequestError as e:
            error_msg = f"Toggl request to {path} failed: {e}"
            log.error(error_msg)
            raise UpstreamError(error_msg)

        except ValueError as e:
            error_msg = f"Invalid JSON response from Toggl for {path}: {e}"
            log.error(error_msg)
            raise UpstreamError(error_msg)

    async def fetch_workspaces(self) -> List[Workspace]:
        data = await self._request("GET", "/workspaces") or []
        return [Workspace.model_validate(item) for item in data]

    async def fetch_clients(self, workspace_id: int) -> List[Client]:
        data = await self._request("GET", f"/workspaces/{workspace_id}/clients") or []
        return [Client.model_validate(item) for item in data]

    async def fetch_projects(self, workspace_id: int) -> List[Project]:
        data = await self._request("GET", f"/workspaces/{workspace_id}/projects") or []
        return [Project.model_validate(item) for item in data]

    async def fetch_tags(self, workspace_id: int) -> List[Tag]:
        data = await self._request("GET", f"/workspaces/{workspace_id}/tags") or []
        return [Tag.model_validate(item) for item in data]

    async def resolve_identity(self) -> Identity:
        me = await self._request("GET", "/me") or {}
        display_name = me.get("fullname") or me.get("email") or self.account_name or "Unknown"
        return Identity(display_name=display_name, email=me.get("email"))

    async def validate_connection(self) -> bool:
        try:
            await self._request("GET", "/me")
            return True
        except AuthError:
            return False

    def _matches_tag(self, raw: Dict[str, Any], tag_id: int, tag_name: Optional[str]) -> bool:
        # Tags may come back as names, ids or both
        if tag_id in (raw.get("tag_ids") or []):
            return True
        for tag in raw.get("tags") or []:
            if str(tag) == str(tag_id) or (tag_name is not None and str(tag) == tag_name):
                return True
        return False

    async def list_entries(self, filters: EntryFilter) -> List[TimeEntry]:
        """
        Fetches the token owner's time entries and applies the filter tuple.
        Entries are enriched with project and client names when a workspace is selected.
        """
        params: Dict[str, str] = {}
        if filters.start_date:
            params["start_date"] = filters.start_date.isoformat()
        if filters.end_date:
            params["end_date"] = (filters.end_date + timedelta(days=1)).isoformat()

        raw_entries: List[Dict[str, Any]] = await self._request("GET", "/me/time_entries", params=params) or []
        log.debug(f"Fetched {len(raw_entries)} raw entries for account {self.account_name!r}")

        if filters.workspace_id:
            raw_entries = [e for e in raw_entries if e.get("workspace_id", e.get("wid")) == filters.workspace_id]

        if filters.project_id:
            raw_entries = [e for e in raw_entries if e.get("project_id", e.get("pid")) == filters.project_id]

        if filters.tag_id:
            tag_name = None
            if filters.workspace_id:
                tags = await self.fetch_tags(filters.workspace_id)
                tag_name = next((t.name for t in tags if t.id == filters.tag_id), None)
            raw_entries = [e for e in raw_entries if self._matches_tag(e, filters.tag_id, tag_name)]

        projects: Dict[int, Project] = {}
        clients: Dict[int, Client] = {}
        if filters.workspace_id:
            project_list, client_list = await asyncio.gather(
                self.fetch_projects(filters.workspace_id),
                self.fetch_clients(filters.workspace_id),
            )
            projects = {p.id: p for p in project_list}
            clients = {c.id: c for c in client_list}

            if filters.client_id:
                client_projects = {p.id for p in project_list if p.cid == filters.client_id}
                raw_entries = [e for e in raw_entries if e.get("project_id", e.get("pid")) in client_projects]

        entries: List[TimeEntry] = []
        for raw in raw_entries:
            project = projects.get(raw.get("project_id", raw.get("pid")))
            client = clients.get(project.cid) if project and project.cid else None
            entries.append(self.normalizer.normalize_toggl_entry(
                raw,
                account_id=self.account_id,
                account_name=self.account_name,
                project_name=project.name if project else None,
                client_name=client.name if client else None,
            ))
        return entries

    async def close(self) -> None:
        await self.client.aclose()
