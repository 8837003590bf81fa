"""Supabase (PostgREST) data source over httpx."""
import logging
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from app.config import Settings
from app.data_sources.base import DataSource
from app.errors import PersistenceFailed
from app.models.incident import Incident, IncidentCreate, Status
from app.models.profile import Profile
from app.services.realtime import IncidentChannel

logger = logging.getLogger(__name__)

TABLE = "incidents"
PROFILES_TABLE = "profiles"
DETAIL_SELECT = "*,profiles:user_id(display_name)"


def row_to_incident(row: dict[str, Any]) -> Incident:
    """Flatten the joined profile and validate the row."""
    data = dict(row)
    profile = data.pop("profiles", None)
    if isinstance(profile, dict) and profile.get("display_name"):
        data["display_name"] = profile["display_name"]
    return Incident.model_validate(data)


class SupabaseDataSource(DataSource):
    name = "live"

    def __init__(
        self,
        settings: Settings,
        channel: Optional[IncidentChannel] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(channel)
        self._settings = settings
        self._rest = f"{settings.supabase_url.rstrip('/')}/rest/v1"
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)
        self._owns_client = client is None

    def _headers(self, token: Optional[str] = None, returning: bool = False) -> dict[str, str]:
        headers = {
            "apikey": self._settings.supabase_anon_key,
            "Authorization": f"Bearer {token or self._settings.supabase_anon_key}",
            "Content-Type": "application/json",
        }
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        token: Optional[str] = None,
        returning: bool = False,
        table: str = TABLE,
    ) -> Any:
        try:
            r = await self._client.request(
                method,
                f"{self._rest}/{table}",
                params=params,
                json=json,
                headers=self._headers(token, returning),
            )
        except httpx.HTTPError as e:
            logger.warning("Supabase %s failed: %s", operation, e)
            raise PersistenceFailed(operation, str(e)) from e
        if not r.is_success:
            logger.warning("Supabase %s failed with status %s: %s", operation, r.status_code, r.text)
            raise PersistenceFailed(operation, f"HTTP {r.status_code}")
        if not r.content:
            return None
        return r.json()

    def _rows(self, operation: str, data: Any) -> list[Incident]:
        try:
            return [row_to_incident(row) for row in data or []]
        except ValidationError as e:
            logger.warning("Supabase %s returned invalid rows: %s", operation, e)
            raise PersistenceFailed(operation, "invalid row") from e

    async def list_recent(self, limit: Optional[int] = None) -> list[Incident]:
        params: dict[str, Any] = {"select": "*", "order": "created_at.desc"}
        if limit:
            params["limit"] = limit
        data = await self._request("fetch incidents", "GET", params=params)
        return self._rows("fetch incidents", data)

    async def list_by_owner(self, user_id: str) -> list[Incident]:
        params = {"select": "*", "user_id": f"eq.{user_id}", "order": "created_at.desc"}
        data = await self._request("fetch user incidents", "GET", params=params)
        return self._rows("fetch user incidents", data)

    async def get(self, incident_id: str) -> Optional[Incident]:
        params = {"select": DETAIL_SELECT, "id": f"eq.{incident_id}", "limit": 1}
        data = await self._request("fetch incident", "GET", params=params)
        rows = self._rows("fetch incident", data)
        return rows[0] if rows else None

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        params = {"select": "*", "user_id": f"eq.{user_id}", "limit": 1}
        data = await self._request("fetch profile", "GET", params=params, table=PROFILES_TABLE)
        # Users without a profile row get None
        if not data:
            return None
        try:
            return Profile.model_validate(data[0])
        except ValidationError as e:
            logger.warning("Supabase fetch profile returned an invalid row: %s", e)
            raise PersistenceFailed("fetch profile", "invalid row") from e

    async def _insert(self, payload: IncidentCreate, token: Optional[str]) -> Incident:
        body = payload.model_dump(mode="json")
        data = await self._request("insert incident", "POST", json=[body], token=token, returning=True)
        rows = self._rows("insert incident", data)
        if not rows:
            raise PersistenceFailed("insert incident", "no row returned")
        return rows[0]

    async def _update_status(self, incident_id: str, status: Status, token: Optional[str]) -> Incident:
        body = {"status": status.value, "updated_at": datetime.utcnow().isoformat()}
        data = await self._request(
            "update incident status",
            "PATCH",
            params={"id": f"eq.{incident_id}"},
            json=body,
            token=token,
            returning=True,
        )
        rows = self._rows("update incident status", data)
        if not rows:
            raise PersistenceFailed("update incident status", f"incident {incident_id} not found")
        return rows[0]

    async def _delete(self, incident_id: str, token: Optional[str]) -> None:
        await self._request("delete incident", "DELETE", params={"id": f"eq.{incident_id}"}, token=token)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
