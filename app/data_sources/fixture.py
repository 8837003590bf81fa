"""In-memory data source seeded with the demonstration dataset."""
import logging
from datetime import datetime
from typing import Optional

from app.data_sources.base import DataSource
from app.errors import PersistenceFailed
from app.models.incident import Incident, IncidentCreate, Status
from app.models.profile import Profile
from app.seed_data import demo_incidents, demo_profiles, display_names
from app.services.realtime import IncidentChannel
from app.utils.ids import generate_incident_id

logger = logging.getLogger(__name__)


class FixtureDataSource(DataSource):
    name = "fixture"

    def __init__(
        self,
        channel: Optional[IncidentChannel] = None,
        incidents: Optional[list[Incident]] = None,
    ) -> None:
        super().__init__(channel)
        self._incidents: dict[str, Incident] = {}
        self._names: dict[str, str] = {}
        self._profiles: dict[str, Profile] = {}
        self.reset(incidents)

    def reset(self, incidents: Optional[list[Incident]] = None) -> int:
        """Replace contents with `incidents` (default: the demonstration dataset). Idempotent."""
        rows = demo_incidents() if incidents is None else incidents
        self._incidents = {i.id: i for i in rows}
        self._names = display_names()
        self._profiles = demo_profiles()
        logger.info("Fixture data source seeded with %d incidents", len(self._incidents))
        return len(self._incidents)

    def _ordered(self) -> list[Incident]:
        return sorted(self._incidents.values(), key=lambda i: i.created_at, reverse=True)

    async def list_recent(self, limit: Optional[int] = None) -> list[Incident]:
        rows = self._ordered()
        return rows[:limit] if limit else rows

    async def list_by_owner(self, user_id: str) -> list[Incident]:
        return [i for i in self._ordered() if i.user_id == user_id]

    async def get(self, incident_id: str) -> Optional[Incident]:
        inc = self._incidents.get(incident_id)
        if inc is None:
            return None
        name = self._names.get(inc.user_id)
        return inc.model_copy(update={"display_name": name}) if name else inc

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._profiles.get(user_id)

    async def _insert(self, payload: IncidentCreate, token: Optional[str]) -> Incident:
        now = datetime.utcnow()
        incident = Incident(
            id=generate_incident_id(),
            created_at=now,
            updated_at=now,
            **payload.model_dump(),
        )
        self._incidents[incident.id] = incident
        return incident

    async def _update_status(self, incident_id: str, status: Status, token: Optional[str]) -> Incident:
        inc = self._incidents.get(incident_id)
        if inc is None:
            raise PersistenceFailed("update incident status", f"incident {incident_id} not found")
        updated = inc.model_copy(update={"status": status, "updated_at": datetime.utcnow()})
        self._incidents[incident_id] = updated
        return updated

    async def _delete(self, incident_id: str, token: Optional[str]) -> None:
        if self._incidents.pop(incident_id, None) is None:
            raise PersistenceFailed("delete incident", f"incident {incident_id} not found")
