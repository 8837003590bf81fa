"""DataSource capability: the incidents table as the views see it."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from app.models.incident import Incident, IncidentCreate, Status
from app.models.profile import Profile
from app.services.realtime import ChangeEvent, IncidentChannel

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """
    Read/write access to incidents. Implementations raise PersistenceFailed on
    any backend failure and publish a change event after each successful write.
    """

    name: str = "base"

    def __init__(self, channel: Optional[IncidentChannel] = None) -> None:
        self.channel = channel

    @abstractmethod
    async def list_recent(self, limit: Optional[int] = None) -> list[Incident]:
        """All incidents, newest first, optionally capped."""

    @abstractmethod
    async def list_by_owner(self, user_id: str) -> list[Incident]:
        """Incidents reported by one user, newest first."""

    @abstractmethod
    async def get(self, incident_id: str) -> Optional[Incident]:
        """One incident with the reporter's display name joined; None when absent."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        """The user's profile row; None when the user has none."""

    @abstractmethod
    async def _insert(self, payload: IncidentCreate, token: Optional[str]) -> Incident:
        ...

    @abstractmethod
    async def _update_status(self, incident_id: str, status: Status, token: Optional[str]) -> Incident:
        ...

    @abstractmethod
    async def _delete(self, incident_id: str, token: Optional[str]) -> None:
        ...

    async def insert(self, payload: IncidentCreate, token: Optional[str] = None) -> Incident:
        incident = await self._insert(payload, token)
        logger.info("Inserted incident %s (%s) via %s", incident.id, incident.category.value, self.name)
        await self._publish(ChangeEvent.inserted(incident))
        return incident

    async def update_status(self, incident_id: str, status: Status, token: Optional[str] = None) -> Incident:
        # Any status may follow any other
        incident = await self._update_status(incident_id, status, token)
        await self._publish(ChangeEvent.updated(incident))
        return incident

    async def delete(self, incident_id: str, token: Optional[str] = None) -> None:
        await self._delete(incident_id, token)
        logger.info("Deleted incident %s via %s", incident_id, self.name)
        await self._publish(ChangeEvent.deleted(incident_id))

    async def close(self) -> None:
        """Release any held resources."""

    async def _publish(self, event: ChangeEvent) -> None:
        if self.channel is not None:
            await self.channel.publish(event)
