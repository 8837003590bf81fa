"""Realtime incident changes: channel over the event bus + the reconciled local feed."""
import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field, model_validator

from app.event_bus import EventBus, EventPayload
from app.models.incident import Incident

if TYPE_CHECKING:
    from app.data_sources.base import DataSource

logger = logging.getLogger(__name__)

INCIDENTS_TOPIC = "incidents"

RecordCallback = Callable[[Incident], Awaitable[None]]
DeleteCallback = Callable[[str], Awaitable[None]]
EventCallback = Callable[["ChangeEvent"], Awaitable[None]]


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    kind: ChangeKind
    record: Optional[Incident] = None
    incident_id: str
    sequence: int = 0
    received_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def _record_required(self) -> "ChangeEvent":
        if self.kind != ChangeKind.DELETE and self.record is None:
            raise ValueError(f"{self.kind.value} event requires a record")
        return self

    @classmethod
    def inserted(cls, record: Incident) -> "ChangeEvent":
        return cls(kind=ChangeKind.INSERT, record=record, incident_id=record.id)

    @classmethod
    def updated(cls, record: Incident) -> "ChangeEvent":
        return cls(kind=ChangeKind.UPDATE, record=record, incident_id=record.id)

    @classmethod
    def deleted(cls, incident_id: str) -> "ChangeEvent":
        return cls(kind=ChangeKind.DELETE, incident_id=incident_id)

    def to_message(self) -> dict[str, Any]:
        return {
            "type": "incident_change",
            "event": self.kind.value,
            "id": self.incident_id,
            "record": self.record.model_dump(mode="json") if self.record else None,
            "sequence": self.sequence,
        }


@dataclass
class Subscription:
    token: int
    channel: "IncidentChannel"
    active: bool = True


class IncidentChannel:
    """
    Publish/subscribe for incident table changes. Events reach subscribers in
    publish order because the bus dispatches from a single queue.
    """

    def __init__(self, bus: EventBus, topic: str = INCIDENTS_TOPIC) -> None:
        self._bus = bus
        self._topic = topic
        self._sequence = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return self._bus.subscriber_count(self._topic)

    def subscribe(
        self,
        on_insert: Optional[RecordCallback] = None,
        on_update: Optional[RecordCallback] = None,
        on_delete: Optional[DeleteCallback] = None,
        on_event: Optional[EventCallback] = None,
    ) -> Subscription:
        async def _handler(payload: EventPayload) -> None:
            event: ChangeEvent = payload["event"]
            if on_event is not None:
                await on_event(event)
            if event.kind == ChangeKind.INSERT and on_insert is not None:
                await on_insert(event.record)
            elif event.kind == ChangeKind.UPDATE and on_update is not None:
                await on_update(event.record)
            elif event.kind == ChangeKind.DELETE and on_delete is not None:
                await on_delete(event.incident_id)

        token = self._bus.subscribe(self._topic, _handler)
        return Subscription(token=token, channel=self)

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription.active:
            self._bus.unsubscribe(subscription.token)
            subscription.active = False

    async def publish(self, event: ChangeEvent) -> ChangeEvent:
        event = event.model_copy(update={"sequence": next(self._sequence)})
        await self._bus.emit(self._topic, {"event": event})
        return event


class IncidentFeed:
    """
    Process-local incident list kept current from change events.

    Every applied event bumps `version`. A refresh remembers the version it
    started at and installs its rows only if no event landed while the fetch
    was in flight; otherwise the fetched snapshot is stale and dropped.
    """

    def __init__(self, incidents: Optional[list[Incident]] = None) -> None:
        self._items: list[Incident] = list(incidents or [])
        self.version = 0
        self._subscription: Optional[Subscription] = None

    def __len__(self) -> int:
        return len(self._items)

    def snapshot(self) -> list[Incident]:
        return list(self._items)

    def apply(self, event: ChangeEvent) -> None:
        if event.kind == ChangeKind.INSERT:
            # A refetch may already hold the row this insert announces
            for idx, inc in enumerate(self._items):
                if inc.id == event.incident_id:
                    self._items[idx] = event.record
                    break
            else:
                self._items.insert(0, event.record)
        elif event.kind == ChangeKind.UPDATE:
            for idx, inc in enumerate(self._items):
                if inc.id == event.incident_id:
                    self._items[idx] = event.record
                    break
            else:
                logger.debug("Update for unknown incident %s ignored", event.incident_id)
        elif event.kind == ChangeKind.DELETE:
            self._items = [i for i in self._items if i.id != event.incident_id]
        self.version += 1

    async def _on_event(self, event: ChangeEvent) -> None:
        self.apply(event)

    def attach(self, channel: IncidentChannel) -> Subscription:
        self.detach()
        self._subscription = channel.subscribe(on_event=self._on_event)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.channel.unsubscribe(self._subscription)
            self._subscription = None

    async def refresh(self, source: "DataSource", limit: Optional[int] = None) -> bool:
        """Refetch from the data source. Returns False when the result was stale and discarded."""
        started_at = self.version
        rows = await source.list_recent(limit)
        if self.version != started_at:
            logger.info(
                "Discarding stale refetch (version %d -> %d, %d rows)",
                started_at, self.version, len(rows),
            )
            return False
        self._items = list(rows)
        self.version += 1
        return True


@dataclass
class ConnectionManager:
    """Manages WebSocket connections; each socket holds its own channel subscription."""

    channel: Optional[IncidentChannel] = None
    connections: dict[Any, Subscription] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def connect(self, websocket: Any) -> None:
        if self.channel is None:
            raise RuntimeError("Realtime channel not configured")

        async def _forward(event: ChangeEvent) -> None:
            try:
                await websocket.send_json(event.to_message())
            except Exception as e:
                logger.info("Dropping websocket after send failure: %s", e)
                await self.disconnect(websocket)

        sub = self.channel.subscribe(on_event=_forward)
        async with self._lock:
            self.connections[websocket] = sub

    async def disconnect(self, websocket: Any) -> None:
        async with self._lock:
            sub = self.connections.pop(websocket, None)
        if sub is not None:
            sub.channel.unsubscribe(sub)

    async def close_all(self) -> None:
        async with self._lock:
            subs = list(self.connections.values())
            self.connections.clear()
        for sub in subs:
            sub.channel.unsubscribe(sub)


connection_manager = ConnectionManager()
