"""Tests for the incident change channel, feed reconciliation and websocket fan-out."""
import asyncio
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from app.data_sources.base import DataSource
from app.models.incident import Status
from app.services.realtime import (
    ChangeEvent,
    ChangeKind,
    ConnectionManager,
    IncidentFeed,
)


class TestChangeEvent:
    def test_insert_requires_record(self):
        with pytest.raises(ValidationError):
            ChangeEvent(kind=ChangeKind.INSERT, incident_id="x")

    def test_delete_carries_only_id(self):
        event = ChangeEvent.deleted("inc-9")
        assert event.record is None
        assert event.to_message()["id"] == "inc-9"
        assert event.to_message()["event"] == "DELETE"

    def test_message_serializes_record(self, make_incident):
        msg = ChangeEvent.inserted(make_incident(category="theft")).to_message()
        assert msg["type"] == "incident_change"
        assert msg["record"]["category"] == "theft"


class TestIncidentChannel:
    @pytest.mark.asyncio
    async def test_callbacks_by_kind(self, channel, event_bus, make_incident):
        inserted, updated, deleted = [], [], []

        async def on_insert(inc):
            inserted.append(inc.id)

        async def on_update(inc):
            updated.append(inc.id)

        async def on_delete(incident_id):
            deleted.append(incident_id)

        channel.subscribe(on_insert=on_insert, on_update=on_update, on_delete=on_delete)
        inc = make_incident()
        await channel.publish(ChangeEvent.inserted(inc))
        await channel.publish(ChangeEvent.updated(inc))
        await channel.publish(ChangeEvent.deleted(inc.id))
        await event_bus.join()

        assert (inserted, updated, deleted) == ([inc.id], [inc.id], [inc.id])

    @pytest.mark.asyncio
    async def test_sequence_numbers_increase(self, channel, make_incident):
        first = await channel.publish(ChangeEvent.inserted(make_incident()))
        second = await channel.publish(ChangeEvent.deleted("inc-1"))
        assert second.sequence > first.sequence

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, channel, event_bus, make_incident):
        seen = []

        async def on_event(event):
            seen.append(event)

        sub = channel.subscribe(on_event=on_event)
        assert channel.subscriber_count == 1
        channel.unsubscribe(sub)
        channel.unsubscribe(sub)
        assert channel.subscriber_count == 0

        await channel.publish(ChangeEvent.inserted(make_incident()))
        await event_bus.join()
        assert seen == []

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self, channel, event_bus, make_incident):
        seen = []

        async def broken(event):
            raise RuntimeError("boom")

        async def ok(event):
            seen.append(event.incident_id)

        channel.subscribe(on_event=broken)
        channel.subscribe(on_event=ok)
        inc = make_incident()
        await channel.publish(ChangeEvent.inserted(inc))
        await event_bus.join()
        assert seen == [inc.id]


class TestIncidentFeed:
    def test_insert_prepends(self, make_incident):
        old, new = make_incident(), make_incident()
        feed = IncidentFeed([old])
        feed.apply(ChangeEvent.inserted(new))
        assert [i.id for i in feed.snapshot()] == [new.id, old.id]

    def test_update_replaces_in_place(self, sample_incidents):
        feed = IncidentFeed(sample_incidents)
        target = sample_incidents[2]
        changed = target.model_copy(update={"status": Status.RESOLVED})
        feed.apply(ChangeEvent.updated(changed))
        snap = feed.snapshot()
        assert [i.id for i in snap] == [i.id for i in sample_incidents]
        assert snap[2].status is Status.RESOLVED

    def test_update_unknown_id_is_ignored(self, sample_incidents, make_incident):
        feed = IncidentFeed(sample_incidents)
        feed.apply(ChangeEvent.updated(make_incident(id="ghost")))
        assert feed.snapshot() == sample_incidents

    def test_delete_removes(self, sample_incidents):
        feed = IncidentFeed(sample_incidents)
        feed.apply(ChangeEvent.deleted(sample_incidents[0].id))
        assert sample_incidents[0].id not in {i.id for i in feed.snapshot()}
        assert len(feed) == 4

    def test_snapshot_is_a_copy(self, sample_incidents):
        feed = IncidentFeed(sample_incidents)
        feed.snapshot().clear()
        assert len(feed) == 5

    @pytest.mark.asyncio
    async def test_insert_then_delete_leaves_record_absent(self, channel, event_bus, make_incident):
        feed = IncidentFeed()
        feed.attach(channel)
        inc = make_incident()
        await channel.publish(ChangeEvent.inserted(inc))
        await channel.publish(ChangeEvent.deleted(inc.id))
        await event_bus.join()
        assert feed.snapshot() == []
        assert feed.version == 2

    @pytest.mark.asyncio
    async def test_detach_stops_updates(self, channel, event_bus, make_incident):
        feed = IncidentFeed()
        feed.attach(channel)
        feed.detach()
        await channel.publish(ChangeEvent.inserted(make_incident()))
        await event_bus.join()
        assert len(feed) == 0
        assert channel.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_refresh_installs_rows(self, sample_incidents):
        source = AsyncMock(spec=DataSource)
        source.list_recent.return_value = sample_incidents
        feed = IncidentFeed()
        assert await feed.refresh(source, limit=20) is True
        source.list_recent.assert_awaited_once_with(20)
        assert feed.snapshot() == sample_incidents

    @pytest.mark.asyncio
    async def test_stale_refresh_is_discarded(self, sample_incidents, make_incident):
        release = asyncio.Event()
        source = AsyncMock(spec=DataSource)

        async def slow_list(limit=None):
            await release.wait()
            return sample_incidents

        source.list_recent.side_effect = slow_list
        feed = IncidentFeed()
        pending = asyncio.create_task(feed.refresh(source))
        await asyncio.sleep(0)

        fresh = make_incident(id="arrived-during-fetch")
        feed.apply(ChangeEvent.inserted(fresh))
        release.set()

        assert await pending is False
        assert [i.id for i in feed.snapshot()] == ["arrived-during-fetch"]


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_forwards_events_and_unsubscribes(self, channel, event_bus, make_incident):
        manager = ConnectionManager(channel=channel)
        ws = AsyncMock()
        await manager.connect(ws)
        assert channel.subscriber_count == 1

        inc = make_incident()
        await channel.publish(ChangeEvent.inserted(inc))
        await event_bus.join()
        ws.send_json.assert_awaited_once()
        assert ws.send_json.await_args.args[0]["id"] == inc.id

        await manager.disconnect(ws)
        assert channel.subscriber_count == 0
        assert manager.connections == {}

    @pytest.mark.asyncio
    async def test_send_failure_drops_connection(self, channel, event_bus, make_incident):
        manager = ConnectionManager(channel=channel)
        ws = AsyncMock()
        ws.send_json.side_effect = RuntimeError("closed")
        await manager.connect(ws)

        await channel.publish(ChangeEvent.inserted(make_incident()))
        await event_bus.join()
        assert ws not in manager.connections
        assert channel.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_connect_requires_channel(self):
        with pytest.raises(RuntimeError):
            await ConnectionManager().connect(AsyncMock())


class TestRefetchRaces:
    def test_insert_for_known_id_replaces_row(self, sample_incidents):
        feed = IncidentFeed(sample_incidents)
        target = sample_incidents[3]
        feed.apply(ChangeEvent.inserted(target.model_copy(update={"title": "Edited"})))
        snap = feed.snapshot()
        assert len(snap) == 5
        assert snap[3].title == "Edited"

    @pytest.mark.asyncio
    async def test_refresh_before_queued_insert_does_not_duplicate(self, channel, event_bus):
        from app.data_sources.fixture import FixtureDataSource
        from app.models.incident import IncidentCreate

        ds = FixtureDataSource(channel=channel)
        feed = IncidentFeed()
        feed.attach(channel)

        created = await ds.insert(
            IncidentCreate(title="Bike theft", category="theft", location="456 Pine Ave", user_id="user1")
        )
        # The insert event is still queued; this refetch already sees the row
        assert await feed.refresh(ds) is True
        await event_bus.join()

        ids = [i.id for i in feed.snapshot()]
        assert ids.count(created.id) == 1
        assert len(ids) == 4
