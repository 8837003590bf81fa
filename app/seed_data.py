"""Demonstration dataset for the fixture data source and fixture auth."""
from datetime import datetime, timedelta
from typing import Any, Optional

from app.models.incident import Incident
from app.models.profile import Profile

# ============================================================================
# Users (token -> identity) for FixtureAuth
# ============================================================================
DEMO_USERS = [
    {"id": "user1", "email": "maria@example.com", "display_name": "Maria Lopez", "token": "demo-user1", "member_since": "2024-01-15"},
    {"id": "user2", "email": "james@example.com", "display_name": "James Carter", "token": "demo-user2", "member_since": "2024-03-02"},
    {"id": "user3", "email": "priya@example.com", "display_name": "Priya Nair", "token": "demo-user3", "member_since": "2024-06-20"},
]

# ============================================================================
# Incidents (created_at is an offset in hours before seeding time)
# ============================================================================
DEMO_INCIDENTS = [
    {
        "id": "1",
        "title": "Suspicious vehicle in neighborhood",
        "description": "White van parked for several hours with no visible occupant, repeatedly circling the block.",
        "category": "suspicious",
        "location": "123 Oak Street, Downtown",
        "latitude": 40.7128,
        "longitude": -74.0060,
        "status": "new",
        "hours_ago": 2,
        "user_id": "user1",
    },
    {
        "id": "2",
        "title": "Bike theft from apartment complex",
        "description": "Mountain bike stolen from secured bike rack. Lock was cut. Security cameras may have captured footage.",
        "category": "theft",
        "location": "456 Pine Avenue, Midtown",
        "latitude": 40.7589,
        "longitude": -73.9851,
        "status": "investigating",
        "hours_ago": 5,
        "user_id": "user2",
    },
    {
        "id": "3",
        "title": "Graffiti on community center wall",
        "description": "Large graffiti tags appeared overnight on the south wall of the community center.",
        "category": "vandalism",
        "location": "789 Community Drive, Westside",
        "latitude": 40.7505,
        "longitude": -73.9934,
        "status": "resolved",
        "hours_ago": 24,
        "user_id": "user3",
    },
]


def display_names() -> dict[str, str]:
    return {u["id"]: u["display_name"] for u in DEMO_USERS}


def demo_profiles() -> dict[str, Profile]:
    return {
        u["id"]: Profile(
            user_id=u["id"],
            display_name=u["display_name"],
            created_at=datetime.fromisoformat(u["member_since"]),
        )
        for u in DEMO_USERS
    }


def demo_incidents(now: Optional[datetime] = None) -> list[Incident]:
    """Build the demonstration incidents, newest first, relative to `now`."""
    now = now or datetime.utcnow()
    out: list[Incident] = []
    for raw in DEMO_INCIDENTS:
        data: dict[str, Any] = {k: v for k, v in raw.items() if k != "hours_ago"}
        data["created_at"] = now - timedelta(hours=raw["hours_ago"])
        out.append(Incident.model_validate(data))
    return sorted(out, key=lambda i: i.created_at, reverse=True)
