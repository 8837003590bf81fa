"""Filter engine for the map and list views. Pure functions only."""
from dataclasses import dataclass
from typing import Iterable, Sequence

from app.models.incident import ALL, Category, CategoryFilter, Incident, Status, StatusFilter

MARKER_LIMIT = 5


@dataclass(frozen=True)
class StatusCounts:
    total: int = 0
    new: int = 0
    investigating: int = 0
    resolved: int = 0


@dataclass(frozen=True)
class MapMarker:
    incident: Incident
    left_pct: int
    top_pct: int


def parse_category_filter(raw: str | None) -> CategoryFilter:
    """'all', empty or None -> 'all'; otherwise a Category. Raises ValueError on unknown values."""
    if not raw or raw == ALL:
        return ALL
    return Category(raw)


def parse_status_filter(raw: str | None) -> StatusFilter:
    if not raw or raw == ALL:
        return ALL
    return Status(raw)


def apply_filters(
    incidents: Iterable[Incident],
    category: CategoryFilter = ALL,
    status: StatusFilter = ALL,
) -> list[Incident]:
    """
    Return the visible subset: category and status predicates AND-combined,
    'all' disables a predicate. Input order is preserved.
    """
    filtered = list(incidents)
    if category != ALL:
        filtered = [i for i in filtered if i.category == category]
    if status != ALL:
        filtered = [i for i in filtered if i.status == status]
    return filtered


def located(incidents: Iterable[Incident]) -> list[Incident]:
    """Incidents carrying a coordinate pair."""
    return [i for i in incidents if i.has_location]


def status_counts(incidents: Sequence[Incident]) -> StatusCounts:
    return StatusCounts(
        total=len(incidents),
        new=sum(1 for i in incidents if i.status == Status.NEW),
        investigating=sum(1 for i in incidents if i.status == Status.INVESTIGATING),
        resolved=sum(1 for i in incidents if i.status == Status.RESOLVED),
    )


def map_markers(incidents: Sequence[Incident], limit: int = MARKER_LIMIT) -> list[MapMarker]:
    """Placeholder marker positions for the first few incidents (diagonal spread)."""
    return [
        MapMarker(incident=inc, left_pct=20 + idx * 15, top_pct=30 + idx * 10)
        for idx, inc in enumerate(incidents[:limit])
    ]
