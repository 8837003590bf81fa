"""Incident models shared by views, data sources and the realtime feed."""
from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Category(str, Enum):
    EMERGENCY = "emergency"
    THEFT = "theft"
    VANDALISM = "vandalism"
    ACCIDENT = "accident"
    SUSPICIOUS = "suspicious"
    OTHER = "other"


class Status(str, Enum):
    NEW = "new"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"


ALL = "all"
CategoryFilter = Union[Category, Literal["all"]]
StatusFilter = Union[Status, Literal["all"]]


def _check_coordinates(latitude: Optional[float], longitude: Optional[float]) -> None:
    if (latitude is None) != (longitude is None):
        raise ValueError("latitude and longitude must be set together")


class Incident(BaseModel):
    """A persisted incident row. Frozen: id and user_id never change after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    category: Category
    location: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: Status = Status.NEW
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    user_id: str
    image_url: Optional[str] = None
    display_name: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, v):
        return v or ""

    @model_validator(mode="after")
    def _paired_coordinates(self) -> "Incident":
        _check_coordinates(self.latitude, self.longitude)
        return self

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def category_info(self) -> "DisplayInfo":
        return CATEGORY_DISPLAY[self.category]

    @property
    def status_info(self) -> "DisplayInfo":
        return STATUS_DISPLAY[self.status]


class IncidentCreate(BaseModel):
    """Insert payload for the incidents table."""

    title: str = Field(..., min_length=1)
    description: str = ""
    category: Category
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image_url: Optional[str] = None
    user_id: str
    status: Status = Status.NEW

    @model_validator(mode="after")
    def _paired_coordinates(self) -> "IncidentCreate":
        _check_coordinates(self.latitude, self.longitude)
        return self


class DisplayInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    css_class: str


CATEGORY_DISPLAY: dict[Category, DisplayInfo] = {
    Category.EMERGENCY: DisplayInfo(label="Emergency", css_class="safety-emergency"),
    Category.THEFT: DisplayInfo(label="Theft", css_class="safety-theft"),
    Category.VANDALISM: DisplayInfo(label="Vandalism", css_class="safety-vandalism"),
    Category.ACCIDENT: DisplayInfo(label="Accident", css_class="safety-accident"),
    Category.SUSPICIOUS: DisplayInfo(label="Suspicious Activity", css_class="safety-suspicious"),
    Category.OTHER: DisplayInfo(label="Other", css_class="safety-other"),
}

STATUS_DISPLAY: dict[Status, DisplayInfo] = {
    Status.NEW: DisplayInfo(label="New", css_class="status-new"),
    Status.INVESTIGATING: DisplayInfo(label="Investigating", css_class="status-investigating"),
    Status.RESOLVED: DisplayInfo(label="Resolved", css_class="status-resolved"),
}

# Filter select labels differ slightly from the badge labels
STATUS_FILTER_LABELS: dict[Status, str] = {
    Status.NEW: "New",
    Status.INVESTIGATING: "Under Investigation",
    Status.RESOLVED: "Resolved",
}
