"""Draft report held by the reporting wizard until submit."""
import math
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.incident import Category, IncidentCreate, Status

DRAFT_FIELDS = ("title", "description", "category", "location", "latitude", "longitude", "image")


class ImageAttachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str = "application/octet-stream"
    content: bytes


class DraftReport(BaseModel):
    """Unvalidated, field-by-field editable report. Nothing here is persisted."""

    title: str = ""
    description: str = ""
    category: str = ""
    location: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image: Optional[ImageAttachment] = None

    @property
    def selected_category(self) -> Optional[Category]:
        try:
            return Category(self.category)
        except ValueError:
            return None

    def to_incident_create(self, user_id: str, image_url: Optional[str] = None) -> IncidentCreate:
        """Build the insert payload. A lone coordinate is dropped so the pair stays consistent."""
        lat, lng = self.latitude, self.longitude
        if lat is None or lng is None:
            lat = lng = None
        return IncidentCreate(
            title=self.title.strip(),
            description=self.description,
            category=Category(self.category),
            location=self.location.strip(),
            latitude=lat,
            longitude=lng,
            image_url=image_url,
            user_id=user_id,
            status=Status.NEW,
        )


def parse_coordinate(raw: Optional[str]) -> Optional[float]:
    """Form input -> float; blank or unparseable input clears the coordinate."""
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    # The form treats 0 as empty; nan/inf cannot be stored
    if not math.isfinite(value):
        return None
    return value or None
