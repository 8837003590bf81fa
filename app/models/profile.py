"""Public profile row joined to an auth user."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Profile(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    user_id: str
    display_name: Optional[str] = None
    created_at: Optional[datetime] = None
