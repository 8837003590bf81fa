"""Identifier and storage-key generation."""
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_incident_id() -> str:
    """Generate unique incident ID (fixture backend; the live backend assigns its own)."""
    return str(uuid.uuid4())


def generate_workflow_id() -> str:
    """Generate unique report-workflow ID for the browser session."""
    return f"WF-{uuid.uuid4().hex[:12].upper()}"


def build_image_key(user_id: str, filename: str, now: Optional[datetime] = None) -> str:
    """Storage key for an incident image: {user_id}/{epoch_ms}.{ext}."""
    now = now or datetime.now(timezone.utc)
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    ts = int(now.timestamp() * 1000)
    return f"{user_id}/{ts}.{ext or 'bin'}"
