"""In-memory audit trail of user actions on incidents (report, status change, delete, sign-out)."""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

AUDIT_CAPACITY = 10_000


@dataclass(frozen=True)
class AuditEntry:
    actor: str
    action: str
    incident_id: Optional[str] = None
    details: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)


_entries: deque[AuditEntry] = deque(maxlen=AUDIT_CAPACITY)


def log_action(
    actor: str,
    action: str,
    incident_id: Optional[str] = None,
    details: Optional[str] = None,
) -> AuditEntry:
    entry = AuditEntry(actor=actor, action=action, incident_id=incident_id, details=details)
    _entries.append(entry)
    return entry


def get_audit_log(limit: int = 100, actor: Optional[str] = None) -> list[AuditEntry]:
    """Most recent first, optionally only one user's actions."""
    matching = [e for e in reversed(_entries) if actor is None or e.actor == actor]
    return matching[:limit]


def clear_audit_log() -> None:
    _entries.clear()
