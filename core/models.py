#!/usr/bin/env python3
"""
Shared data models for the listing worker.

Rows come out of SQLite as aiosqlite.Row objects with JSON stored in TEXT
columns; the from_row helpers decode them into the dataclasses below.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# ============== Enums ==============

class JobStatus(str, Enum):
    """Lifecycle of a listing job. Transitions are one-way."""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class Marketplace(str, Enum):
    """Marketplaces with a registered processor."""
    MERCARI = "mercari"
    FACEBOOK = "facebook"


class AccountStatus(str, Enum):
    CONNECTED = "connected"
    NEEDS_REAUTH = "needs_reauth"


class EventLevel(str, Enum):
    """Severity attached to a job event."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


# ============== Helpers ==============

def decode_json(value: Any, default: Any = None) -> Any:
    """Decode a JSON TEXT column, passing through already-decoded values."""
    if value is None or value == "":
        return default
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return default


def utcnow_iso() -> str:
    return datetime.utcnow().isoformat()


# ============== Data Models ==============

@dataclass
class Job:
    """A listing job row."""
    id: str
    status: JobStatus
    payload: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    marketplace: Optional[str] = None
    progress: Dict[str, Any] = field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "Job":
        data = dict(row)
        return cls(
            id=str(data["id"]),
            status=JobStatus(data["status"]),
            payload=decode_json(data.get("payload"), {}) or {},
            user_id=data.get("user_id"),
            marketplace=data.get("marketplace"),
            progress=decode_json(data.get("progress"), {}) or {},
            result=decode_json(data.get("result")),
            error=decode_json(data.get("error")),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    @property
    def target_marketplace(self) -> str:
        """Marketplace column, falling back to the payload's own field."""
        value = self.marketplace or self.payload.get("marketplace") or ""
        return str(value).strip().lower()


@dataclass
class PlatformAccount:
    """Captured marketplace session for one user. Read-only during a job."""
    id: str
    user_id: str
    marketplace: str
    status: AccountStatus
    session_payload_encrypted: Any = None

    @classmethod
    def from_row(cls, row: Any) -> "PlatformAccount":
        data = dict(row)
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            marketplace=data["marketplace"],
            status=AccountStatus(data.get("status") or AccountStatus.CONNECTED.value),
            session_payload_encrypted=data.get("session_payload_encrypted"),
        )


@dataclass
class SessionPayload:
    """Decrypted session material: raw cookies, user agent, optional extras."""
    cookies: List[Dict[str, Any]] = field(default_factory=list)
    user_agent: Optional[str] = None
    session: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionPayload":
        cookies = data.get("cookies") or []
        if not isinstance(cookies, list):
            cookies = []
        session = data.get("session")
        return cls(
            cookies=cookies,
            user_agent=data.get("userAgent") or data.get("user_agent"),
            session=session if isinstance(session, dict) else None,
        )


@dataclass
class JobEvent:
    """One structured event attached to a job."""
    job_id: str
    message: str
    level: EventLevel = EventLevel.INFO
    event_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=utcnow_iso)

    @property
    def kind(self) -> str:
        return self.event_type or self.level.value
