from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from must_destroy.types import Detection


class LeakRecord(BaseModel):
    guard_id: str
    wrapped_type: str
    origin: str | None = None
    during: Detection
    nested: bool = False
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LeakReport(BaseModel):
    leaks: list[LeakRecord]
    live_armed: int
