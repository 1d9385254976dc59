"""Wire shapes for events and completions coming from outside the process.

Shared by the HTTP adapter and the replay command.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .triggers.events import Event


class EventRecord(BaseModel):
    # Unknown kinds are accepted and normalized to "custom".
    kind: str
    source_id: str = Field(..., min_length=1)
    timestamp: datetime | None = None
    payload: dict[str, object] = Field(default_factory=dict)

    def to_event(self) -> Event:
        return Event.create(
            self.kind, self.source_id, payload=self.payload, timestamp=self.timestamp
        )


class CompletionRecord(BaseModel):
    rule_name: str = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1)
