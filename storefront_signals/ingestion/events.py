"""
Event Models

Inbound tracking payloads are validated here before anything is written.
A payload that fails validation is rejected synchronously with an
IngestionError and leaves no trace in the stores.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from storefront_signals.database.models import EntityType, EventType
from storefront_signals.exceptions import IngestionError

# Substring of the event type -> daily aggregate counter it feeds.
# Checked in order; an event feeds at most one family.
COUNTER_FAMILIES = (
    ("view", "views"),
    ("click", "clicks"),
    ("impression", "impressions"),
)


class TrackEvent(BaseModel):
    """A single behavioral event as submitted by a client"""

    model_config = ConfigDict(str_strip_whitespace=True)

    event_type: EventType
    entity_type: EntityType
    entity_id: str = Field(min_length=1, max_length=64)
    ip: str = Field(min_length=1, max_length=64)
    session_id: Optional[str] = Field(default=None, max_length=100)
    user_id: Optional[str] = Field(default=None, max_length=64)
    entity_slug: Optional[str] = Field(default=None, max_length=200)
    entity_name: Optional[str] = Field(default=None, max_length=300)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    skip_dedup: bool = False

    @field_validator("session_id", "user_id", "entity_slug", "entity_name")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def counter_family(self) -> Optional[str]:
        return counter_family(self.event_type.value)

    @property
    def is_deduplicated(self) -> bool:
        """Only view events go through the dedup window"""
        return not self.skip_dedup and "view" in self.event_type.value


def counter_family(event_type: str) -> Optional[str]:
    """Daily aggregate counter an event type increments, if any"""
    for marker, counter in COUNTER_FAMILIES:
        if marker in event_type:
            return counter
    return None


def parse_event(data: Dict[str, Any]) -> TrackEvent:
    """
    Validate a raw payload into a TrackEvent.

    Raises:
        IngestionError: If required fields are missing or malformed
    """
    try:
        return TrackEvent.model_validate(data)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise IngestionError("Invalid tracking event", details={"errors": errors}) from e
