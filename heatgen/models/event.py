from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from heatgen.models.pilot import PilotRecord
    from heatgen.models.round import RoundRecord


class EventRecord(SQLModel, table=True):
    __tablename__ = "event"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    event_type: str = Field(default="race")  # EventType value
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    pilots: List["PilotRecord"] = Relationship(back_populates="event")
    rounds: List["RoundRecord"] = Relationship(back_populates="event")


class EventChannelRecord(SQLModel, table=True):
    """One channel available at the event; channel_id refers to the channel catalogue."""

    __tablename__ = "event_channel"

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    channel_id: int
    position: int = Field(default=0)
