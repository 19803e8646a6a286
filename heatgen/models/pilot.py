from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from heatgen.models.event import EventRecord


class PilotRecord(SQLModel, table=True):
    __tablename__ = "pilot"

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    name: str
    practice_pilot: bool = Field(default=False)
    channel_id: Optional[int] = Field(default=None)  # default channel, catalogue id
    pb_position: Optional[int] = Field(default=None)  # personal-best ranking, 1 = fastest

    # Relationships
    event: "EventRecord" = Relationship(back_populates="pilots")
