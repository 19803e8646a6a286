from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from heatgen.models.event import EventRecord


class StageRecord(SQLModel, table=True):
    __tablename__ = "stage"

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    name: str = Field(default="")
    stage_type: str = Field(default="default")  # StageType value
    win_limit: Optional[int] = Field(default=None)


class RoundRecord(SQLModel, table=True):
    __tablename__ = "round"

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    stage_id: Optional[int] = Field(default=None, foreign_key="stage.id")
    round_number: int
    event_type: str = Field(default="race")  # EventType value
    round_type: str = Field(default="round")  # RoundType value
    order_index: int = Field(default=0)

    # Relationships
    event: "EventRecord" = Relationship(back_populates="rounds")
