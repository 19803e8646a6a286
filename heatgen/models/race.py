from typing import Optional

from sqlmodel import Field, SQLModel


class RaceRecord(SQLModel, table=True):
    __tablename__ = "race"

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    round_id: int = Field(foreign_key="round.id", index=True)
    race_number: int
    bracket: str = Field(default="none")  # Bracket value
    started: bool = Field(default=False)
    ended: bool = Field(default=False)


class PilotChannelRecord(SQLModel, table=True):
    __tablename__ = "pilot_channel"

    id: Optional[int] = Field(default=None, primary_key=True)
    race_id: int = Field(foreign_key="race.id", index=True)
    pilot_id: int = Field(foreign_key="pilot.id")
    channel_id: int
    slot: int = Field(default=0)  # position within the race
