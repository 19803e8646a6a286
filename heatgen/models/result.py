from typing import Optional

from sqlmodel import Field, SQLModel


class ResultRecord(SQLModel, table=True):
    __tablename__ = "result"

    id: Optional[int] = Field(default=None, primary_key=True)
    race_id: int = Field(foreign_key="race.id", index=True)
    pilot_id: int = Field(foreign_key="pilot.id")
    position: int
    points: int = Field(default=0)
    dnf: bool = Field(default=False)
    laps_finished: int = Field(default=0)
    time_seconds: float = Field(default=0.0)
