from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(str, Enum):
    PRACTICE = "practice"
    TIME_TRIAL = "time_trial"
    RACE = "race"
    FREESTYLE = "freestyle"
    ENDURANCE = "endurance"
    CASUAL_PRACTICE = "casual_practice"


class RoundType(str, Enum):
    ROUND = "round"
    FINAL = "final"
    DOUBLE_ELIMINATION = "double_elimination"


class StageType(str, Enum):
    DEFAULT = "default"
    FINAL = "final"
    DOUBLE_ELIMINATION = "double_elimination"
    STREET_LEAGUE = "street_league"
    CHASE_THE_ACE = "chase_the_ace"


@dataclass(eq=False)
class Stage:
    """A run of rounds sharing one format."""

    name: str = ""
    stage_type: StageType = StageType.DEFAULT
    win_limit: Optional[int] = None  # chase-the-ace wins needed to finish
    id: Optional[int] = None


@dataclass(eq=False)
class Round:
    """
    One round of an event. Rounds compare by identity; `order` gives the
    event-wide sequence, `round_number` the number within the event type.
    """

    round_number: int
    event_type: EventType = EventType.RACE
    order: int = 0
    round_type: RoundType = RoundType.ROUND
    stage: Optional[Stage] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.order:
            self.order = self.round_number

    def __str__(self) -> str:
        return f"Round {self.round_number} ({self.event_type.value})"
