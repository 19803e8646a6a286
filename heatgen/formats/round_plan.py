from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from heatgen.domain.channel import Channel, channel_group_count
from heatgen.domain.pilot import Pilot
from heatgen.domain.round import EventType, Round, Stage


class ChannelChange(str, Enum):
    CHANGE = "change"
    KEEP_FROM_PREVIOUS_ROUND = "keep_from_previous_round"


class PilotOrdering(str, Enum):
    MINIMISE_PREVIOUSLY_FLOWN = "minimise_previously_flown"
    ORDERED = "ordered"
    SEEDED = "seeded"


class InvalidRoundPlanError(ValueError):
    pass


@dataclass(frozen=True)
class RoundPlan:
    """
    Resolved configuration for generating one round.

    Built by the round manager from event state; use with_changes() to derive
    a variant rather than mutating.
    """

    pilots: Tuple[Pilot, ...]
    channels: Tuple[Channel, ...]
    calling_round: Optional[Round] = None
    number_of_races: int = 0
    auto_number_of_races: bool = True
    channel_change: ChannelChange = ChannelChange.KEEP_FROM_PREVIOUS_ROUND
    pilot_seeding: PilotOrdering = PilotOrdering.MINIMISE_PREVIOUSLY_FLOWN
    stage: Optional[Stage] = None
    keep_stage: bool = False
    event_type: EventType = EventType.RACE

    def __post_init__(self) -> None:
        if self.number_of_races < 0:
            raise InvalidRoundPlanError(f"number_of_races must be >= 0, got {self.number_of_races}")
        object.__setattr__(self, "pilots", tuple(self.pilots))
        object.__setattr__(self, "channels", tuple(self.channels))

    @property
    def channel_group_count(self) -> int:
        """Pilots a single race can hold with these channels."""
        return channel_group_count(self.channels)

    def with_changes(self, **changes) -> "RoundPlan":
        return replace(self, **changes)
