from heatgen.domain.channel import Band, BandType, Channel, channel_group_count, channel_groups
from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Bracket, PilotChannel, Race, RaceState, count_channel_changes, pilots_of
from heatgen.domain.result import Result
from heatgen.domain.round import EventType, Round, RoundType, Stage, StageType

__all__ = [
    "Band",
    "BandType",
    "Bracket",
    "Channel",
    "EventSnapshot",
    "EventType",
    "Pilot",
    "PilotChannel",
    "Race",
    "RaceState",
    "Result",
    "Round",
    "RoundType",
    "Stage",
    "StageType",
    "channel_group_count",
    "channel_groups",
    "count_channel_changes",
    "pilots_of",
]
