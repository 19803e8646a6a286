from heatgen.models.event import EventChannelRecord, EventRecord
from heatgen.models.pilot import PilotRecord
from heatgen.models.race import PilotChannelRecord, RaceRecord
from heatgen.models.result import ResultRecord
from heatgen.models.round import RoundRecord, StageRecord

__all__ = [
    "EventRecord",
    "EventChannelRecord",
    "PilotRecord",
    "StageRecord",
    "RoundRecord",
    "RaceRecord",
    "PilotChannelRecord",
    "ResultRecord",
]
