from heatgen.formats.auto_format import AutoFormat
from heatgen.formats.base import GenerationResult, RoundFormat, RoundFormat2, RoundGenerationError, heat_count_from_shared_frequencies
from heatgen.formats.chase_the_ace import ChaseTheAce
from heatgen.formats.double_elimination import DoubleElimination
from heatgen.formats.final_format import FinalFormat
from heatgen.formats.round_plan import ChannelChange, InvalidRoundPlanError, PilotOrdering, RoundPlan
from heatgen.formats.seeded_format import SeededFormat
from heatgen.formats.street_league import StreetLeague

__all__ = [
    "AutoFormat",
    "ChannelChange",
    "ChaseTheAce",
    "DoubleElimination",
    "FinalFormat",
    "GenerationResult",
    "InvalidRoundPlanError",
    "PilotOrdering",
    "RoundFormat",
    "RoundFormat2",
    "RoundGenerationError",
    "RoundPlan",
    "SeededFormat",
    "StreetLeague",
    "heat_count_from_shared_frequencies",
]
