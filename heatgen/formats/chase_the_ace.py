"""
ChaseTheAce: rerun the last race until somebody has won it enough times.
"""

import logging
from collections import Counter
from typing import Optional

from heatgen import settings
from heatgen.domain.event import EventSnapshot
from heatgen.domain.race import Race
from heatgen.domain.round import Round
from heatgen.formats.base import GenerationResult, RoundFormat2
from heatgen.formats.round_plan import RoundPlan
from heatgen.services.results import first_place_counts

logger = logging.getLogger(__name__)


class ChaseTheAce(RoundFormat2):
    name = "chase_the_ace"

    def __init__(self, event: EventSnapshot, limit: Optional[int] = None):
        super().__init__(event)
        self.limit = limit if limit is not None else settings.CHASE_THE_ACE_LIMIT
        self._template: Optional[Race] = None

    def can_generate(self, round: Round) -> bool:
        """False while a race in round is unfinished or a bracket has more than one race."""
        races = self.event.races_in(round)
        if any(not r.ended for r in races):
            return False
        per_bracket = Counter(r.bracket for r in races)
        return all(count <= 1 for count in per_bracket.values())

    def get_race_count(self, new_round: Round, plan: RoundPlan) -> int:
        self._template = None
        calling_round = plan.calling_round
        if calling_round is None or not self.can_generate(calling_round):
            return 0

        stage_races = [
            race
            for round in self.event.stage_rounds(calling_round.stage)
            for race in self.event.races_in(round)
            if race.ended
        ]
        wins = first_place_counts(r for race in stage_races for r in self.event.results_for(race))
        leader = max(wins.values(), default=0)
        if leader >= self.limit:
            logger.info("ChaseTheAce: limit of %d wins reached, stage complete", self.limit)
            return 0

        last_races = self.event.races_in(calling_round)
        if not last_races:
            return 0
        self._template = last_races[-1]
        return 1

    def setup_race(self, race: Race, plan: RoundPlan, result: GenerationResult) -> None:
        if self._template is None:
            return
        race.bracket = self._template.bracket
        race.clear_pilots()
        for pc in self._template.pilot_channels:
            if race.set_pilot(pc.channel, pc.pilot) is None:
                result.unplaced.append(pc.pilot)
                result.warn(f"{race.name}: could not copy {pc.pilot} on {pc.channel.short_text}")
