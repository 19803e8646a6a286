"""
FinalFormat: seed pilots into parallel finals A, B, C...

Pilots are ranked by (previous bracket, points desc, personal-best position)
and poured into the finals in order, filling each final to capacity before
moving on. On each advance the per-race limit is recomputed from the pilots
and finals left, so the later finals come out roughly even.
"""

import logging
import math
from typing import List, Optional

from heatgen.domain.channel import Channel
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Bracket, Race
from heatgen.domain.round import Round, RoundType, StageType
from heatgen.formats.base import GenerationResult, RoundFormat
from heatgen.formats.round_plan import RoundPlan
from heatgen.services.results import PointsSettings, points_total
from heatgen.utils.pairing_history import PairingHistory

logger = logging.getLogger(__name__)

UNRANKED_PB_POSITION = 1_000_000


class FinalFormat(RoundFormat):
    name = "final"

    def __init__(self, event, points_settings: Optional[PointsSettings] = None):
        super().__init__(event)
        self.points_settings = points_settings

    def generate_round(
        self,
        history: PairingHistory,
        pre_existing: List[Race],
        new_round: Round,
        plan: RoundPlan,
    ) -> GenerationResult:
        result = GenerationResult()
        new_round.round_type = RoundType.FINAL
        if new_round.stage is not None:
            new_round.stage.stage_type = StageType.FINAL

        start_number = len(pre_existing)
        races = [
            Race(
                round=new_round,
                race_number=start_number + 1 + i,
                bracket=Bracket.final_letter(start_number + i),
            )
            for i in range(plan.number_of_races - start_number)
        ]
        if not races:
            return result

        ordered = self.rank_pilots(plan)
        capacity = plan.channel_group_count
        max_per_race = capacity
        logger.info("FinalFormat: %s, %d pilots into %d finals", new_round, len(ordered), len(races))

        race_index = 0
        remaining = len(ordered)
        for position, pilot in enumerate(ordered):
            race = races[race_index]
            if not race.free_frequencies(plan.channels) or race.pilot_count >= max_per_race:
                race_index += 1
                if race_index >= len(races):
                    result.unplaced.extend(ordered[position:])
                    result.warn(f"{new_round}: finals are full, {remaining} pilot(s) not placed")
                    break
                race = races[race_index]
                max_per_race = min(capacity, math.ceil(remaining / (len(races) - race_index)))

            channel = self._channel_for(race, pilot, plan)
            if channel is None or race.set_pilot(channel, pilot) is None:
                result.unplaced.append(pilot)
                result.warn(f"{race.name}: no free channel for {pilot}")
            remaining -= 1

        result.races = races
        return result

    def rank_pilots(self, plan: RoundPlan) -> List[Pilot]:
        last_round_races = self.event.races_in(plan.calling_round)

        def bracket_order(pilot: Pilot) -> int:
            for race in last_round_races:
                if race.has_pilot(pilot):
                    return race.bracket.order
            return Bracket.NONE.order

        def sort_key(pilot: Pilot):
            points = points_total(self.event, pilot, plan.calling_round, self.points_settings) if plan.calling_round else 0
            pb = self.event.pb_positions.get(pilot, UNRANKED_PB_POSITION)
            return (bracket_order(pilot), -points, pb)

        pilots = [p for p in plan.pilots if not p.practice_pilot]
        return sorted(pilots, key=sort_key)

    def _channel_for(self, race: Race, pilot: Pilot, plan: RoundPlan) -> Optional[Channel]:
        previous = self.event.channel_in_round(pilot, plan.calling_round)
        if previous is None:
            previous = self.event.get_channel(pilot)
        if race.is_frequency_free(previous) and previous in plan.channels:
            return previous
        free = race.free_frequencies(plan.channels)
        free.sort(key=lambda c: c != previous)
        return free[0] if free else None
