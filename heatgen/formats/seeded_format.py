"""
SeededFormat: deal pilots into races in plan order, one race after another.
"""

import logging
import math
from typing import List, Optional

from heatgen.domain.channel import BandType, Channel
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Race
from heatgen.domain.round import Round
from heatgen.formats.base import GenerationResult, RoundFormat
from heatgen.formats.round_plan import RoundPlan
from heatgen.utils.pairing_history import PairingHistory

logger = logging.getLogger(__name__)


class SeededFormat(RoundFormat):
    name = "seeded"

    def generate_round(
        self,
        history: PairingHistory,
        pre_existing: List[Race],
        new_round: Round,
        plan: RoundPlan,
    ) -> GenerationResult:
        result = GenerationResult()
        pilots = [p for p in plan.pilots if not p.practice_pilot]
        if not pilots or not plan.channels:
            return result

        heats = plan.number_of_races
        if heats == 0 or plan.auto_number_of_races:
            heats = max(heats, math.ceil(len(pilots) / plan.channel_group_count))

        start_number = len(pre_existing)
        races = [
            Race(round=new_round, race_number=start_number + 1 + i)
            for i in range(heats)
        ]
        if not races:
            return result

        logger.info("SeededFormat: %s, %d pilots into %d races", new_round, len(pilots), len(races))

        race_index = 0
        for pilot in pilots:
            race = races[race_index]
            channel = self._channel_for(race, pilot, plan)
            if channel is None or race.set_pilot(channel, pilot) is None:
                result.unplaced.append(pilot)
                result.warn(f"{race.name}: no free channel for {pilot}")
            race_index = (race_index + 1) % len(races)

        result.races = races
        return result

    def _channel_for(self, race: Race, pilot: Pilot, plan: RoundPlan) -> Optional[Channel]:
        """Previous-round channel if free, else a free one of the same band type (previous first)."""
        previous = self.event.channel_in_round(pilot, plan.calling_round)
        if previous is None:
            previous = self.event.get_channel(pilot)
        if race.is_frequency_free(previous) and previous in plan.channels:
            return previous

        band_type = previous.band_type if previous is not None else BandType.ANALOGUE
        same_band = [c for c in race.free_frequencies(plan.channels) if c.band_type == band_type]
        same_band.sort(key=lambda c: c != previous)
        if same_band:
            return same_band[0]

        # Last resort: any free channel in the plan
        free = race.free_frequencies(plan.channels)
        return free[0] if free else None
