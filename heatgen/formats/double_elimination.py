"""
DoubleElimination: winners and losers brackets fed from the previous round.

From each ended race of the calling round the top half (ceil(n / 2) by
recorded position) goes on:
  - winners-bracket (or unbracketed) races: top half stays in winners,
    the rest drop to losers
  - losers-bracket races: top half survives in losers, the rest are out

Race counts per bracket come from the spot counts divided by the channel
group count. When all spots together are fewer than the plan's channels,
both pools are merged into one unbracketed set of races.
"""

import logging
import math
from typing import List, Optional, Tuple

from heatgen.domain.channel import Channel
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Bracket, Race, pilots_of
from heatgen.domain.round import Round, RoundType
from heatgen.formats.base import GenerationResult, RoundFormat
from heatgen.formats.round_plan import RoundPlan
from heatgen.services.results import get_position
from heatgen.utils.pairing_history import PairingHistory

logger = logging.getLogger(__name__)


class DoubleElimination(RoundFormat):
    name = "double_elimination"

    def generate_round(
        self,
        history: PairingHistory,
        pre_existing: List[Race],
        new_round: Round,
        plan: RoundPlan,
    ) -> GenerationResult:
        result = GenerationResult()
        new_round.round_type = RoundType.DOUBLE_ELIMINATION
        if not plan.channels:
            return result

        open_races = [r for r in pre_existing if not r.locked]
        for race in open_races:
            race.clear_pilots()
        already_placed = pilots_of(pre_existing)

        last_round_races = self.event.races_in(plan.calling_round)
        winner_race_pilots = len(pilots_of(r for r in last_round_races if r.bracket != Bracket.LOSERS))
        loser_race_pilots = len(pilots_of(r for r in last_round_races if r.bracket == Bracket.LOSERS))

        winner_spots = math.ceil(winner_race_pilots / 2)
        new_loser_spots = winner_race_pilots - winner_spots
        loser_spots = math.ceil(loser_race_pilots / 2) + new_loser_spots

        winners, losers = self.make_winners_losers(last_round_races)
        logger.info(
            "DoubleElimination: %s, winners %d (%d spots), losers %d (%d spots)",
            new_round, len(winners), winner_spots, len(losers), loser_spots,
        )

        next_number = len(pre_existing)
        new_races: List[Race] = []

        if winner_spots + loser_spots < len(plan.channels):
            # Small enough for a single bracket
            created, next_number = self._create_races(
                winner_spots + loser_spots, pre_existing, new_round, Bracket.NONE, plan, next_number
            )
            new_races.extend(created)
            merged = [p for p in winners + losers if p not in already_placed]
            self._assign_pilots(open_races + new_races, merged, Bracket.NONE, plan, result)
        else:
            for bracket, spots in ((Bracket.WINNERS, winner_spots), (Bracket.LOSERS, loser_spots)):
                created, next_number = self._create_races(spots, pre_existing, new_round, bracket, plan, next_number)
                new_races.extend(created)
            all_races = open_races + new_races
            self._assign_pilots(all_races, [p for p in winners if p not in already_placed], Bracket.WINNERS, plan, result)
            self._assign_pilots(all_races, [p for p in losers if p not in already_placed], Bracket.LOSERS, plan, result)

        result.races = new_races
        return result

    def make_winners_losers(self, races: List[Race]) -> Tuple[List[Pilot], List[Pilot]]:
        """Split the pilots of the ended races into (winners, losers); eliminated pilots are in neither."""
        winners: List[Pilot] = []
        losers: List[Pilot] = []
        for race in races:
            if not race.ended:
                continue
            for pilot in race.pilots:
                top_half = self._top_half(race, pilot)
                if race.bracket == Bracket.LOSERS:
                    if top_half and pilot not in losers and pilot not in winners:
                        losers.append(pilot)
                elif top_half:
                    if pilot not in winners:
                        winners.append(pilot)
                    if pilot in losers:
                        losers.remove(pilot)
                elif pilot not in losers and pilot not in winners:
                    losers.append(pilot)
        return winners, losers

    def get_output_pilots(self, round: Round) -> List[Pilot]:
        winners, losers = self.make_winners_losers(self.event.races_in(round))
        return winners + [p for p in losers if p not in winners]

    def _top_half(self, race: Race, pilot: Pilot) -> bool:
        top_half = math.ceil(race.pilot_count / 2)
        position = get_position(self.event, race, pilot)
        if position <= 0:
            return False
        return position <= top_half

    def _create_races(
        self,
        total_pilots: int,
        pre_existing: List[Race],
        round: Round,
        bracket: Bracket,
        plan: RoundPlan,
        next_number: int,
    ) -> Tuple[List[Race], int]:
        needed = math.ceil(total_pilots / plan.channel_group_count)
        have = sum(1 for r in pre_existing if r.bracket == bracket)
        races: List[Race] = []
        for _ in range(have, needed):
            next_number += 1
            races.append(Race(round=round, race_number=next_number, bracket=bracket))
        return races, next_number

    def _assign_pilots(
        self,
        round_races: List[Race],
        pilots: List[Pilot],
        bracket: Bracket,
        plan: RoundPlan,
        result: GenerationResult,
    ) -> None:
        """Rotate pilots by last race number into the emptiest race of the bracket."""
        races = [r for r in round_races if r.bracket == bracket]
        if not races:
            if pilots:
                result.unplaced.extend(pilots)
                result.warn(f"No {bracket.value} races for {len(pilots)} pilot(s)")
            return

        ordered = sorted(pilots, key=self._last_race_number(plan))
        for pilot in ordered:
            race = min(races, key=lambda r: r.pilot_count)
            channel = self._channel_for(race, pilot, plan)
            if channel is None or race.set_pilot(channel, pilot) is None:
                result.unplaced.append(pilot)
                result.warn(f"{race.name}: no free channel for {pilot}")

    def _last_race_number(self, plan: RoundPlan):
        races = self.event.races_in(plan.calling_round)

        def key(pilot: Pilot) -> int:
            numbers = [r.race_number for r in races if r.has_pilot(pilot)]
            return max(numbers) if numbers else 0

        return key

    def _channel_for(self, race: Race, pilot: Pilot, plan: RoundPlan) -> Optional[Channel]:
        channel = self.event.channel_in_round(pilot, plan.calling_round)
        if channel is None:
            channel = self.event.get_channel(pilot)
        if channel in plan.channels and race.is_frequency_free(channel):
            return channel
        free = race.free_frequencies(plan.channels)
        return free[0] if free else None
