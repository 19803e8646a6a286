"""
AutoFormat: general heat generation with minimal repeat pairings.

Per bracket of the calling round:
  1. Resolve the candidate pool (previous bracket pilots still in the plan,
     minus practice pilots, minus pilots already placed this round).
  2. Resolve the heat count (explicit, or auto from pilots / channel groups,
     raised to the shared-frequency lower bound and last round's count).
  3. Optionally re-roll channels per band type (ChannelChange.CHANGE).
  4. Create race shells (left empty for casual practice rounds).
  5. Greedy placement: score every (race, pilot) pair, place the best one,
     repeat until placed or the retry budget is spent.
  6. Rebalance until the biggest and smallest race differ by at most one.

Pilots still unplaced after the retry budget are reported on the result.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from heatgen import settings
from heatgen.domain.channel import BandType, Channel, band_types_of
from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Bracket, Race, count_channel_changes, pilots_of
from heatgen.domain.round import EventType, Round
from heatgen.formats.base import GenerationResult, RoundFormat, heat_count_from_shared_frequencies
from heatgen.formats.round_plan import ChannelChange, RoundPlan
from heatgen.utils.pairing_history import PairingHistory

logger = logging.getLogger(__name__)

ONLY_FREE_RACE_BONUS = 1000
FULL_RACE_PENALTY = 10000
CHANNEL_CHANGE_PENALTY = 1000
UNFLOWN_GROUP_WEIGHT = 5
REPEAT_WEIGHT = 2


@dataclass(frozen=True)
class PilotPoints:
    """Score of placing pilot into race. Sorts best first with a stable tie-break."""

    pilot: Pilot
    race: Race
    points: float
    race_index: int = 0
    pilot_index: int = 0

    @property
    def sort_key(self) -> Tuple[float, int, int]:
        return (-self.points, self.race_index, self.pilot_index)


class AutoFormat(RoundFormat):
    name = "auto"
    balanced = True

    def __init__(self, event: EventSnapshot, retry_factor: Optional[int] = None):
        super().__init__(event)
        self.retry_factor = retry_factor if retry_factor is not None else settings.PLACEMENT_RETRY_FACTOR

    def generate_round(
        self,
        history: PairingHistory,
        pre_existing: List[Race],
        new_round: Round,
        plan: RoundPlan,
    ) -> GenerationResult:
        logger.info(
            "AutoFormat: %s, %d pilots, %d channels, %s",
            new_round, len(plan.pilots), len(plan.channels), plan.channel_change.value,
        )
        result = GenerationResult()
        if not plan.channels or not plan.pilots:
            result.warn(f"{new_round}: nothing to generate (pilots={len(plan.pilots)}, channels={len(plan.channels)})")
            return result

        races = [r for r in pre_existing if not r.locked]
        last_round_races = self.event.races_in(plan.calling_round)
        brackets: List[Bracket] = []
        for race in last_round_races:
            if race.bracket not in brackets:
                brackets.append(race.bracket)
        if not brackets:
            brackets = [Bracket.NONE]

        pre_existing_pilots = pilots_of(pre_existing)
        race_number = len(pre_existing)

        for bracket in brackets:
            last_round_pilots = pilots_of(r for r in last_round_races if r.bracket == bracket)
            if not last_round_pilots:
                last_round_pilots = list(plan.pilots)

            all_pilots = [p for p in last_round_pilots if not p.practice_pilot and p in plan.pilots]
            if not all_pilots:
                continue

            pilot_channels = self._starting_channels(all_pilots, plan.calling_round)
            last_heat_channels = dict(pilot_channels)

            pilots = [p for p in all_pilots if p not in pre_existing_pilots]
            if not pilots:
                continue

            auto = plan.number_of_races == 0 or plan.auto_number_of_races
            heats = plan.number_of_races
            if auto:
                heats = math.ceil(len(all_pilots) / plan.channel_group_count)

            if plan.channel_change == ChannelChange.CHANGE:
                self._reassign_channels(history, pilot_channels, last_heat_channels, plan, heats)

            if auto:
                shared = heat_count_from_shared_frequencies(pilot_channels)
                existing = self.event.race_count(plan.calling_round, bracket)
                heats = max(shared, existing, heats)

            heats -= len(pre_existing)
            for _ in range(heats):
                race_number += 1
                races.append(Race(round=new_round, race_number=race_number, bracket=bracket))

            bracket_races = [r for r in races if r.bracket == bracket]
            if new_round.event_type == EventType.CASUAL_PRACTICE or not bracket_races:
                continue

            unplaced = self._place_pilots(history, bracket_races, pilots, pilot_channels, plan, new_round)
            self._rebalance(history, bracket_races, pilots, pilot_channels, plan, result)

            if unplaced:
                result.unplaced.extend(unplaced)
                result.warn(
                    f"{new_round} bracket {bracket.value}: could not place {len(unplaced)} pilot(s): "
                    + ", ".join(str(p) for p in unplaced)
                )

            if logger.isEnabledFor(logging.DEBUG):
                for pilot in last_round_pilots:
                    logger.debug("%s overflown %s", pilot, history.overflown(pilot))

        result.races = [r for r in races if r not in pre_existing]
        return result

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def _starting_channels(self, pilots: List[Pilot], calling_round: Optional[Round]) -> Dict[Pilot, Optional[Channel]]:
        """Event default channel, overridden by the channel flown in the calling round."""
        channels: Dict[Pilot, Optional[Channel]] = {}
        for pilot in pilots:
            channels[pilot] = self.event.get_channel(pilot)
            flown = self.event.channel_in_round(pilot, calling_round)
            if flown is not None:
                channels[pilot] = flown
        return channels

    def _reassign_channels(
        self,
        history: PairingHistory,
        pilot_channels: Dict[Pilot, Optional[Channel]],
        last_heat_channels: Dict[Pilot, Optional[Channel]],
        plan: RoundPlan,
        heats: int,
    ) -> None:
        """
        Re-roll channels within each band type. Pilots with the least racing
        history pick first; each avoids the channels of pilots it has not yet
        raced so those pairings stay possible.
        """
        for band_type in band_types_of(plan.channels):
            band_pilots = [
                p for p, c in pilot_channels.items()
                if c is not None and c.band_type == band_type
            ]
            band_pilots.sort(key=lambda p: history.flown_pilots_sum(p))
            band_channels = [c for c in plan.channels if c.band_type == band_type]

            for pilot in band_pilots:
                pilot_channels[pilot] = None

            for pilot in band_pilots:
                old_channel = last_heat_channels.get(pilot)
                unflown = history.unflown_pilots(pilot, band_pilots)
                unflown_channels = {pilot_channels[p] for p in unflown if pilot_channels[p] is not None}
                flyable = [c for c in band_channels if c not in unflown_channels]

                channel_count: Dict[Channel, int] = {c: 0 for c in band_channels}
                for assigned in pilot_channels.values():
                    if assigned is None:
                        continue
                    for candidate in band_channels:
                        if assigned.interferes_with(candidate):
                            channel_count[candidate] += 1

                def preference(channel: Channel) -> Tuple[int, bool]:
                    return (channel_count[channel], channel != old_channel)

                if flyable:
                    choice = min(flyable, key=preference)
                    if channel_count[choice] < heats:
                        pilot_channels[pilot] = choice

                if band_channels and pilot_channels[pilot] is None:
                    pilot_channels[pilot] = min(band_channels, key=preference)

    def _alternative_channel(self, race: Race, band_type: BandType, current: Optional[Channel], plan: RoundPlan) -> Optional[Channel]:
        channel = race.free_channel(band_type, plan.channels)
        if channel is not None:
            return channel
        # Any unused channel of the band type, current one first
        unused = [c for c in plan.channels if c not in race.channels and c.band_type == band_type]
        unused.sort(key=lambda c: c != current)
        if unused:
            return unused[0]
        # Band type not in the pool at all
        free = race.free_frequencies(plan.channels)
        return free[0] if free else None

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def _place_pilots(
        self,
        history: PairingHistory,
        bracket_races: List[Race],
        pilots: List[Pilot],
        pilot_channels: Dict[Pilot, Optional[Channel]],
        plan: RoundPlan,
        new_round: Round,
    ) -> List[Pilot]:
        """Greedy global-best placement. Returns the pilots left unplaced."""
        to_allocate = list(pilots)
        max_loops = len(to_allocate) * self.retry_factor
        type_races = [r for r in self.event.races if r.event_type == new_round.event_type]
        loops = 0

        while to_allocate and loops < max_loops:
            loops += 1
            scored: List[PilotPoints] = []
            for race_index, race in enumerate(bracket_races):
                for pilot_index, pilot in enumerate(to_allocate):
                    points = self.points_for_race(
                        history, race, bracket_races, pilot, pilot_channels.get(pilot), pilots, plan
                    )
                    scored.append(PilotPoints(pilot, race, points, race_index, pilot_index))
            scored.sort(key=lambda pp: pp.sort_key)

            for candidate in scored:
                if self._try_place(candidate, pilot_channels, plan, type_races):
                    logger.debug(
                        "picked %s for %s (%.0f points, flown %d, unflown %d)",
                        candidate.pilot, candidate.race.name, candidate.points,
                        history.flown_pilot_count(candidate.pilot),
                        history.unflown_pilot_count(candidate.pilot, pilots),
                    )
                    to_allocate.remove(candidate.pilot)
                    break

        return to_allocate

    def _try_place(
        self,
        candidate: PilotPoints,
        pilot_channels: Dict[Pilot, Optional[Channel]],
        plan: RoundPlan,
        type_races: List[Race],
    ) -> bool:
        race, pilot = candidate.race, candidate.pilot
        channel = pilot_channels.get(pilot)
        band_type = channel.band_type if channel is not None else BandType.ANALOGUE

        if not race.is_frequency_free(channel) or channel not in plan.channels:
            new_channel = self._alternative_channel(race, band_type, channel, plan)
            occupant = race.get_pilot(channel)
            if (
                occupant is not None
                and new_channel is not None
                and race.is_frequency_free_without(new_channel, occupant)
                and count_channel_changes(pilot, type_races) > count_channel_changes(occupant, type_races)
            ):
                # The incumbent has changed channel less often, so it moves instead
                race.remove_pilot(occupant)
                race.set_pilot(new_channel, occupant)
                pilot_channels[occupant] = new_channel
            else:
                pilot_channels[pilot] = new_channel
                channel = new_channel

        if channel is not None and channel in plan.channels and race.is_frequency_free(channel):
            return race.set_pilot(channel, pilot) is not None
        return False

    def points_for_race(
        self,
        history: PairingHistory,
        race: Race,
        race_pool: Sequence[Race],
        pilot: Pilot,
        channel: Optional[Channel],
        pilots: Sequence[Pilot],
        plan: RoundPlan,
    ) -> float:
        """
        Desirability of putting pilot into race.

        +1000 when race is the only one in the pool with the pilot's channel
        free, -10000 when the race is full, -1000 when the channel is taken
        and the plan keeps channels, +5 per squared count of not-yet-raced
        pilots already in the race, -2 per squared repeat count against the
        race's pilots, +1 per pilot still to race.
        """
        pilots_to_race = history.unflown_pilots(pilot, pilots)
        points = 0.0

        if race.get_pilot(channel) != pilot:
            if race.is_frequency_free(channel):
                if not any(r is not race and r.is_frequency_free(channel) for r in race_pool):
                    points += ONLY_FREE_RACE_BONUS

            if race.pilot_count >= plan.channel_group_count:
                points -= FULL_RACE_PENALTY

            if not race.is_frequency_free(channel) and channel in plan.channels:
                if plan.channel_change != ChannelChange.CHANGE:
                    points -= CHANNEL_CHANGE_PENALTY

        race_pilots = race.pilots
        if race_pilots:
            intersection = sum(1 for p in pilots_to_race if p in race_pilots)
            points += intersection * intersection * UNFLOWN_GROUP_WEIGHT
            points -= history.flown_pilots_sum_sqr(pilot, race_pilots) * REPEAT_WEIGHT

        points += len(pilots_to_race)
        return points

    # ------------------------------------------------------------------
    # Rebalancing
    # ------------------------------------------------------------------

    def _rebalance(
        self,
        history: PairingHistory,
        bracket_races: List[Race],
        pilots: List[Pilot],
        pilot_channels: Dict[Pilot, Optional[Channel]],
        plan: RoundPlan,
        result: GenerationResult,
    ) -> None:
        """Move pilots from the biggest race to the smallest until sizes differ by at most one."""
        max_moves = sum(r.pilot_count for r in bracket_races)

        for _ in range(max_moves):
            biggest, smallest = _size_extremes(bracket_races)
            if biggest.pilot_count - smallest.pilot_count <= 1:
                return

            options: List[Tuple[float, int, Pilot]] = []
            for index, pilot in enumerate(biggest.pilots):
                channel = pilot_channels.get(pilot)
                gain = self.points_for_race(history, smallest, [], pilot, channel, pilots, plan)
                loss = self.points_for_race(history, biggest, [], pilot, channel, pilots, plan)
                options.append((gain - loss, index, pilot))
            options.sort(key=lambda o: (-o[0], o[1]))

            if not self._move_one(options, biggest, smallest, pilot_channels, plan):
                result.warn(f"Could not rebalance {biggest.name} into {smallest.name}: no free channel")
                return

    def _move_one(
        self,
        options: List[Tuple[float, int, Pilot]],
        biggest: Race,
        smallest: Race,
        pilot_channels: Dict[Pilot, Optional[Channel]],
        plan: RoundPlan,
    ) -> bool:
        for _, _, pilot in options:
            channel = biggest.get_channel(pilot)
            target = channel if smallest.is_frequency_free(channel) else None
            if target is None and channel is not None:
                target = smallest.free_channel(channel.band_type, plan.channels)
            if target is None:
                frees = smallest.free_frequencies(plan.channels)
                target = frees[0] if frees else None
            if target is None:
                continue
            biggest.remove_pilot(pilot)
            smallest.set_pilot(target, pilot)
            pilot_channels[pilot] = target
            return True
        return False


def _size_extremes(races: List[Race]) -> Tuple[Race, Race]:
    """(biggest, smallest); the last of equally big races, the first of equally small."""
    biggest = races[0]
    smallest = races[0]
    for race in races:
        if race.pilot_count >= biggest.pilot_count:
            biggest = race
        if race.pilot_count < smallest.pilot_count:
            smallest = race
    return biggest, smallest
