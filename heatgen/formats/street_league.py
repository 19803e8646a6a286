"""
StreetLeague: regroup the whole field every round by points.

Pilots are sorted by cumulative points ascending and cut into groups the
size of the previous round's first race, so the lowest scorers race first.
Group sizes are evened out by moving members from the last-but-one group
backwards onto the last one. Inside a group the highest scorers keep their
previous channel first; anyone who collides takes the first free channel.

Race points are awarded by laps then time rather than the position table.
"""

import logging
from typing import Dict, List, Optional

from heatgen.domain.channel import Channel
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Race, pilots_of
from heatgen.domain.result import Result
from heatgen.domain.round import Round
from heatgen.formats.base import GenerationResult, RoundFormat
from heatgen.formats.round_plan import RoundPlan
from heatgen.utils.pairing_history import PairingHistory

logger = logging.getLogger(__name__)


def get_group_balance(entries: int, group_size: int) -> List[List[int]]:
    """
    Split indices 0..entries-1 into chunks of group_size, then move members
    from the last-but-one chunk (walking backwards) to the last chunk until
    the first and last chunk differ by at most one. Indices are renumbered
    so each chunk holds a consecutive run.
    """
    if entries <= 0:
        return []
    group_size = max(group_size, 1)

    chunks = [list(range(start, min(start + group_size, entries))) for start in range(0, entries, group_size)]

    if len(chunks) > 1:
        taken_from = len(chunks) - 2
        max_moves = entries * len(chunks)
        moves = 0
        while abs(len(chunks[-1]) - len(chunks[0])) > 1 and moves < max_moves:
            moves += 1
            if chunks[taken_from]:
                chunks[-1].append(chunks[taken_from].pop())
            taken_from -= 1
            if taken_from < 0:
                taken_from = len(chunks) - 2

    index = 0
    for chunk in chunks:
        for k in range(len(chunk)):
            chunk[k] = index
            index += 1
    return chunks


class StreetLeague(RoundFormat):
    name = "street_league"
    balanced = True

    def generate_round(
        self,
        history: PairingHistory,
        pre_existing: List[Race],
        new_round: Round,
        plan: RoundPlan,
    ) -> GenerationResult:
        result = GenerationResult()

        last_round = self.event.previous_round(new_round) or plan.calling_round
        last_races = self.event.races_in(last_round)
        if not last_races:
            result.warn(f"{new_round}: no previous round to regroup")
            return result

        locked = sorted((r for r in pre_existing if r.locked), key=lambda r: r.race_number)
        raced = pilots_of(locked)
        ranked = [p for p in self._ranked_pilots(last_races) if p not in raced]
        group_size = len(last_races[0].channels) or plan.channel_group_count
        groups = get_group_balance(len(ranked), group_size)
        logger.info(
            "StreetLeague: %s, %d pilots in groups %s, %d race(s) already run",
            new_round, len(ranked), [len(g) for g in groups], len(locked),
        )

        channels = list(self.event.channels) or list(plan.channels)
        existing = sorted((r for r in pre_existing if not r.locked), key=lambda r: r.race_number)
        sample = last_races[0]
        new_races: List[Race] = []
        first_number = max((r.race_number for r in locked), default=0) + 1

        for race_index, group in enumerate(groups):
            if race_index < len(existing):
                race = existing[race_index]
            else:
                race = sample.clone()
                new_races.append(race)
            race.clear_pilots()
            race.race_number = first_number + race_index
            race.round = new_round

            members = [ranked[i] for i in group]
            self._seat_group(race, members, last_races, channels, result)

        result.races = new_races
        result.removed = existing[len(groups):]
        return result

    def _ranked_pilots(self, last_races: List[Race]) -> List[Pilot]:
        pilots: List[Pilot] = []
        for race in last_races:
            for pilot in race.pilots:
                if pilot not in pilots:
                    pilots.append(pilot)

        totals: Dict[Pilot, int] = {p: 0 for p in pilots}
        for result in self.event.results:
            if result.pilot in totals:
                totals[result.pilot] += result.points
        return sorted(pilots, key=lambda p: totals[p])

    def _seat_group(
        self,
        race: Race,
        members: List[Pilot],
        last_races: List[Race],
        channels: List[Channel],
        result: GenerationResult,
    ) -> None:
        unassigned: List[Pilot] = []
        # Highest points first keep their channel
        for pilot in reversed(members):
            last_channel = self._last_channel(pilot, last_races)
            if last_channel in channels and race.set_pilot(last_channel, pilot) is not None:
                continue
            unassigned.append(pilot)

        for pilot in unassigned:
            free = race.free_frequencies(channels)
            if not free or race.set_pilot(free[0], pilot) is None:
                result.unplaced.append(pilot)
                result.warn(f"{race.name}: no free channel for {pilot}")

        # Keep slots in channel order
        order = {c: i for i, c in enumerate(channels)}
        race.pilot_channels.sort(key=lambda pc: order.get(pc.channel, len(order)))

    @staticmethod
    def _last_channel(pilot: Pilot, last_races: List[Race]) -> Optional[Channel]:
        for race in last_races:
            channel = race.get_channel(pilot)
            if channel is not None:
                return channel
        return None

    def adjust_results(self, race: Race, results: List[Result]) -> None:
        """Points 1..n, ranked by laps finished then slowest time first."""
        ranked = sorted(
            (r for r in results if r.race.round is race.round),
            key=lambda r: (r.laps_finished, -r.time_seconds),
        )
        for index, result in enumerate(ranked):
            result.points = index + 1
