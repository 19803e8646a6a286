"""
Pairing history: how many times each pair of pilots has raced together.

Counts are stored in both directions so every query is a lookup on the
asking pilot's row. A missing entry means zero, never an error.
Practice races never contribute.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Race
from heatgen.domain.round import EventType


class PairingHistory:
    def __init__(self, races: Optional[Iterable[Race]] = None):
        self._flown: Dict[Pilot, Dict[Pilot, int]] = defaultdict(dict)
        if races is not None:
            self.add_races(races)

    def add_races(self, races: Iterable[Race]) -> None:
        for race in races:
            self.add_race(race)

    def add_race(self, race: Race) -> None:
        """Increment every pair of distinct pilots in race. No dedup of repeated calls."""
        if race.event_type == EventType.PRACTICE:
            return

        pilots = race.pilots
        for pilot in pilots:
            row = self._flown[pilot]
            for other in pilots:
                if other == pilot:
                    continue
                row[other] = row.get(other, 0) + 1

    # ----- Queries -----

    def flown_count(self, pilot: Pilot, other: Pilot) -> int:
        row = self._flown.get(pilot)
        if row is None:
            return 0
        return row.get(other, 0)

    def flown_pilots(self, pilot: Pilot, subset: Optional[Iterable[Pilot]] = None) -> List[Pilot]:
        """Pilots raced at least once, optionally restricted to subset (in subset order)."""
        row = self._flown.get(pilot, {})
        if subset is None:
            return list(row.keys())
        return [p for p in subset if p in row]

    def flown_pilot_count(self, pilot: Pilot) -> int:
        return len(self._flown.get(pilot, {}))

    def flown_pilots_sum(self, pilot: Pilot, subset: Optional[Iterable[Pilot]] = None) -> int:
        """Total co-races, optionally only against subset."""
        row = self._flown.get(pilot, {})
        if subset is None:
            return sum(row.values())
        return sum(row.get(p, 0) for p in subset)

    def flown_pilots_sum_sqr(self, pilot: Pilot, subset: Iterable[Pilot]) -> int:
        """Sum of squared co-race counts against subset; concentrated repeats weigh more."""
        row = self._flown.get(pilot, {})
        return sum(row.get(p, 0) ** 2 for p in subset)

    def flown_pilots_max(self, pilot: Pilot) -> int:
        row = self._flown.get(pilot, {})
        return max(row.values(), default=0)

    def unflown_pilots(self, pilot: Pilot, candidates: Iterable[Pilot]) -> List[Pilot]:
        """Candidates never raced against pilot (pilot itself included if present)."""
        row = self._flown.get(pilot, {})
        return [p for p in candidates if p not in row]

    def unflown_pilot_count(self, pilot: Pilot, candidates: Iterable[Pilot]) -> int:
        return len(self.unflown_pilots(pilot, candidates))

    def overflown(self, pilot: Pilot) -> Dict[Pilot, int]:
        """Partners raced more than once, with their counts."""
        row = self._flown.get(pilot, {})
        return {p: count for p, count in row.items() if count > 1}

    def pilots(self) -> List[Pilot]:
        return list(self._flown.keys())

    def describe(self, pilot: Pilot) -> str:
        row = self._flown.get(pilot, {})
        pairs = ", ".join(f"{other}={count}" for other, count in row.items())
        return f"{pilot}: {pairs}" if pairs else f"{pilot}: none"
