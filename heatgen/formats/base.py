"""
Round format strategies: shared base, result type and helpers.

Every format exposes generate_round(history, pre_existing, new_round, plan)
and returns a GenerationResult. Soft failures (pilots that could not be
placed, fallbacks taken) are reported on the result and never raised.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from heatgen.domain.channel import Channel
from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Race, pilots_of
from heatgen.domain.result import Result
from heatgen.domain.round import Round
from heatgen.formats.round_plan import RoundPlan
from heatgen.utils.pairing_history import PairingHistory

logger = logging.getLogger(__name__)


class RoundGenerationError(Exception):
    """Base class for round generation failures."""


@dataclass
class GenerationResult:
    races: List[Race] = field(default_factory=list)
    unplaced: List[Pilot] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    removed: List[Race] = field(default_factory=list)  # pre-existing races dropped from the round

    @property
    def ok(self) -> bool:
        return not self.unplaced

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "races": [str(r) for r in self.races],
            "unplaced": [p.id for p in self.unplaced],
            "warnings": list(self.warnings),
            "removed": [str(r) for r in self.removed],
        }


def heat_count_from_shared_frequencies(pilot_channels: Mapping[Pilot, Optional[Channel]]) -> int:
    """
    Lower bound on heats needed so interfering channels never share a heat.

    For each used channel: its own usage plus the usage of every other used
    channel that interferes with it. Returns the maximum, 0 for no channels.
    """
    usage: Dict[Channel, int] = {}
    for channel in pilot_channels.values():
        if channel is None:
            continue
        usage[channel] = usage.get(channel, 0) + 1

    if not usage:
        return 0

    shared: Dict[Channel, int] = {}
    for channel, count in usage.items():
        total = count
        for other, other_count in usage.items():
            if other != channel and channel.interferes_with(other):
                total += other_count
        shared[channel] = total
    return max(shared.values())


class RoundFormat(ABC):
    """A pluggable round generation policy."""

    name = "round"
    balanced = False

    def __init__(self, event: EventSnapshot):
        self.event = event

    @abstractmethod
    def generate_round(
        self,
        history: PairingHistory,
        pre_existing: List[Race],
        new_round: Round,
        plan: RoundPlan,
    ) -> GenerationResult:
        ...

    def get_output_pilots(self, round: Round) -> List[Pilot]:
        """Pilots that feed the round after this one."""
        return pilots_of(self.event.races_in(round))

    def adjust_results(self, race: Race, results: List[Result]) -> None:
        """Hook for formats that award points outside the position table."""

    def can_generate(self, round: Round) -> bool:
        return True


class RoundFormat2(RoundFormat):
    """
    Template for formats where only the race count varies and each race is
    set up on its own: get_race_count -> create_races -> setup_races.
    """

    def generate_round(
        self,
        history: PairingHistory,
        pre_existing: List[Race],
        new_round: Round,
        plan: RoundPlan,
    ) -> GenerationResult:
        result = GenerationResult()
        count = self.get_race_count(new_round, plan)
        races = self.create_races(pre_existing, new_round, count)
        self.setup_races(races, plan, result)
        result.races = [r for r in races if r not in pre_existing]
        result.removed = [r for r in pre_existing if r not in races]
        return result

    @abstractmethod
    def get_race_count(self, new_round: Round, plan: RoundPlan) -> int:
        ...

    def create_races(self, pre_existing: Iterable[Race], round: Round, total: int) -> List[Race]:
        """
        Keep pre-existing races in number order, pad with new races or trim
        the tail to reach total, then renumber 1..total.
        """
        if total < 0:
            return []

        races = sorted(pre_existing, key=lambda r: r.race_number)
        while len(races) < total:
            races.append(Race(round=round))
        races = races[:total]

        for number, race in enumerate(races, start=1):
            race.race_number = number
            race.round = round
        return races

    def setup_races(self, races: List[Race], plan: RoundPlan, result: GenerationResult) -> None:
        for race in races:
            self.setup_race(race, plan, result)

    @abstractmethod
    def setup_race(self, race: Race, plan: RoundPlan, result: GenerationResult) -> None:
        ...
