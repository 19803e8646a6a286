"""
Results & Points
================
Position-to-points table, result recording and cumulative totals.

Totals for a round are summed over the rounds of the same stage up to and
including it. With drop_worst_round, a pilot who has a result in every one
of those rounds loses their lowest score.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Sequence

from heatgen import settings
from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Race
from heatgen.domain.result import Result
from heatgen.domain.round import Round

if TYPE_CHECKING:
    from heatgen.formats.base import RoundFormat

logger = logging.getLogger(__name__)


@dataclass
class PointsSettings:
    position_points: List[int] = field(default_factory=lambda: list(settings.POSITION_POINTS))
    dnf_points: int = settings.DNF_POINTS
    drop_worst_round: bool = settings.DROP_WORST_ROUND

    def points_for_position(self, position: int) -> int:
        """Points for a 1-based finishing position; 0 outside the table."""
        index = position - 1
        if 0 <= index < len(self.position_points):
            return self.position_points[index]
        return 0


@dataclass
class Placing:
    """One pilot's finish, as reported by the timing collaborator."""

    pilot: Pilot
    position: int
    dnf: bool = False
    laps_finished: int = 0
    time_seconds: float = 0.0


def record_results(
    event: EventSnapshot,
    race: Race,
    placings: Sequence[Placing],
    points_settings: Optional[PointsSettings] = None,
    round_format: Optional["RoundFormat"] = None,
) -> List[Result]:
    """
    Replace race's results with placings, award points and end the race.

    Points come from the position table (DNF gets dnf_points) unless the
    round's format overrides them in adjust_results.
    """
    points_settings = points_settings or PointsSettings()

    results: List[Result] = []
    for placing in placings:
        if not race.has_pilot(placing.pilot):
            raise ValueError(f"{placing.pilot} is not in {race.name}")
        points = points_settings.dnf_points if placing.dnf else points_settings.points_for_position(placing.position)
        results.append(
            Result(
                pilot=placing.pilot,
                race=race,
                position=placing.position,
                points=points,
                dnf=placing.dnf,
                laps_finished=placing.laps_finished,
                time_seconds=placing.time_seconds,
            )
        )

    if round_format is not None:
        round_format.adjust_results(race, results)

    event.results = [r for r in event.results if r.race is not race] + results
    race.started = True
    race.ended = True
    logger.info("Recorded %d results for %s", len(results), race.name)
    return results


def get_position(event: EventSnapshot, race: Race, pilot: Pilot) -> int:
    """Recorded finishing position, -1 when there is none."""
    result = event.result(race, pilot)
    return result.position if result is not None else -1


def rounds_up_to(event: EventSnapshot, end_round: Round) -> List[Round]:
    """Rounds of end_round's stage, in order, up to and including end_round."""
    return [
        r for r in event.stage_rounds(end_round.stage)
        if r.order <= end_round.order and r.event_type == end_round.event_type
    ]


def pilot_results(event: EventSnapshot, pilot: Pilot, end_round: Optional[Round] = None) -> List[Result]:
    if end_round is None:
        return [r for r in event.results if r.pilot == pilot]
    rounds = rounds_up_to(event, end_round)
    return [r for r in event.results if r.pilot == pilot and any(r.round is rnd for rnd in rounds)]


def points_total(
    event: EventSnapshot,
    pilot: Pilot,
    end_round: Optional[Round] = None,
    points_settings: Optional[PointsSettings] = None,
) -> int:
    points_settings = points_settings or PointsSettings()
    results = pilot_results(event, pilot, end_round)
    if not results:
        return 0

    total = sum(r.points for r in results)
    if points_settings.drop_worst_round and len(results) > 1:
        rounds_counted = len({id(r.round) for r in results})
        rounds_available = len(rounds_up_to(event, end_round)) if end_round is not None else rounds_counted
        # A pilot who missed a round has already dropped one
        if rounds_counted >= rounds_available:
            total -= min(r.points for r in results)
    return total


def points_by_pilot(
    event: EventSnapshot,
    pilots: Iterable[Pilot],
    end_round: Optional[Round] = None,
    points_settings: Optional[PointsSettings] = None,
) -> Dict[Pilot, int]:
    return {p: points_total(event, p, end_round, points_settings) for p in pilots}


def first_place_counts(results: Iterable[Result]) -> Mapping[Pilot, int]:
    """Wins per pilot (position 1, not DNF)."""
    return Counter(r.pilot for r in results if r.position == 1 and not r.dnf)
