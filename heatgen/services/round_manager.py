"""
Round Manager
=============
Entry points for building rounds on an EventSnapshot.

Every generation goes through generate():
  1. Rebuild the pairing history from the event's races
  2. Run the round format against the round's existing races
  3. Check the output (slots, capacity, interference, balance)
  4. Swap the round's full race list into the event in one step

A format that blows up leaves the event untouched: the round and its races
are put back as they were, the failure is logged and an empty
GenerationResult carrying the error is returned (or RoundGenerationError is
raised when the caller asks for strict generation).
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import fields
from typing import Dict, List, Optional, Sequence, Type

from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Race, pilots_of
from heatgen.domain.round import EventType, Round, Stage, StageType
from heatgen.formats.auto_format import AutoFormat
from heatgen.formats.base import GenerationResult, RoundFormat, RoundGenerationError, heat_count_from_shared_frequencies
from heatgen.formats.chase_the_ace import ChaseTheAce
from heatgen.formats.double_elimination import DoubleElimination
from heatgen.formats.final_format import FinalFormat
from heatgen.formats.round_plan import PilotOrdering, RoundPlan
from heatgen.formats.seeded_format import SeededFormat
from heatgen.formats.street_league import StreetLeague
from heatgen.services.schedule_checks import check_races
from heatgen.utils.pairing_history import PairingHistory

logger = logging.getLogger(__name__)

FORMATS_BY_STAGE: Dict[StageType, Type[RoundFormat]] = {
    StageType.DEFAULT: AutoFormat,
    StageType.FINAL: FinalFormat,
    StageType.DOUBLE_ELIMINATION: DoubleElimination,
    StageType.STREET_LEAGUE: StreetLeague,
    StageType.CHASE_THE_ACE: ChaseTheAce,
}

FORMATS_BY_SEEDING: Dict[PilotOrdering, Type[RoundFormat]] = {
    PilotOrdering.MINIMISE_PREVIOUSLY_FLOWN: AutoFormat,
    PilotOrdering.ORDERED: SeededFormat,
    PilotOrdering.SEEDED: SeededFormat,
}


# ---------------------------------------------------------------------------
# Format selection
# ---------------------------------------------------------------------------

def round_format_for_stage(event: EventSnapshot, stage: Optional[Stage]) -> RoundFormat:
    stage_type = stage.stage_type if stage is not None else StageType.DEFAULT
    format_cls = FORMATS_BY_STAGE.get(stage_type, AutoFormat)
    if format_cls is ChaseTheAce:
        return ChaseTheAce(event, limit=stage.win_limit if stage is not None else None)
    return format_cls(event)


def round_format_for_plan(event: EventSnapshot, plan: RoundPlan) -> RoundFormat:
    return FORMATS_BY_SEEDING.get(plan.pilot_seeding, AutoFormat)(event)


def get_output_pilots(event: EventSnapshot, round: Round) -> List[Pilot]:
    """Pilots feeding the round after this one, per the round's own format."""
    return round_format_for_stage(event, round.stage).get_output_pilots(round)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

def build_round_plan(
    event: EventSnapshot,
    previous_round: Optional[Round],
    stage: Optional[Stage] = None,
    pilots: Optional[Sequence[Pilot]] = None,
) -> RoundPlan:
    """
    Default plan for the round after previous_round.

    With no previous round every event pilot is in, with as many races as the
    shared-frequency bound requires. Otherwise the previous round's output
    pilots are in, with the previous round's race count.
    """
    if previous_round is None:
        plan_pilots = list(event.pilots)
        number_of_races = heat_count_from_shared_frequencies(event.pilot_channels)
    else:
        plan_pilots = get_output_pilots(event, previous_round)
        number_of_races = len(event.races_in(previous_round))

    if pilots is not None:
        plan_pilots = list(pilots)

    return RoundPlan(
        pilots=tuple(plan_pilots),
        channels=tuple(event.channels),
        calling_round=previous_round,
        number_of_races=number_of_races,
        stage=stage,
        event_type=event.event_type,
    )


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class _RoundBackup:
    """Copies of a round, its stage and its races taken before a format runs."""

    def __init__(self, round: Round, races: List[Race]):
        self.round = round
        self.round_copy = copy.copy(round)
        self.stage_copy = copy.copy(round.stage) if round.stage is not None else None
        self.races = [(race, copy.copy(race), [copy.copy(pc) for pc in race.pilot_channels]) for race in races]

    def restore(self) -> None:
        _copy_fields(self.round_copy, self.round)
        if self.stage_copy is not None:
            _copy_fields(self.stage_copy, self.round.stage)
        for race, race_copy, slots in self.races:
            _copy_fields(race_copy, race)
            race.pilot_channels = slots


def _copy_fields(source, target) -> None:
    for f in fields(source):
        setattr(target, f.name, getattr(source, f.name))


def generate(
    event: EventSnapshot,
    round_format: RoundFormat,
    new_round: Round,
    plan: RoundPlan,
    strict: bool = False,
) -> GenerationResult:
    pre_existing = event.races_in(new_round)
    history = PairingHistory(r for r in event.races if r.round is not new_round)
    backup = _RoundBackup(new_round, pre_existing)

    try:
        result = round_format.generate_round(history, pre_existing, new_round, plan)
    except Exception as exc:
        backup.restore()
        logger.exception("Round generation failed for %s with %s", new_round, round_format.name)
        if strict:
            raise RoundGenerationError(f"{round_format.name} failed for {new_round}: {exc}") from exc
        failed = GenerationResult()
        failed.warnings.append(f"{round_format.name} failed: {exc}")
        return failed

    kept = [r for r in pre_existing if r not in result.removed]
    round_races = kept + [r for r in result.races if r not in pre_existing]
    report = check_races(round_races, plan, balance=round_format.balanced)
    for violation in report.violations:
        result.warn(f"{violation.code}: {violation.message}")

    if new_round not in event.rounds:
        event.rounds.append(new_round)
    event.replace_round_races(new_round, round_races)

    logger.info(
        "Generated %s with %s: %d new race(s), %d unplaced",
        new_round, round_format.name, len(result.races), len(result.unplaced),
    )
    return result


def generate_round(event: EventSnapshot, plan: RoundPlan) -> GenerationResult:
    """New round after everything so far, format chosen by the plan's seeding."""
    event_type = plan.calling_round.event_type if plan.calling_round is not None else plan.event_type
    new_round = event.get_or_create_round(event.next_round_number(event_type), event_type)
    if plan.keep_stage:
        new_round.stage = plan.stage
    return generate(event, round_format_for_plan(event, plan), new_round, plan)


def generate_next_round(
    event: EventSnapshot,
    calling_round: Round,
    round_format: Optional[RoundFormat] = None,
) -> GenerationResult:
    """The round numbered after calling_round, in calling_round's stage format by default."""
    new_round = event.get_or_create_round(calling_round.round_number + 1, calling_round.event_type, calling_round.stage)
    if round_format is None:
        round_format = round_format_for_stage(event, calling_round.stage)
    plan = build_round_plan(event, calling_round, calling_round.stage)
    return generate(event, round_format, new_round, plan)


def generate_seeded(event: EventSnapshot, calling_round: Round, pilots: Sequence[Pilot]) -> GenerationResult:
    """Deal pilots, in the given order, into just enough races."""
    new_round = event.get_or_create_round(event.next_round_number(calling_round.event_type), calling_round.event_type)
    plan = build_round_plan(event, calling_round, pilots=pilots)
    plan = plan.with_changes(
        number_of_races=math.ceil(len(plan.pilots) / max(event.max_pilots_per_race, 1)),
        auto_number_of_races=False,
        pilot_seeding=PilotOrdering.SEEDED,
    )
    return generate(event, SeededFormat(event), new_round, plan)


def generate_final(event: EventSnapshot, calling_round: Round) -> GenerationResult:
    new_round = event.get_or_create_round(calling_round.round_number + 1, event.event_type)
    plan = build_round_plan(event, calling_round)
    plan = plan.with_changes(
        number_of_races=math.ceil(len(plan.pilots) / max(plan.channel_group_count, 1)),
        auto_number_of_races=False,
    )
    return generate(event, FinalFormat(event), new_round, plan)


def on_race_results_changed(event: EventSnapshot, race: Race) -> Optional[GenerationResult]:
    """
    Regenerate the following round when it belongs to a stage and everything
    in race's round has finished. A following round that has already started
    racing is left alone.
    """
    round = race.round
    next_round = event.next_round(round)
    if next_round is None or next_round.stage is None:
        return None
    if not all_races_finished(event, round):
        return None
    if any(r.locked for r in event.races_in(next_round)):
        logger.info("Not regenerating %s: it has races already run", next_round)
        return None

    round_format = round_format_for_stage(event, next_round.stage)
    if not round_format.can_generate(round):
        return None
    plan = build_round_plan(event, round, next_round.stage)
    return generate(event, round_format, next_round, plan)


# ---------------------------------------------------------------------------
# Cloning
# ---------------------------------------------------------------------------

def clone_last_heat(event: EventSnapshot, round: Round) -> Optional[Race]:
    races = event.races_in(round)
    if not races:
        return None
    cloned = races[-1].clone()
    cloned.race_number = races[-1].race_number + 1
    event.replace_round_races(round, races + [cloned])
    return cloned


def clone_round(event: EventSnapshot, round: Round) -> List[Race]:
    new_round = event.get_or_create_round(event.next_round_number(round.event_type), round.event_type, round.stage)
    new_round.stage = round.stage

    cloned: List[Race] = []
    for race in event.races_in(round):
        copy = race.clone()
        copy.round = new_round
        cloned.append(copy)
    event.replace_round_races(new_round, event.races_in(new_round) + cloned)
    return cloned


# ---------------------------------------------------------------------------
# Round state
# ---------------------------------------------------------------------------

def all_races_finished(event: EventSnapshot, round: Round) -> bool:
    races = event.races_in(round)
    return bool(races) and all(r.ended for r in races)


def round_has_all_pilots(event: EventSnapshot, round: Round) -> bool:
    if round.event_type == EventType.CASUAL_PRACTICE:
        return True
    return len(pilots_of(event.races_in(round))) >= len(event.pilot_channels)
