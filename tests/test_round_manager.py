"""
Tests for round manager orchestration: plans, format selection, failure
handling, cloning and round state.
"""

import pytest

from heatgen.domain.channel import FATSHARK, RACEBAND
from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.round import EventType, RoundType, Stage, StageType
from heatgen.formats.auto_format import AutoFormat
from heatgen.formats.base import GenerationResult, RoundFormat, RoundGenerationError
from heatgen.formats.chase_the_ace import ChaseTheAce
from heatgen.formats.double_elimination import DoubleElimination
from heatgen.formats.final_format import FinalFormat
from heatgen.formats.round_plan import InvalidRoundPlanError, PilotOrdering, RoundPlan
from heatgen.formats.seeded_format import SeededFormat
from heatgen.formats.street_league import StreetLeague
from heatgen.services import round_manager

R1, R8, F2, F4 = RACEBAND[0], RACEBAND[7], FATSHARK[1], FATSHARK[3]
CHANNELS = [R1, R8, F2, F4]


def make_event(pilot_count: int = 8, event_type=EventType.RACE) -> EventSnapshot:
    pilots = [Pilot(id=i, name=f"p{i}") for i in range(1, pilot_count + 1)]
    return EventSnapshot(
        event_type=event_type,
        pilots=pilots,
        channels=list(CHANNELS),
        pilot_channels={p: CHANNELS[i % 4] for i, p in enumerate(pilots)},
    )


def first_round(event: EventSnapshot):
    result = round_manager.generate_round(event, round_manager.build_round_plan(event, None))
    return result.races[0].round


class ExplodingFormat(RoundFormat):
    name = "exploding"

    def generate_round(self, history, pre_existing, new_round, plan) -> GenerationResult:
        raise RuntimeError("boom")


class ScramblingFormat(RoundFormat):
    """Rewrites the round's existing races, then fails."""

    name = "scrambling"

    def generate_round(self, history, pre_existing, new_round, plan) -> GenerationResult:
        new_round.round_type = RoundType.FINAL
        for race in pre_existing:
            race.clear_pilots()
            race.race_number += 10
        raise RuntimeError("half way")


class TestRoundPlan:
    def test_negative_race_count_rejected(self):
        with pytest.raises(InvalidRoundPlanError):
            RoundPlan(pilots=(), channels=(), number_of_races=-1)

    def test_with_changes_leaves_plan_unchanged(self):
        plan = RoundPlan(pilots=[], channels=CHANNELS)
        changed = plan.with_changes(number_of_races=3)
        assert plan.number_of_races == 0
        assert changed.number_of_races == 3
        assert changed.channels == tuple(CHANNELS)
        assert changed.channel_group_count == 4


class TestBuildRoundPlan:
    def test_first_round_uses_every_pilot(self):
        event = make_event(8)
        plan = round_manager.build_round_plan(event, None)
        assert plan.pilots == tuple(event.pilots)
        assert plan.number_of_races == 2
        assert plan.calling_round is None

    def test_next_round_uses_previous_round(self):
        event = make_event(10)
        round1 = first_round(event)
        plan = round_manager.build_round_plan(event, round1)
        assert set(plan.pilots) == set(event.pilots)
        assert plan.number_of_races == 3
        assert plan.calling_round is round1

    def test_explicit_pilots(self):
        event = make_event(8)
        plan = round_manager.build_round_plan(event, None, pilots=event.pilots[:3])
        assert len(plan.pilots) == 3


class TestFormatSelection:
    def test_by_stage(self):
        event = make_event()
        assert isinstance(round_manager.round_format_for_stage(event, None), AutoFormat)
        expected = {
            StageType.DEFAULT: AutoFormat,
            StageType.FINAL: FinalFormat,
            StageType.DOUBLE_ELIMINATION: DoubleElimination,
            StageType.STREET_LEAGUE: StreetLeague,
            StageType.CHASE_THE_ACE: ChaseTheAce,
        }
        for stage_type, format_cls in expected.items():
            fmt = round_manager.round_format_for_stage(event, Stage(stage_type=stage_type))
            assert isinstance(fmt, format_cls)

    def test_chase_the_ace_takes_stage_limit(self):
        fmt = round_manager.round_format_for_stage(make_event(), Stage(stage_type=StageType.CHASE_THE_ACE, win_limit=5))
        assert fmt.limit == 5

    def test_by_seeding(self):
        event = make_event()
        plan = RoundPlan(pilots=(), channels=())
        assert isinstance(round_manager.round_format_for_plan(event, plan), AutoFormat)
        seeded = plan.with_changes(pilot_seeding=PilotOrdering.SEEDED)
        assert isinstance(round_manager.round_format_for_plan(event, seeded), SeededFormat)


class TestGenerate:
    def test_generate_round_adds_round_and_races(self):
        event = make_event(8)
        result = round_manager.generate_round(event, round_manager.build_round_plan(event, None))

        assert len(event.rounds) == 1
        assert event.races == result.races
        assert result.to_dict()["unplaced"] == []

    def test_failure_leaves_event_untouched(self):
        event = make_event(8)
        round1 = first_round(event)
        races_before = list(event.races)

        new_round = event.get_or_create_round(2, EventType.RACE)
        plan = round_manager.build_round_plan(event, round1)
        result = round_manager.generate(event, ExplodingFormat(event), new_round, plan)

        assert result.races == []
        assert result.warnings == ["exploding failed: boom"]
        assert event.races == races_before

    def test_failure_restores_existing_races(self):
        event = make_event(8)
        round1 = first_round(event)
        before = [(r.race_number, list(r.pilot_channels)) for r in event.races_in(round1)]

        result = round_manager.generate(event, ScramblingFormat(event), round1, round_manager.build_round_plan(event, None))

        assert result.warnings == ["scrambling failed: half way"]
        assert round1.round_type == RoundType.ROUND
        assert [(r.race_number, r.pilot_channels) for r in event.races_in(round1)] == before

    def test_strict_failure_raises(self):
        event = make_event(8)
        round1 = first_round(event)
        pilots_before = [r.pilots for r in event.races_in(round1)]
        plan = round_manager.build_round_plan(event, None)

        with pytest.raises(RoundGenerationError, match="scrambling failed"):
            round_manager.generate(event, ScramblingFormat(event), round1, plan, strict=True)
        assert [r.pilots for r in event.races_in(round1)] == pilots_before

    def test_round_numbers_follow_event_type(self):
        event = make_event(4)
        first_round(event)
        plan = round_manager.build_round_plan(event, None).with_changes(event_type=EventType.PRACTICE)
        result = round_manager.generate_round(event, plan)
        assert result.races[0].round.round_number == 1
        assert result.races[0].round.event_type == EventType.PRACTICE

    def test_keep_stage(self):
        event = make_event(4)
        stage = Stage(name="Heats")
        plan = round_manager.build_round_plan(event, None, stage=stage).with_changes(keep_stage=True)
        result = round_manager.generate_round(event, plan)
        assert result.races[0].round.stage is stage


class TestCloning:
    def test_clone_last_heat(self):
        event = make_event(8)
        round1 = first_round(event)
        last = event.races_in(round1)[-1]

        cloned = round_manager.clone_last_heat(event, round1)

        assert cloned.race_number == last.race_number + 1
        assert cloned.pilots == last.pilots
        assert len(event.races_in(round1)) == 3

    def test_clone_last_heat_of_empty_round(self):
        event = make_event(8)
        empty = event.get_or_create_round(1, EventType.RACE)
        assert round_manager.clone_last_heat(event, empty) is None

    def test_clone_round(self):
        event = make_event(8)
        round1 = first_round(event)

        cloned = round_manager.clone_round(event, round1)

        assert len(cloned) == 2
        new_round = cloned[0].round
        assert new_round is not round1
        assert new_round.round_number == 2
        assert [r.pilots for r in cloned] == [r.pilots for r in event.races_in(round1)]


class TestRoundState:
    def test_all_races_finished(self):
        event = make_event(8)
        round1 = first_round(event)
        assert not round_manager.all_races_finished(event, round1)
        for race in event.races_in(round1):
            race.ended = True
        assert round_manager.all_races_finished(event, round1)

    def test_empty_round_is_not_finished(self):
        event = make_event(8)
        assert not round_manager.all_races_finished(event, event.get_or_create_round(1, EventType.RACE))

    def test_round_has_all_pilots(self):
        event = make_event(8)
        round1 = first_round(event)
        assert round_manager.round_has_all_pilots(event, round1)

        event.races_in(round1)[0].remove_pilot(event.pilots[0])
        assert not round_manager.round_has_all_pilots(event, round1)

    def test_casual_practice_always_has_all_pilots(self):
        event = make_event(8, event_type=EventType.CASUAL_PRACTICE)
        round1 = first_round(event)
        assert round_manager.round_has_all_pilots(event, round1)
