"""
Tests for FinalFormat seeding into finals A, B, C...
"""

from heatgen.domain.channel import FATSHARK, RACEBAND
from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Bracket, Race
from heatgen.domain.round import EventType, Round, RoundType, Stage, StageType
from heatgen.formats.final_format import FinalFormat
from heatgen.formats.round_plan import RoundPlan
from heatgen.services import round_manager
from heatgen.services.results import Placing, record_results
from heatgen.utils.pairing_history import PairingHistory

R1, R8, F2, F4 = RACEBAND[0], RACEBAND[7], FATSHARK[1], FATSHARK[3]
CHANNELS = [R1, R8, F2, F4]


def make_event(pilot_count: int) -> EventSnapshot:
    pilots = [Pilot(id=i, name=f"p{i}") for i in range(1, pilot_count + 1)]
    return EventSnapshot(
        pilots=pilots,
        channels=list(CHANNELS),
        pilot_channels={p: CHANNELS[i % len(CHANNELS)] for i, p in enumerate(pilots)},
    )


def make_scored_round(event: EventSnapshot) -> Round:
    """Two ended races of three; p3 and p6 win, p1 and p4 finish last."""
    p1, p2, p3, p4, p5, p6 = event.pilots
    round1 = event.get_or_create_round(1, EventType.RACE)
    race1 = Race(round=round1, race_number=1)
    race2 = Race(round=round1, race_number=2)
    for race, pilots in ((race1, (p1, p2, p3)), (race2, (p4, p5, p6))):
        for pilot, channel in zip(pilots, (R1, R8, F2)):
            race.set_pilot(channel, pilot)
    event.replace_round_races(round1, [race1, race2])

    record_results(event, race1, [Placing(p3, 1), Placing(p2, 2), Placing(p1, 3)])
    record_results(event, race2, [Placing(p6, 1), Placing(p5, 2), Placing(p4, 3)])
    return round1


def names(race):
    return {p.name for p in race.pilots}


class TestFinalFormat:
    def test_seeds_by_pb_position(self):
        event = make_event(6)
        for rank, pilot in enumerate(reversed(event.pilots), start=1):
            event.pb_positions[pilot] = rank
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS), number_of_races=2)
        new_round = Round(round_number=1)

        result = FinalFormat(event).generate_round(PairingHistory(), [], new_round, plan)

        assert [r.bracket for r in result.races] == [Bracket.A, Bracket.B]
        assert names(result.races[0]) == {"p6", "p5", "p4", "p3"}
        assert names(result.races[1]) == {"p2", "p1"}
        assert new_round.round_type == RoundType.FINAL
        assert result.ok

    def test_first_final_is_filled_to_capacity(self):
        event = make_event(6)
        for rank, pilot in enumerate(event.pilots, start=1):
            event.pb_positions[pilot] = rank
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS), number_of_races=2)

        result = FinalFormat(event).generate_round(PairingHistory(), [], Round(round_number=1), plan)

        assert [r.pilot_count for r in result.races] == [4, 2]
        assert names(result.races[0]) == {"p1", "p2", "p3", "p4"}
        assert names(result.races[1]) == {"p5", "p6"}

    def test_seeds_by_points(self):
        event = make_event(6)
        round1 = make_scored_round(event)
        plan = RoundPlan(
            pilots=tuple(event.pilots), channels=tuple(CHANNELS), calling_round=round1, number_of_races=2
        )
        result = FinalFormat(event).generate_round(PairingHistory(), [], Round(round_number=2), plan)

        assert names(result.races[0]) == {"p3", "p6", "p2", "p5"}
        assert names(result.races[1]) == {"p1", "p4"}

    def test_stage_becomes_final(self):
        event = make_event(4)
        stage = Stage(name="Finals")
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS), number_of_races=1)
        new_round = Round(round_number=1, stage=stage)

        FinalFormat(event).generate_round(PairingHistory(), [], new_round, plan)
        assert stage.stage_type == StageType.FINAL

    def test_overflow_is_reported(self):
        event = make_event(6)
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS), number_of_races=1)
        result = FinalFormat(event).generate_round(PairingHistory(), [], Round(round_number=1), plan)

        assert result.races[0].pilot_count == 4
        assert len(result.unplaced) == 2
        assert not result.ok

    def test_existing_finals_are_kept(self):
        event = make_event(4)
        new_round = Round(round_number=1)
        existing = Race(round=new_round, race_number=1, bracket=Bracket.A)
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS), number_of_races=2)

        result = FinalFormat(event).generate_round(PairingHistory(), [existing], new_round, plan)
        assert [r.bracket for r in result.races] == [Bracket.B]
        assert result.races[0].race_number == 2


class TestGenerateFinal:
    def test_generate_final_from_round(self):
        event = make_event(6)
        round1 = make_scored_round(event)
        result = round_manager.generate_final(event, round1)

        assert len(result.races) == 2
        final_round = result.races[0].round
        assert final_round.round_type == RoundType.FINAL
        assert final_round.round_number == 2
        assert final_round.stage is None
