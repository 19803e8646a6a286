"""
Tests for AutoFormat: heat counts, greedy placement, rebalancing and
repeat-pairing avoidance across rounds.
"""

from itertools import combinations

from heatgen.domain.channel import DJI_FPV_HD, FATSHARK, RACEBAND
from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Race
from heatgen.domain.round import EventType, Round
from heatgen.formats.auto_format import AutoFormat, PilotPoints
from heatgen.formats.round_plan import ChannelChange, RoundPlan
from heatgen.services import round_manager
from heatgen.services.schedule_checks import check_races
from heatgen.utils.pairing_history import PairingHistory

R1, R8, F2, F4 = RACEBAND[0], RACEBAND[7], FATSHARK[1], FATSHARK[3]
CHANNELS = [R1, R8, F2, F4]


def make_event(pilot_count: int, channels=None, event_type=EventType.RACE) -> EventSnapshot:
    """Pilots p1..pN, defaults cycling through the channels."""
    channels = list(channels or CHANNELS)
    pilots = [Pilot(id=i, name=f"p{i}") for i in range(1, pilot_count + 1)]
    return EventSnapshot(
        name="Test Event",
        event_type=event_type,
        pilots=pilots,
        channels=channels,
        pilot_channels={p: channels[i % len(channels)] for i, p in enumerate(pilots)},
    )


def pilot_sets(races):
    return [{p.name for p in race.pilots} for race in races]


def repeat_count(previous_races, races) -> int:
    history = PairingHistory(previous_races)
    return sum(
        history.flown_count(a, b)
        for race in races
        for a, b in combinations(race.pilots, 2)
    )


class TestFirstRound:
    def test_eight_pilots_four_channels(self):
        event = make_event(8)
        plan = round_manager.build_round_plan(event, None)
        result = round_manager.generate_round(event, plan)

        assert result.ok
        assert result.warnings == []
        assert len(result.races) == 2
        assert pilot_sets(result.races) == [{"p1", "p2", "p3", "p4"}, {"p5", "p6", "p7", "p8"}]

    def test_pilots_keep_default_channel(self):
        event = make_event(8)
        result = round_manager.generate_round(event, round_manager.build_round_plan(event, None))
        for race in result.races:
            for pc in race.pilot_channels:
                assert pc.channel == event.get_channel(pc.pilot)

    def test_races_are_balanced(self):
        event = make_event(10)
        result = round_manager.generate_round(event, round_manager.build_round_plan(event, None))

        sizes = sorted(r.pilot_count for r in result.races)
        assert sizes == [3, 3, 4]
        assert sum(sizes) == 10
        assert result.ok

    def test_heat_count_raised_by_shared_frequencies(self):
        # Everyone on R1: only one pilot per race can fly it
        event = make_event(3)
        event.pilot_channels = {p: R1 for p in event.pilots}
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS))
        result = round_manager.generate_round(event, plan)

        assert len(result.races) == 3
        assert result.ok

    def test_interfering_default_channels_are_moved(self):
        event = make_event(2)
        # DJI 1 (5660) interferes with R1 (5658) and is not in the pool
        event.pilot_channels[event.pilots[1]] = DJI_FPV_HD[0]
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS))
        result = round_manager.generate_round(event, plan)

        assert result.ok
        for race in result.races:
            assert check_races([race], plan).ok

    def test_practice_pilots_are_skipped(self):
        event = make_event(4)
        event.pilots[3] = Pilot(id=4, name="p4", practice_pilot=True)
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS))
        result = round_manager.generate_round(event, plan)

        placed = {p.name for r in result.races for p in r.pilots}
        assert placed == {"p1", "p2", "p3"}

    def test_casual_practice_creates_empty_shells(self):
        event = make_event(8, event_type=EventType.CASUAL_PRACTICE)
        plan = round_manager.build_round_plan(event, None)
        result = round_manager.generate_round(event, plan)

        assert len(result.races) == 2
        assert all(r.pilot_count == 0 for r in result.races)


class TestNextRound:
    def test_second_round_minimises_repeats(self):
        event = make_event(8)
        first = round_manager.generate_round(event, round_manager.build_round_plan(event, None))
        round1 = first.races[0].round

        second = round_manager.generate_next_round(event, round1)

        assert second.ok
        assert pilot_sets(second.races) != pilot_sets(first.races)
        assert pilot_sets(second.races) == [{"p1", "p6", "p3", "p8"}, {"p5", "p2", "p7", "p4"}]
        # Two from each first-round race: the fewest repeats possible
        assert repeat_count(first.races, second.races) == 4

    def test_generated_round_is_added_to_event(self):
        event = make_event(8)
        first = round_manager.generate_round(event, round_manager.build_round_plan(event, None))
        round1 = first.races[0].round
        round_manager.generate_next_round(event, round1)

        assert [r.round_number for r in event.ordered_rounds()] == [1, 2]
        assert len(event.races) == 4


class TestPointsForRace:
    def _format(self, event):
        return AutoFormat(event)

    def test_only_free_race_bonus(self):
        event = make_event(2)
        p1, p2 = event.pilots
        rnd = Round(round_number=1)
        busy = Race(round=rnd, race_number=1)
        busy.set_pilot(R1, p2)
        empty = Race(round=rnd, race_number=2)
        plan = RoundPlan(pilots=(p1, p2), channels=tuple(CHANNELS))

        fmt = self._format(event)
        history = PairingHistory()
        into_empty = fmt.points_for_race(history, empty, [busy, empty], p1, R1, [p1, p2], plan)
        into_busy = fmt.points_for_race(history, busy, [busy, empty], p1, R1, [p1, p2], plan)

        assert into_empty > 1000
        assert into_busy < 0

    def test_full_race_penalty(self):
        event = make_event(5)
        rnd = Round(round_number=1)
        full = Race(round=rnd, race_number=1)
        for pilot, channel in zip(event.pilots[:4], CHANNELS):
            full.set_pilot(channel, pilot)
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS))

        points = self._format(event).points_for_race(
            PairingHistory(), full, [full], event.pilots[4], R1, event.pilots, plan
        )
        assert points < -10000 + 100

    def test_repeats_cost_points(self):
        event = make_event(3)
        p1, p2, p3 = event.pilots
        rnd = Round(round_number=1)
        race = Race(round=rnd, race_number=1)
        race.set_pilot(R8, p2)
        plan = RoundPlan(pilots=(p1, p2, p3), channels=tuple(CHANNELS))

        flown = Race(round=rnd, race_number=2)
        flown.set_pilot(R1, p1)
        flown.set_pilot(R8, p2)

        fmt = self._format(event)
        fresh = fmt.points_for_race(PairingHistory(), race, [race], p1, R1, [p1, p2, p3], plan)
        repeated = fmt.points_for_race(PairingHistory([flown]), race, [race], p1, R1, [p1, p2, p3], plan)
        assert repeated < fresh


class TestFairness:
    def _two_rounds(self, pilot_count):
        event = make_event(pilot_count)
        first = round_manager.generate_round(event, round_manager.build_round_plan(event, None))
        second = round_manager.generate_next_round(event, first.races[0].round)
        return first, second

    def test_second_round_never_repeats_grouping(self):
        # Fewest repeats possible: one shared pair per race of three, two per race of four
        for pilot_count, fewest_repeats in ((6, 2), (8, 4)):
            outcomes = []
            for _ in range(5):
                first, second = self._two_rounds(pilot_count)
                assert second.ok
                first_groups = {frozenset(s) for s in pilot_sets(first.races)}
                second_groups = {frozenset(s) for s in pilot_sets(second.races)}
                assert first_groups != second_groups
                assert repeat_count(first.races, second.races) == fewest_repeats
                outcomes.append(pilot_sets(second.races))
            # Same inputs, same rounds
            assert all(o == outcomes[0] for o in outcomes)

    def test_six_pilot_second_round(self):
        first, second = self._two_rounds(6)
        assert pilot_sets(first.races) == [{"p1", "p2", "p4"}, {"p5", "p6", "p3"}]
        assert pilot_sets(second.races) == [{"p1", "p6", "p3"}, {"p5", "p2", "p4"}]


class TestChannelChange:
    def test_reassign_spreads_pilots_over_band(self):
        event = make_event(4)
        pilot_channels = {p: R1 for p in event.pilots}
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS), channel_change=ChannelChange.CHANGE)

        AutoFormat(event)._reassign_channels(PairingHistory(), pilot_channels, dict(pilot_channels), plan, 1)

        assert [pilot_channels[p] for p in event.pilots] == [R1, R8, F2, F4]

    def test_change_round_is_valid(self):
        event = make_event(8)
        first = round_manager.generate_round(event, round_manager.build_round_plan(event, None))
        round1 = first.races[0].round
        plan = round_manager.build_round_plan(event, round1).with_changes(channel_change=ChannelChange.CHANGE)
        new_round = event.get_or_create_round(2, EventType.RACE)

        result = round_manager.generate(event, AutoFormat(event), new_round, plan)

        assert result.ok
        placed = sorted(p.name for r in result.races for p in r.pilots)
        assert placed == sorted(p.name for p in event.pilots)
        assert check_races(result.races, plan).ok
        assert all(c in CHANNELS for r in result.races for c in r.channels)


class TestUnplaced:
    def test_no_retries_leaves_everyone_unplaced(self):
        event = make_event(4)
        plan = RoundPlan(pilots=tuple(event.pilots), channels=tuple(CHANNELS))

        result = AutoFormat(event, retry_factor=0).generate_round(PairingHistory(), [], Round(round_number=1), plan)

        assert result.unplaced == event.pilots
        assert not result.ok
        assert any("could not place 4 pilot(s)" in w for w in result.warnings)

    def test_channel_pool_too_small(self):
        event = make_event(3)
        plan = RoundPlan(
            pilots=tuple(event.pilots), channels=(R1,), number_of_races=1, auto_number_of_races=False
        )

        result = AutoFormat(event).generate_round(PairingHistory(), [], Round(round_number=1), plan)

        assert [p.name for p in result.races[0].pilots] == ["p1"]
        assert [p.name for p in result.unplaced] == ["p2", "p3"]


class TestOccupantMove:
    def _setup(self):
        event = make_event(2)
        p1, p2 = event.pilots
        race = Race(round=Round(round_number=3), race_number=1)
        race.set_pilot(R1, p2)
        plan = RoundPlan(pilots=(p1, p2), channels=tuple(CHANNELS))
        return event, race, plan

    def test_incumbent_moves_when_newcomer_changed_more(self):
        event, race, plan = self._setup()
        p1, p2 = event.pilots
        round1, round2 = Round(round_number=1), Round(round_number=2)
        earlier = Race(round=round1, race_number=1)
        earlier.set_pilot(R8, p1)
        earlier.set_pilot(R1, p2)
        later_a = Race(round=round2, race_number=1)
        later_a.set_pilot(R1, p1)
        later_b = Race(round=round2, race_number=2)
        later_b.set_pilot(R1, p2)
        pilot_channels = {p1: R1, p2: R1}

        placed = AutoFormat(event)._try_place(
            PilotPoints(p1, race, 0.0), pilot_channels, plan, [earlier, later_a, later_b]
        )

        assert placed
        assert race.get_channel(p1) == R1
        assert race.get_channel(p2) == R8
        assert pilot_channels[p2] == R8

    def test_newcomer_moves_otherwise(self):
        event, race, plan = self._setup()
        p1, p2 = event.pilots
        pilot_channels = {p1: R1, p2: R1}

        assert AutoFormat(event)._try_place(PilotPoints(p1, race, 0.0), pilot_channels, plan, [])
        assert race.get_channel(p1) == R8
        assert race.get_channel(p2) == R1
        assert pilot_channels[p1] == R8
