"""
In-memory view of one event: pilots, channels, rounds, races and results.

The round generators read from this snapshot; the round manager is the only
writer and swaps a round's races in as a whole via replace_round_races.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from heatgen.domain.channel import Channel, channel_group_count
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Bracket, Race
from heatgen.domain.result import Result
from heatgen.domain.round import EventType, Round, Stage


@dataclass
class EventSnapshot:
    name: str = ""
    event_type: EventType = EventType.RACE
    pilots: List[Pilot] = field(default_factory=list)
    channels: List[Channel] = field(default_factory=list)
    pilot_channels: Dict[Pilot, Optional[Channel]] = field(default_factory=dict)
    rounds: List[Round] = field(default_factory=list)
    races: List[Race] = field(default_factory=list)
    results: List[Result] = field(default_factory=list)
    pb_positions: Dict[Pilot, int] = field(default_factory=dict)
    id: Optional[int] = None

    # ----- Channels -----

    def get_channel(self, pilot: Pilot) -> Optional[Channel]:
        """The pilot's default channel for the event."""
        return self.pilot_channels.get(pilot)

    @property
    def max_pilots_per_race(self) -> int:
        return channel_group_count(self.channels)

    # ----- Rounds -----

    def ordered_rounds(self) -> List[Round]:
        return sorted(self.rounds, key=lambda r: (r.order, r.round_number))

    def previous_round(self, round: Round) -> Optional[Round]:
        earlier = [r for r in self.ordered_rounds() if r.order < round.order]
        return earlier[-1] if earlier else None

    def next_round(self, round: Round) -> Optional[Round]:
        later = [r for r in self.ordered_rounds() if r.order > round.order]
        return later[0] if later else None

    def stage_rounds(self, stage: Optional[Stage]) -> List[Round]:
        return [r for r in self.ordered_rounds() if r.stage is stage]

    def get_or_create_round(
        self,
        round_number: int,
        event_type: EventType,
        stage: Optional[Stage] = None,
    ) -> Round:
        for existing in self.rounds:
            if existing.round_number == round_number and existing.event_type == event_type:
                return existing
        order = max((r.order for r in self.rounds), default=0) + 1
        new_round = Round(round_number=round_number, event_type=event_type, order=order, stage=stage)
        self.rounds.append(new_round)
        return new_round

    def next_round_number(self, event_type: EventType) -> int:
        return max((r.round_number for r in self.rounds if r.event_type == event_type), default=0) + 1

    # ----- Races -----

    def races_in(self, round: Optional[Round]) -> List[Race]:
        if round is None:
            return []
        return sorted((r for r in self.races if r.round is round), key=lambda r: r.race_number)

    def race_count(self, round: Optional[Round], bracket: Bracket) -> int:
        return sum(1 for r in self.races_in(round) if r.bracket == bracket)

    def race_in_round(self, pilot: Pilot, round: Optional[Round]) -> Optional[Race]:
        for race in self.races_in(round):
            if race.has_pilot(pilot):
                return race
        return None

    def channel_in_round(self, pilot: Pilot, round: Optional[Round]) -> Optional[Channel]:
        race = self.race_in_round(pilot, round)
        return race.get_channel(pilot) if race else None

    def replace_round_races(self, round: Round, races: List[Race]) -> None:
        """Swap in a round's full race list in one step."""
        kept = [r for r in self.races if r.round is not round]
        self.races = kept + sorted(races, key=lambda r: r.race_number)

    # ----- Results -----

    def results_for(self, race: Race) -> List[Result]:
        return [r for r in self.results if r.race is race]

    def result(self, race: Race, pilot: Pilot) -> Optional[Result]:
        for result in self.results:
            if result.race is race and result.pilot == pilot:
                return result
        return None
