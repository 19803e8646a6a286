"""
Race (heat) container.

A race holds an ordered list of pilot/channel slots. Mutation goes through
set_pilot / remove_pilot / swap_pilots, which enforce the slot rules:

  - a pilot occupies at most one slot
  - no two occupied channels in a race interfere
  - ended races are read-only
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from heatgen.domain.channel import BandType, Channel
from heatgen.domain.pilot import Pilot
from heatgen.domain.round import EventType, Round


class Bracket(str, Enum):
    NONE = "none"
    WINNERS = "winners"
    LOSERS = "losers"
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"
    G = "G"
    H = "H"
    I = "I"  # noqa: E741
    J = "J"
    K = "K"
    L = "L"
    M = "M"
    N = "N"
    O = "O"  # noqa: E741
    P = "P"
    Q = "Q"
    R = "R"
    S = "S"
    T = "T"
    U = "U"
    V = "V"
    W = "W"
    X = "X"
    Y = "Y"
    Z = "Z"

    @property
    def order(self) -> int:
        return list(Bracket).index(self)

    @classmethod
    def final_letter(cls, index: int) -> "Bracket":
        """A for the first final, B for the second, ..."""
        return list(cls)[cls.A.order + index]


class RaceState(str, Enum):
    CREATED = "created"
    POPULATED = "populated"
    STARTED = "started"
    ENDED = "ended"


@dataclass
class PilotChannel:
    pilot: Pilot
    channel: Channel


@dataclass(eq=False)
class Race:
    round: Round
    race_number: int = 0
    bracket: Bracket = Bracket.NONE
    pilot_channels: List[PilotChannel] = field(default_factory=list)
    started: bool = False
    ended: bool = False
    id: Optional[int] = None

    # ----- Queries -----

    @property
    def state(self) -> RaceState:
        if self.ended:
            return RaceState.ENDED
        if self.started:
            return RaceState.STARTED
        if self.pilot_channels:
            return RaceState.POPULATED
        return RaceState.CREATED

    @property
    def locked(self) -> bool:
        """Started or ended races are history; generation leaves them alone."""
        return self.started or self.ended

    @property
    def event_type(self) -> EventType:
        return self.round.event_type

    @property
    def pilots(self) -> List[Pilot]:
        return [pc.pilot for pc in self.pilot_channels]

    @property
    def channels(self) -> List[Channel]:
        return [pc.channel for pc in self.pilot_channels]

    @property
    def pilot_count(self) -> int:
        return len(self.pilot_channels)

    @property
    def name(self) -> str:
        if self.bracket == Bracket.NONE:
            return f"Round {self.round.round_number} Race {self.race_number}"
        return f"Round {self.round.round_number} Race {self.race_number} ({self.bracket.value})"

    def has_pilot(self, pilot: Pilot) -> bool:
        return any(pc.pilot == pilot for pc in self.pilot_channels)

    def get_channel(self, pilot: Pilot) -> Optional[Channel]:
        for pc in self.pilot_channels:
            if pc.pilot == pilot:
                return pc.channel
        return None

    def get_pilot(self, channel: Optional[Channel]) -> Optional[Pilot]:
        if channel is None:
            return None
        for pc in self.pilot_channels:
            if pc.channel == channel:
                return pc.pilot
        return None

    def is_frequency_free(self, channel: Optional[Channel]) -> bool:
        """True when no occupied channel equals or interferes with channel."""
        if channel is None:
            return False
        return not channel.interferes_with_any(self.channels)

    def is_frequency_free_without(self, channel: Optional[Channel], pilot: Pilot) -> bool:
        """is_frequency_free, ignoring the slot held by pilot."""
        if channel is None:
            return False
        others = [pc.channel for pc in self.pilot_channels if pc.pilot != pilot]
        return not channel.interferes_with_any(others)

    def free_frequencies(self, candidates: Iterable[Channel]) -> List[Channel]:
        return [c for c in candidates if self.is_frequency_free(c)]

    def free_channel(self, band_type: BandType, candidates: Iterable[Channel]) -> Optional[Channel]:
        """First free candidate of the given band type."""
        for channel in candidates:
            if channel.band_type == band_type and self.is_frequency_free(channel):
                return channel
        return None

    # ----- Mutation -----

    def set_pilot(self, channel: Optional[Channel], pilot: Pilot) -> Optional[PilotChannel]:
        """
        Place pilot on channel. Returns None (and leaves the race untouched)
        when the race has ended, the pilot is already in it, or the channel
        is not free.
        """
        if self.ended or self.has_pilot(pilot) or not self.is_frequency_free(channel):
            return None
        pilot_channel = PilotChannel(pilot=pilot, channel=channel)
        self.pilot_channels.append(pilot_channel)
        return pilot_channel

    def remove_pilot(self, pilot: Pilot) -> bool:
        if self.ended:
            return False
        before = len(self.pilot_channels)
        self.pilot_channels = [pc for pc in self.pilot_channels if pc.pilot != pilot]
        return len(self.pilot_channels) != before

    def swap_pilots(self, pilot: Pilot, channel: Channel, other: "Race") -> bool:
        """
        Move pilot out of this race onto channel in other, moving whoever
        holds that channel in other back into this race on pilot's channel.
        """
        if self.ended or other.ended:
            return False
        old_channel = self.get_channel(pilot)
        if old_channel is None:
            return False
        displaced = other.get_pilot(channel)
        self.remove_pilot(pilot)
        if displaced is not None:
            other.remove_pilot(displaced)
        if other.set_pilot(channel, pilot) is None:
            # Roll back
            if displaced is not None:
                other.set_pilot(channel, displaced)
            self.set_pilot(old_channel, pilot)
            return False
        if displaced is not None:
            self.set_pilot(old_channel, displaced)
        return True

    def clear_pilots(self) -> None:
        if not self.ended:
            self.pilot_channels = []

    def clone(self) -> "Race":
        """Unstarted copy with the same round, bracket, number and slots."""
        return Race(
            round=self.round,
            race_number=self.race_number,
            bracket=self.bracket,
            pilot_channels=[copy.copy(pc) for pc in self.pilot_channels],
        )

    def __str__(self) -> str:
        slots = ", ".join(f"{pc.pilot}:{pc.channel.short_text}" for pc in self.pilot_channels)
        return f"{self.name} [{slots}]"


def pilots_of(races: Iterable[Race]) -> List[Pilot]:
    """Distinct pilots across races, in first-seen order."""
    seen: List[Pilot] = []
    for race in races:
        for pilot in race.pilots:
            if pilot not in seen:
                seen.append(pilot)
    return seen


def count_channel_changes(pilot: Pilot, races: Iterable[Race]) -> int:
    """How many times pilot switched channel across races, in race order."""
    changes = 0
    last: Optional[Channel] = None
    ordered = sorted(races, key=lambda r: (r.round.order, r.race_number))
    for race in ordered:
        channel = race.get_channel(pilot)
        if channel is None:
            continue
        if channel != last:
            changes += 1
            last = channel
    return changes
