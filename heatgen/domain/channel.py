"""
Video channel catalogue and interference model.

A Channel is one frequency slot on a band. Two channels interfere when their
frequencies are closer than INTERFERENCE_RANGE_MHZ; the relation is symmetric
and reflexive but not transitive, so channel groups are built greedily from
the lowest frequency upwards.

Each channel group corresponds to one receiver position, and the number of
groups in a channel pool is the per-race pilot capacity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from heatgen import settings


class Band(str, Enum):
    FATSHARK = "fatshark"
    RACEBAND = "raceband"
    A = "a"
    B = "b"
    E = "e"
    DJI_FPV_HD = "dji_fpv_hd"
    HDZERO = "hdzero"
    LOW_BAND = "low_band"
    DIATONE = "diatone"
    DJI_O3 = "dji_o3"


class BandType(str, Enum):
    ANALOGUE = "analogue"
    DJI_DIGITAL = "dji_digital"
    HDZERO_DIGITAL = "hdzero_digital"


_BAND_TYPES: Dict[Band, BandType] = {
    Band.DJI_FPV_HD: BandType.DJI_DIGITAL,
    Band.HDZERO: BandType.HDZERO_DIGITAL,
}

_BAND_LETTERS: Dict[Band, str] = {
    Band.FATSHARK: "F",
    Band.RACEBAND: "R",
    Band.A: "A",
    Band.B: "B",
    Band.E: "E",
    Band.DJI_FPV_HD: "D",
    Band.HDZERO: "HD",
    Band.LOW_BAND: "L",
    Band.DIATONE: "DT",
    Band.DJI_O3: "O",
}

# Linear bands: (base frequency, step) for channel 1..8
_LINEAR_BANDS: Dict[Band, tuple] = {
    Band.FATSHARK: (5740, 20),
    Band.RACEBAND: (5658, 37),
    Band.A: (5865, -20),
    Band.B: (5733, 19),
    Band.LOW_BAND: (5333, 40),
    Band.DIATONE: (5362, 37),
}

_TABLE_BANDS: Dict[Band, Dict[int, int]] = {
    Band.DJI_FPV_HD: {1: 5660, 2: 5695, 3: 5735, 4: 5770, 5: 5805, 8: 5839, 6: 5878, 7: 5914},
    Band.DJI_O3: {1: 5669, 2: 5705, 3: 5768, 4: 5804, 5: 5839, 6: 5876, 7: 5912},
    Band.E: {1: 5705, 2: 5685, 3: 5665, 4: 5645, 5: 5885, 6: 5905, 7: 5925, 8: 5945},
}


def band_type(band: Optional[Band]) -> BandType:
    """Receiver family of a band; bands without a digital system are analogue."""
    if band is None:
        return BandType.ANALOGUE
    return _BAND_TYPES.get(band, BandType.ANALOGUE)


def frequency_lookup(band: Band, number: int, prefix: str = "") -> int:
    """Frequency in MHz of a band/channel number, 0 when the pair is unknown."""
    if band == Band.HDZERO:
        # HDZero mirrors Raceband (R prefix) and Fatshark (F prefix)
        if prefix == "R":
            return frequency_lookup(Band.RACEBAND, number)
        if prefix == "F":
            return frequency_lookup(Band.FATSHARK, number)
        return 0
    if band in _LINEAR_BANDS:
        base, step = _LINEAR_BANDS[band]
        return base + (number - 1) * step
    return _TABLE_BANDS.get(band, {}).get(number, 0)


@dataclass(frozen=True)
class Channel:
    """A band/number frequency slot. Equality ignores the catalogue id."""

    id: int = field(compare=False)
    band: Band
    number: int
    prefix: str = ""
    frequency: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        if not self.frequency:
            object.__setattr__(self, "frequency", frequency_lookup(self.band, self.number, self.prefix))

    @property
    def band_type(self) -> BandType:
        return band_type(self.band)

    @property
    def short_text(self) -> str:
        return f"{_BAND_LETTERS[self.band]}{self.prefix}{self.number}"

    def interferes_with(self, other: Optional["Channel"]) -> bool:
        if other is None:
            return False
        return abs(self.frequency - other.frequency) < settings.INTERFERENCE_RANGE_MHZ

    def interferes_with_any(self, others: Iterable[Optional["Channel"]]) -> bool:
        return any(self.interferes_with(other) for other in others)

    def interfering_channels(self, pool: Iterable["Channel"]) -> List["Channel"]:
        """Channels in pool that interfere with this one, itself included."""
        return [c for c in pool if self.interferes_with(c)]

    def __str__(self) -> str:
        return f"{self.short_text} ({self.frequency}MHz)"


def _band(start_id: int, band: Band, numbers: Sequence[int], prefix: str = "") -> List[Channel]:
    return [Channel(id=start_id + i, band=band, number=n, prefix=prefix) for i, n in enumerate(numbers)]


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

FATSHARK = _band(1, Band.FATSHARK, range(1, 9))
RACEBAND = _band(9, Band.RACEBAND, range(1, 9))
BAND_A = _band(17, Band.A, range(1, 9))
BAND_B = _band(25, Band.B, range(1, 9))
DJI_FPV_HD = _band(33, Band.DJI_FPV_HD, range(1, 9))
BAND_E = _band(41, Band.E, range(1, 9))
HDZERO = _band(49, Band.HDZERO, range(1, 9), prefix="R") + _band(57, Band.HDZERO, (2, 4), prefix="F")
LOW_BAND = _band(59, Band.LOW_BAND, range(1, 9))
DIATONE = _band(67, Band.DIATONE, range(1, 9))
DJI_O3 = _band(75, Band.DJI_O3, range(1, 8))

ALL_CHANNELS: List[Channel] = (
    FATSHARK + RACEBAND + BAND_A + BAND_B + DJI_FPV_HD + BAND_E + HDZERO + LOW_BAND + DIATONE + DJI_O3
)

_BY_ID: Dict[int, Channel] = {c.id: c for c in ALL_CHANNELS}

# Six-pilot intermod-safe sets
IMD6C: List[Channel] = [RACEBAND[0], RACEBAND[1], FATSHARK[1], FATSHARK[3], RACEBAND[6], RACEBAND[7]]
HDZERO_IMD6C: List[Channel] = [HDZERO[0], HDZERO[1], HDZERO[8], HDZERO[9], HDZERO[6], HDZERO[7]]


def get_channel(channel_id: int) -> Channel:
    """Catalogue lookup by id. Raises ValueError for unknown ids."""
    try:
        return _BY_ID[channel_id]
    except KeyError:
        raise ValueError(f"Channel {channel_id} not found") from None


def find_channel(band: Band, number: int, prefix: str = "") -> Optional[Channel]:
    for channel in ALL_CHANNELS:
        if channel.band == band and channel.number == number and channel.prefix == prefix:
            return channel
    return None


def channel_groups(pool: Iterable[Channel]) -> List[List[Channel]]:
    """
    Group channels that cannot fly together.

    Walks the pool by ascending frequency, each group being the lowest
    remaining channel plus every remaining channel that interferes with it.
    """
    remaining = sorted(set(pool), key=lambda c: (c.frequency, c.band.value, c.prefix, c.number))
    groups: List[List[Channel]] = []
    while remaining:
        first = remaining[0]
        group = [c for c in remaining if first.interferes_with(c)]
        groups.append(group)
        remaining = [c for c in remaining if c not in group]
    return groups


def channel_group_count(pool: Iterable[Channel]) -> int:
    return len(channel_groups(pool))


def band_types_of(pool: Iterable[Channel]) -> List[BandType]:
    """Distinct band types in pool, in first-seen order."""
    seen: List[BandType] = []
    for channel in pool:
        if channel.band_type not in seen:
            seen.append(channel.band_type)
    return seen
