from dataclasses import dataclass
from typing import Optional

from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Race


@dataclass(eq=False)
class Result:
    """A pilot's finishing record in one race."""

    pilot: Pilot
    race: Race
    position: int
    points: int = 0
    dnf: bool = False
    laps_finished: int = 0
    time_seconds: float = 0.0
    id: Optional[int] = None

    @property
    def round(self):
        return self.race.round
