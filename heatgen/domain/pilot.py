from dataclasses import dataclass, field


@dataclass(frozen=True)
class Pilot:
    """A competitor. Identity is the id; practice pilots are never scheduled competitively."""

    id: int
    name: str = field(default="", compare=False)
    practice_pilot: bool = field(default=False, compare=False)

    def __str__(self) -> str:
        return self.name or f"Pilot {self.id}"
