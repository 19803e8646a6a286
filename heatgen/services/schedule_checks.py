"""
Schedule Checks
===============
Post-generation verification of a round's races.

Checks:
  A) No pilot appears twice in a race, no channel is used twice
  B) No race holds more pilots than the plan has channel groups
  C) No two occupied channels in a race interfere
  D) Within a bracket, race sizes differ by at most one (balanced formats only)

Violations are reported, never raised; the round manager logs them.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from heatgen.domain.race import Bracket, Race
from heatgen.formats.round_plan import RoundPlan


# ─── Data structures ─────────────────────────────────────────────────────

@dataclass
class Violation:
    code: str
    message: str
    race_number: Optional[int] = None
    context: Optional[Dict[str, Any]] = None


@dataclass
class CheckReport:
    ok: bool = True
    violations: List[Violation] = field(default_factory=list)

    def add(self, violation: Violation) -> None:
        self.ok = False
        self.violations.append(violation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "violations": [
                {"code": v.code, "message": v.message, "race_number": v.race_number, "context": v.context}
                for v in self.violations
            ],
        }


# ─── Checks ──────────────────────────────────────────────────────────────

def check_races(races: Sequence[Race], plan: RoundPlan, balance: bool = True) -> CheckReport:
    report = CheckReport()
    capacity = plan.channel_group_count

    for race in races:
        _check_slots(race, report)
        if race.pilot_count > capacity:
            report.add(Violation(
                code="OVER_CAPACITY",
                message=f"{race.name} has {race.pilot_count} pilots for {capacity} channel groups",
                race_number=race.race_number,
            ))
        _check_interference(race, report)

    if balance:
        _check_balance(races, report)
    return report


def _check_slots(race: Race, report: CheckReport) -> None:
    pilots = race.pilots
    channels = race.channels
    if len(set(pilots)) != len(pilots):
        report.add(Violation(
            code="DUPLICATE_PILOT",
            message=f"{race.name} lists a pilot more than once",
            race_number=race.race_number,
        ))
    if len(set(channels)) != len(channels):
        report.add(Violation(
            code="DUPLICATE_CHANNEL",
            message=f"{race.name} uses a channel more than once",
            race_number=race.race_number,
        ))


def _check_interference(race: Race, report: CheckReport) -> None:
    channels = race.channels
    for i, a in enumerate(channels):
        for b in channels[i + 1:]:
            if a != b and a.interferes_with(b):
                report.add(Violation(
                    code="INTERFERENCE",
                    message=f"{race.name}: {a.short_text} interferes with {b.short_text}",
                    race_number=race.race_number,
                    context={"channels": [a.short_text, b.short_text]},
                ))


def _check_balance(races: Sequence[Race], report: CheckReport) -> None:
    by_bracket: Dict[Bracket, List[Race]] = defaultdict(list)
    for race in races:
        by_bracket[race.bracket].append(race)

    for bracket, bracket_races in by_bracket.items():
        sizes = [r.pilot_count for r in bracket_races]
        if sizes and max(sizes) - min(sizes) > 1:
            report.add(Violation(
                code="UNBALANCED",
                message=f"Bracket {bracket.value} race sizes {sizes} differ by more than one",
                context={"sizes": sizes},
            ))
