"""
Print who has raced whom more than once at an event.

Usage: python report_pairings.py <event_id>
"""

import logging
import sys

from sqlmodel import Session

from heatgen.database import engine, init_db
from heatgen.domain.round import EventType
from heatgen.services.race_store import load_event
from heatgen.utils.pairing_history import PairingHistory

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("report_pairings")

if len(sys.argv) != 2:
    print(__doc__.strip())
    sys.exit(1)

event_id = int(sys.argv[1])
init_db()

with Session(engine) as s:
    try:
        event = load_event(s, event_id)
    except ValueError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    history = PairingHistory(event.races)
    competitive = [r for r in event.races if r.event_type != EventType.PRACTICE]

    print(f"Event: {event.name}")
    print(f"Rounds: {len(event.rounds)}  Races counted: {len(competitive)}")
    print()

    print("=== Repeat pairings ===")
    any_repeats = False
    for pilot in event.pilots:
        overflown = history.overflown(pilot)
        if not overflown:
            continue
        any_repeats = True
        pairs = ", ".join(f"{other} x{count}" for other, count in sorted(overflown.items(), key=lambda kv: -kv[1]))
        print(f"  {pilot}: {pairs}")
    if not any_repeats:
        print("  none")

    print()
    print("=== Never raced ===")
    for pilot in event.pilots:
        unflown = [p for p in history.unflown_pilots(pilot, event.pilots) if p != pilot]
        print(f"  {pilot}: {len(unflown)} of {len(event.pilots) - 1}")
