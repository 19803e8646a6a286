"""
Race Store
==========
Loads an event into an EventSnapshot and writes generated rounds and
results back. The session is the caller's; every save_* call commits once.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from heatgen.domain.channel import Channel, get_channel
from heatgen.domain.event import EventSnapshot
from heatgen.domain.pilot import Pilot
from heatgen.domain.race import Bracket, PilotChannel, Race
from heatgen.domain.result import Result
from heatgen.domain.round import EventType, Round, RoundType, Stage, StageType
from heatgen.models import (
    EventChannelRecord,
    EventRecord,
    PilotChannelRecord,
    PilotRecord,
    RaceRecord,
    ResultRecord,
    RoundRecord,
    StageRecord,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

def create_event(
    session: Session,
    name: str,
    channels: Sequence[Channel],
    event_type: EventType = EventType.RACE,
) -> EventRecord:
    event = EventRecord(name=name, event_type=event_type.value)
    session.add(event)
    session.flush()
    for position, channel in enumerate(channels):
        session.add(EventChannelRecord(event_id=event.id, channel_id=channel.id, position=position))
    session.commit()
    session.refresh(event)
    return event


def add_pilot(
    session: Session,
    event_id: int,
    name: str,
    channel: Optional[Channel] = None,
    practice_pilot: bool = False,
    pb_position: Optional[int] = None,
) -> PilotRecord:
    pilot = PilotRecord(
        event_id=event_id,
        name=name,
        channel_id=channel.id if channel is not None else None,
        practice_pilot=practice_pilot,
        pb_position=pb_position,
    )
    session.add(pilot)
    session.commit()
    session.refresh(pilot)
    return pilot


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------

def load_event(session: Session, event_id: int) -> EventSnapshot:
    event_record = session.get(EventRecord, event_id)
    if not event_record:
        raise ValueError(f"Event {event_id} not found")

    channel_rows = session.exec(
        select(EventChannelRecord)
        .where(EventChannelRecord.event_id == event_id)
        .order_by(EventChannelRecord.position)
    ).all()
    channels = [get_channel(row.channel_id) for row in channel_rows]

    pilot_rows = session.exec(
        select(PilotRecord).where(PilotRecord.event_id == event_id).order_by(PilotRecord.id)
    ).all()
    pilots: Dict[int, Pilot] = {}
    pilot_channels: Dict[Pilot, Optional[Channel]] = {}
    pb_positions: Dict[Pilot, int] = {}
    for row in pilot_rows:
        pilot = Pilot(id=row.id, name=row.name, practice_pilot=row.practice_pilot)
        pilots[row.id] = pilot
        pilot_channels[pilot] = get_channel(row.channel_id) if row.channel_id is not None else None
        if row.pb_position is not None:
            pb_positions[pilot] = row.pb_position

    stages: Dict[int, Stage] = {}
    for row in session.exec(select(StageRecord).where(StageRecord.event_id == event_id)).all():
        stages[row.id] = Stage(
            id=row.id, name=row.name, stage_type=StageType(row.stage_type), win_limit=row.win_limit
        )

    rounds: Dict[int, Round] = {}
    round_rows = session.exec(
        select(RoundRecord).where(RoundRecord.event_id == event_id).order_by(RoundRecord.order_index)
    ).all()
    for row in round_rows:
        rounds[row.id] = Round(
            id=row.id,
            round_number=row.round_number,
            event_type=EventType(row.event_type),
            order=row.order_index,
            round_type=RoundType(row.round_type),
            stage=stages.get(row.stage_id) if row.stage_id is not None else None,
        )

    races: Dict[int, Race] = {}
    race_rows = session.exec(
        select(RaceRecord).where(RaceRecord.event_id == event_id).order_by(RaceRecord.race_number)
    ).all()
    for row in race_rows:
        race = Race(
            id=row.id,
            round=rounds[row.round_id],
            race_number=row.race_number,
            bracket=Bracket(row.bracket),
            started=row.started,
            ended=row.ended,
        )
        slot_rows = session.exec(
            select(PilotChannelRecord)
            .where(PilotChannelRecord.race_id == row.id)
            .order_by(PilotChannelRecord.slot)
        ).all()
        race.pilot_channels = [
            PilotChannel(pilot=pilots[slot.pilot_id], channel=get_channel(slot.channel_id))
            for slot in slot_rows
        ]
        races[row.id] = race

    results: List[Result] = []
    if races:
        result_rows = session.exec(
            select(ResultRecord).where(ResultRecord.race_id.in_(list(races.keys())))
        ).all()
        for row in result_rows:
            results.append(
                Result(
                    id=row.id,
                    pilot=pilots[row.pilot_id],
                    race=races[row.race_id],
                    position=row.position,
                    points=row.points,
                    dnf=row.dnf,
                    laps_finished=row.laps_finished,
                    time_seconds=row.time_seconds,
                )
            )

    logger.debug(
        "Loaded event %d: %d pilots, %d rounds, %d races, %d results",
        event_id, len(pilots), len(rounds), len(races), len(results),
    )
    return EventSnapshot(
        id=event_record.id,
        name=event_record.name,
        event_type=EventType(event_record.event_type),
        pilots=list(pilots.values()),
        channels=channels,
        pilot_channels=pilot_channels,
        rounds=list(rounds.values()),
        races=list(races.values()),
        results=results,
        pb_positions=pb_positions,
    )


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------

def _save_stage(session: Session, event_id: int, stage: Stage) -> int:
    record = session.get(StageRecord, stage.id) if stage.id is not None else None
    if record is None:
        record = StageRecord(event_id=event_id)
    record.name = stage.name
    record.stage_type = stage.stage_type.value
    record.win_limit = stage.win_limit
    session.add(record)
    session.flush()
    stage.id = record.id
    return record.id


def _delete_race(session: Session, race_id: int) -> None:
    for row in session.exec(select(PilotChannelRecord).where(PilotChannelRecord.race_id == race_id)).all():
        session.delete(row)
    for row in session.exec(select(ResultRecord).where(ResultRecord.race_id == race_id)).all():
        session.delete(row)
    race = session.get(RaceRecord, race_id)
    if race is not None:
        session.delete(race)


def save_round(session: Session, event: EventSnapshot, round: Round) -> RoundRecord:
    """
    Upsert round and replace its stored races with event.races_in(round).
    Stored races of the round that are no longer present are deleted.
    """
    if event.id is None:
        raise ValueError("Event has not been stored")

    stage_id = _save_stage(session, event.id, round.stage) if round.stage is not None else None

    record = session.get(RoundRecord, round.id) if round.id is not None else None
    if record is None:
        record = RoundRecord(event_id=event.id, round_number=round.round_number)
    record.round_number = round.round_number
    record.event_type = round.event_type.value
    record.round_type = round.round_type.value
    record.order_index = round.order
    record.stage_id = stage_id
    session.add(record)
    session.flush()
    round.id = record.id

    races = event.races_in(round)
    keep_ids = {r.id for r in races if r.id is not None}
    stored = session.exec(select(RaceRecord).where(RaceRecord.round_id == record.id)).all()
    for row in stored:
        if row.id not in keep_ids:
            _delete_race(session, row.id)

    for race in races:
        race_record = session.get(RaceRecord, race.id) if race.id is not None else None
        if race_record is None:
            race_record = RaceRecord(event_id=event.id, round_id=record.id, race_number=race.race_number)
        race_record.round_id = record.id
        race_record.race_number = race.race_number
        race_record.bracket = race.bracket.value
        race_record.started = race.started
        race_record.ended = race.ended
        session.add(race_record)
        session.flush()
        race.id = race_record.id

        for row in session.exec(select(PilotChannelRecord).where(PilotChannelRecord.race_id == race.id)).all():
            session.delete(row)
        for slot, pc in enumerate(race.pilot_channels):
            session.add(
                PilotChannelRecord(race_id=race.id, pilot_id=pc.pilot.id, channel_id=pc.channel.id, slot=slot)
            )

    session.commit()
    session.refresh(record)
    logger.info("Saved %s with %d race(s) for event %d", round, len(races), event.id)
    return record


def save_results(session: Session, race: Race, results: Sequence[Result]) -> List[ResultRecord]:
    """Replace race's stored results and lifecycle state."""
    if race.id is None:
        raise ValueError(f"{race.name} has not been stored")

    race_record = session.get(RaceRecord, race.id)
    if not race_record:
        raise ValueError(f"Race {race.id} not found")

    for row in session.exec(select(ResultRecord).where(ResultRecord.race_id == race.id)).all():
        session.delete(row)

    records: List[ResultRecord] = []
    for result in results:
        record = ResultRecord(
            race_id=race.id,
            pilot_id=result.pilot.id,
            position=result.position,
            points=result.points,
            dnf=result.dnf,
            laps_finished=result.laps_finished,
            time_seconds=result.time_seconds,
        )
        session.add(record)
        records.append(record)

    race_record.started = race.started
    race_record.ended = race.ended
    session.add(race_record)
    session.commit()
    for record, result in zip(records, results):
        session.refresh(record)
        result.id = record.id
    return records
