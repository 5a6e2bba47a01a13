"""Record location state machine.

A record has a current location and at most one previous location. Three
transitions change it, and each appends one entry to the movement log:

- ``move``: the standard path, previous <- current, current <- destination;
- ``correct``: overwrites the current location (and optionally the status)
  without touching previous;
- ``revert``: current <- previous, previous stays as it was, so a second
  revert does not go further back.

Log entries are never edited or removed here.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional

from .errors import MissingRequiredField, NoChange, NoPriorLocation, RecordNotFound
from .schema import MovementEntry, Record, RecordStatus, Sex, utcnow
from .store import RecordStore

logger = logging.getLogger(__name__)

NOTE_CORRECTION = "Manual correction"
NOTE_REVERSAL = "Movement reversal"


def approximate_birth_date(age: int, today: Optional[date] = None) -> str:
    """January 1st of the year the patient would have been born."""
    today = today or date.today()
    return date(today.year - age, 1, 1).isoformat()


def _with(record: Record, **changes) -> Record:
    return Record.model_validate({**record.model_dump(), **changes})


class LocationMachine:
    def __init__(self, store: RecordStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or utcnow

    def get(self, number: object) -> Record:
        record = self.store.get_record(number)
        if record is None:
            raise RecordNotFound(str(number).strip())
        return record

    def _log(self, record: Record, origin: str, destination: str, user: str, note: Optional[str]) -> MovementEntry:
        return self.store.append_movement(
            MovementEntry(
                record_number=record.number,
                patient_name=record.patient_name,
                age=record.age,
                origin=origin,
                destination=destination,
                user=user,
                note=note,
                timestamp=self.clock(),
            )
        )

    def create_record(
        self,
        number: object,
        patient_name: str,
        location: str,
        age: Optional[int] = None,
        sex: Optional[Sex] = None,
        birth_date: Optional[str] = None,
        status: RecordStatus = "Active",
        enforce_required: bool = True,
    ) -> Record:
        """Create a record at ``location``. Raises DuplicateKey if the number exists."""
        if enforce_required:
            required = self.store.get_config().required_fields
            if required.age and age is None:
                raise MissingRequiredField("age")
            if required.sex and not sex:
                raise MissingRequiredField("sex")
            if required.birth_date and not birth_date:
                raise MissingRequiredField("birth_date")
        record = Record(
            number=number,
            patient_name=patient_name.strip(),
            age=age or 0,
            sex=sex,
            birth_date=birth_date,
            status=status,
            current_location=location,
            last_movement=self.clock(),
        )
        self.store.insert_record(record)
        logger.info("created record %s at %s", record.number, location)
        return record

    def update_record(self, number: object, record: Record) -> Record:
        self.get(number)
        self.store.replace_record(number, record)
        logger.info("updated record %s", record.number)
        return record

    def move(self, number: object, destination: str, user: str, note: Optional[str] = None) -> MovementEntry:
        record = self.get(number)
        origin = record.current_location
        updated = _with(
            record,
            previous_location=origin,
            current_location=destination,
            last_movement=self.clock(),
        )
        self.store.replace_record(record.number, updated)
        entry = self._log(updated, origin, destination, user, note or f"Moved from {origin} to {destination}")
        logger.info("record %s moved %s -> %s by %s", record.number, origin, destination, user)
        return entry

    def correct(
        self,
        number: object,
        location: str,
        user: str,
        status: Optional[RecordStatus] = None,
    ) -> MovementEntry:
        record = self.get(number)
        new_status = status or record.status
        if location == record.current_location and new_status == record.status:
            raise NoChange(f"record {record.number} already at {location} with status {record.status}")
        origin = record.current_location
        updated = _with(record, current_location=location, status=new_status, last_movement=self.clock())
        self.store.replace_record(record.number, updated)
        entry = self._log(updated, origin, location, user, NOTE_CORRECTION)
        logger.info("record %s corrected %s -> %s (status %s) by %s", record.number, origin, location, new_status, user)
        return entry

    def revert(self, number: object, user: str) -> MovementEntry:
        record = self.get(number)
        if not record.previous_location:
            raise NoPriorLocation(record.number)
        origin = record.current_location
        restored = record.previous_location
        updated = _with(record, current_location=restored, last_movement=self.clock())
        self.store.replace_record(record.number, updated)
        entry = self._log(updated, origin, restored, user, NOTE_REVERSAL)
        logger.info("record %s reverted %s -> %s by %s", record.number, origin, restored, user)
        return entry
