"""Apply reviewed schedule entries to record state.

Reconciliation runs in two separate phases. ``find_conflicts`` only reads the
store and reports entries whose record is outside the source pool. Nothing is
written unless there are no conflicts or the caller forces the batch; then
``apply_entries`` creates missing records and moves every record to the
schedule destination, one entry at a time. A failure on one entry marks that
entry as ``Error`` and the batch carries on.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence

from .config import Settings
from .errors import DuplicateKey, LocationConflict, NothingSelected, RecordNotFound
from .locations import LocationMachine
from .review import ImportSession
from .schema import UNKNOWN, AppointmentEntry, BatchDigest
from .store import RecordStore, add_digest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conflict:
    entry: AppointmentEntry
    current_location: str


@dataclass(frozen=True)
class BatchOutcome:
    digest: BatchDigest
    created: int
    moved: int
    failed: int

    @property
    def movements(self) -> int:
        return self.created + self.moved

    def summary(self) -> str:
        return f"{self.created} created, {self.moved} moved, {self.failed} failed"


def schedule_note(schedule_date: date) -> str:
    return f"Schedule import ({schedule_date.isoformat()})"


def find_conflicts(store: RecordStore, entries: Iterable[AppointmentEntry], source_pool: str) -> List[Conflict]:
    conflicts: List[Conflict] = []
    for entry in entries:
        record = store.get_record(entry.record_number)
        if record is not None and record.current_location != source_pool:
            conflicts.append(Conflict(entry=entry, current_location=record.current_location))
    return conflicts


def apply_entry(
    machine: LocationMachine,
    entry: AppointmentEntry,
    destination: str,
    source_pool: str,
    user: str,
    note: str,
) -> AppointmentEntry:
    status = "Moved"
    try:
        if machine.store.get_record(entry.record_number) is None:
            machine.create_record(
                entry.record_number,
                entry.patient_name,
                source_pool,
                age=entry.age or 0,
                sex=UNKNOWN,
                birth_date=UNKNOWN,
                status="Active",
                enforce_required=False,
            )
            status = "CreatedAndMoved"
        machine.move(entry.record_number, destination, user, note=note)
    except (DuplicateKey, RecordNotFound, ValueError) as e:
        logger.warning("schedule entry %s (record %s) failed: %s", entry.id, entry.record_number, e)
        status = "Error"
    entry.status = status
    return entry


def apply_entries(
    machine: LocationMachine,
    entries: Sequence[AppointmentEntry],
    destination: str,
    source_pool: str,
    user: str,
    schedule_date: date,
) -> List[AppointmentEntry]:
    note = schedule_note(schedule_date)
    return [apply_entry(machine, e, destination, source_pool, user, note) for e in entries]


def reconcile(
    store: RecordStore,
    session: ImportSession,
    user: str,
    settings: Optional[Settings] = None,
    force: bool = False,
    schedule_date: Optional[date] = None,
    machine: Optional[LocationMachine] = None,
) -> BatchOutcome:
    settings = settings or Settings()
    selected = session.selected()
    if not selected:
        raise NothingSelected("select at least one entry")

    conflicts = find_conflicts(store, selected, settings.source_pool)
    if conflicts and not force:
        raise LocationConflict(conflicts)
    if conflicts:
        logger.warning("forcing batch with %d conflicting record(s)", len(conflicts))

    machine = machine or LocationMachine(store)
    when = schedule_date or session.metadata.schedule_date or date.today()
    processed = apply_entries(
        machine, selected, settings.schedule_destination, settings.source_pool, user, when
    )

    digest = add_digest(
        store,
        BatchDigest(
            user=user,
            doctor=session.resolved_doctor(),
            specialty=session.resolved_specialty(),
            total=len(processed),
            entries=[e.model_copy(deep=True) for e in processed],
        ),
    )
    outcome = BatchOutcome(
        digest=digest,
        created=sum(1 for e in processed if e.status == "CreatedAndMoved"),
        moved=sum(1 for e in processed if e.status == "Moved"),
        failed=sum(1 for e in processed if e.status == "Error"),
    )
    logger.info("schedule batch %s by %s: %s", digest.id, user, outcome.summary())
    session.clear()
    return outcome
