from datetime import date, datetime, timezone

import pytest

from prontrack.errors import DuplicateKey, MissingRequiredField, NoChange, NoPriorLocation, RecordNotFound
from prontrack.locations import LocationMachine, approximate_birth_date
from prontrack.schema import Record
from prontrack.store import MemoryStore

T0 = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)


def _machine(*records: Record) -> LocationMachine:
    return LocationMachine(MemoryStore(records=list(records)), clock=lambda: T0)


def _record(number="1001", location="Archive", **kw) -> Record:
    return Record(number=number, patient_name="Maria Silva", age=34, current_location=location, **kw)


def test_duplicate_number_always_rejected():
    m = _machine(_record())
    with pytest.raises(DuplicateKey):
        m.create_record("1001", "Someone Else", "Billing", age=70, sex="M")
    with pytest.raises(DuplicateKey):
        m.create_record(1001, "Maria Silva", "Archive", age=34)
    assert len(m.store.list_records()) == 1


def test_create_record_seeds_location_without_previous():
    m = _machine()
    rec = m.create_record("2002", "  João Santos ", "Reception", age=28, sex="M")
    assert rec.current_location == "Reception"
    assert rec.previous_location is None
    assert rec.patient_name == "João Santos"
    assert rec.last_movement == T0
    assert m.store.list_movements() == []


def test_required_fields_follow_config():
    m = _machine()
    with pytest.raises(MissingRequiredField) as exc:
        m.create_record("2002", "João Santos", "Archive")
    assert exc.value.field == "age"

    cfg = m.store.get_config()
    cfg.required_fields.age = False
    cfg.required_fields.sex = True
    m.store.set_config(cfg)
    with pytest.raises(MissingRequiredField):
        m.create_record("2002", "João Santos", "Archive")
    assert m.create_record("2002", "João Santos", "Archive", sex="M").age == 0


def test_move_shifts_previous_and_logs():
    m = _machine(_record())
    entry = m.move("1001", "Outpatient", "clerk")
    rec = m.get("1001")
    assert rec.current_location == "Outpatient"
    assert rec.previous_location == "Archive"
    assert rec.last_movement == T0
    assert entry.id == 1
    assert (entry.origin, entry.destination, entry.user) == ("Archive", "Outpatient", "clerk")
    assert entry.note == "Moved from Archive to Outpatient"
    assert (entry.patient_name, entry.age) == ("Maria Silva", 34)


def test_move_keeps_given_note():
    m = _machine(_record())
    assert m.move("1001", "Billing", "clerk", note="sent for audit").note == "sent for audit"


def test_move_unknown_record():
    with pytest.raises(RecordNotFound):
        _machine().move("404", "Billing", "clerk")


def test_correction_overwrites_current_only():
    m = _machine(_record())
    m.move("1001", "Outpatient", "clerk")
    entry = m.correct("1001", "Inpatient", "admin", status="Lost")
    rec = m.get("1001")
    assert rec.current_location == "Inpatient"
    assert rec.previous_location == "Archive"
    assert rec.status == "Lost"
    assert entry.origin == "Outpatient"
    assert entry.destination == "Inpatient"
    assert entry.note == "Manual correction"


def test_correction_without_change_is_refused():
    m = _machine(_record())
    with pytest.raises(NoChange):
        m.correct("1001", "Archive", "admin")
    entry = m.correct("1001", "Archive", "admin", status="Deactivated")
    assert entry.origin == entry.destination == "Archive"


def test_revert_needs_previous_location():
    m = _machine(_record())
    with pytest.raises(NoPriorLocation):
        m.revert("1001", "admin")
    assert m.store.list_movements() == []


def test_revert_restores_previous_and_logs():
    m = _machine(_record())
    m.move("1001", "Outpatient", "clerk")
    entry = m.revert("1001", "admin")
    rec = m.get("1001")
    assert rec.current_location == "Archive"
    assert rec.previous_location == "Archive"
    assert (entry.origin, entry.destination) == ("Outpatient", "Archive")
    assert entry.note == "Movement reversal"


def test_second_revert_changes_nothing():
    once = _machine(_record())
    once.move("1001", "Outpatient", "clerk")
    once.move("1001", "Billing", "clerk")
    once.revert("1001", "admin")

    twice = _machine(_record())
    twice.move("1001", "Outpatient", "clerk")
    twice.move("1001", "Billing", "clerk")
    twice.revert("1001", "admin")
    twice.revert("1001", "admin")

    assert once.get("1001").current_location == "Outpatient"
    assert twice.get("1001").current_location == once.get("1001").current_location


def test_log_is_append_only():
    m = _machine(_record())
    m.move("1001", "Outpatient", "clerk")
    first = m.store.list_movements()
    m.correct("1001", "Billing", "admin")
    m.revert("1001", "admin")
    log = m.store.list_movements()
    assert log[: len(first)] == first
    assert [e.id for e in log] == [1, 2, 3]


def test_update_record_rejects_number_collision():
    m = _machine(_record(), _record(number="1002"))
    changed = m.get("1002").model_copy(update={"number": "1001"})
    with pytest.raises(DuplicateKey):
        m.update_record("1002", changed)
    renamed = m.get("1002").model_copy(update={"patient_name": "Maria S. Silva"})
    m.update_record("1002", renamed)
    assert m.get("1002").patient_name == "Maria S. Silva"


def test_approximate_birth_date():
    assert approximate_birth_date(34, date(2024, 6, 1)) == "1990-01-01"
