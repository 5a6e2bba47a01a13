import csv
from datetime import datetime, timezone
from pathlib import Path

import pytest

from prontrack.csv_export import DIGEST_HEADERS, digest_to_csv
from prontrack.schema import AppointmentEntry, BatchDigest, MovementEntry, Record
from prontrack.search import find_records, record_history


def _at(hour: int) -> datetime:
    return datetime(2024, 3, 15, hour, tzinfo=timezone.utc)


RECORDS = [
    Record(number="900", patient_name="Carla Dias", age=51, current_location="Archive", last_movement=_at(8)),
    Record(number="1001", patient_name="Maria Silva", age=34, current_location="Outpatient", last_movement=_at(10)),
    Record(number="A12", patient_name="João Santos", age=28, current_location="Archive"),
]


def test_query_matches_number_or_name():
    assert [r.number for r in find_records(RECORDS, "silva")] == ["1001"]
    assert [r.number for r in find_records(RECORDS, "a1")] == ["A12"]
    assert [r.number for r in find_records(RECORDS, "", location="Archive")] == ["900", "A12"]


def test_sorting():
    assert [r.number for r in find_records(RECORDS)] == ["1001", "900", "A12"]
    assert [r.number for r in find_records(RECORDS, sort_by="number", descending=False)] == ["900", "1001", "A12"]
    assert [r.age for r in find_records(RECORDS, sort_by="age", descending=False)] == [28, 34, 51]
    with pytest.raises(ValueError):
        find_records(RECORDS, sort_by="colour")


def test_record_history_newest_first():
    moves = [
        MovementEntry(id=1, record_number="1001", patient_name="Maria Silva", origin="Archive",
                      destination="Outpatient", user="clerk", timestamp=_at(8)),
        MovementEntry(id=2, record_number="900", patient_name="Carla Dias", origin="Archive",
                      destination="Billing", user="clerk", timestamp=_at(9)),
        MovementEntry(id=3, record_number="1001", patient_name="Maria Silva", origin="Outpatient",
                      destination="Archive", user="admin", timestamp=_at(10)),
    ]
    assert [m.id for m in record_history(moves, " 1001 ")] == [3, 1]


def test_digest_csv(tmp_path: Path):
    entries = [
        AppointmentEntry(record_number="1001", patient_name="Maria Silva", age=34, time="07:00", status="Moved"),
        AppointmentEntry(record_number="2002", patient_name="Carla Dias", time="07:30", status="Error"),
    ]
    digest = BatchDigest(user="clerk", doctor="Dr. Souza", specialty="Cardiologia", total=2, entries=entries)
    out = digest_to_csv(digest, tmp_path / "out" / "digest.csv")
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert list(rows[0].keys()) == DIGEST_HEADERS
    assert [(r["record_number"], r["age"], r["status"]) for r in rows] == [("1001", "34", "Moved"), ("2002", "", "Error")]
