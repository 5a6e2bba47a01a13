from datetime import date

from prontrack.grid import normalize_grid
from prontrack.metadata import detect_metadata, parse_schedule_date, scan_row
from prontrack.schema import ScheduleMetadata


def _rows(grid):
    return normalize_grid(grid)


def test_detects_all_three_fields():
    rows = _rows([
        ["Agenda Ambulatorial"],
        ["Profissional:", "Dr. Souza", "Especialidade:", "Cardiologia"],
        ["Data: 15/03/2024"],
    ])
    meta = detect_metadata(rows)
    assert meta.doctor == "Dr. Souza"
    assert meta.specialty == "Cardiologia"
    assert meta.schedule_date == date(2024, 3, 15)


def test_detection_is_idempotent():
    rows = _rows([
        ["MÉDICO: Ana Lima | CRM 1234"],
        ["ESPECIALIDADE: Pediatria"],
        ["DIA: 05-01-24"],
    ])
    first = detect_metadata(rows)
    second = detect_metadata(rows)
    assert first == second
    assert first.doctor == "Ana Lima"
    assert first.schedule_date == date(2024, 1, 5)


def test_first_match_wins():
    rows = _rows([
        ["Profissional: Dr. Souza"],
        ["Profissional: Dr. Lima"],
        ["Data: 01/02/2024"],
        ["Data: 03/04/2024"],
    ])
    meta = detect_metadata(rows)
    assert meta.doctor == "Dr. Souza"
    assert meta.schedule_date == date(2024, 2, 1)


def test_doctor_stops_at_hyphen_and_specialty_label():
    rows = _rows([["Profissional: Dr. Souza - CRM 99 Especialidade: Ortopedia"]])
    meta = detect_metadata(rows)
    assert meta.doctor == "Dr. Souza"
    assert meta.specialty == "Ortopedia"


def test_partial_detection_is_exposed():
    meta = detect_metadata(_rows([["Especialidade: Dermatologia"], ["07:00", "Maria Silva"]]))
    assert meta == ScheduleMetadata(specialty="Dermatologia")


def test_date_requires_label_and_valid_calendar_day():
    assert detect_metadata(_rows([["15/03/2024"]])).schedule_date is None
    assert detect_metadata(_rows([["Data: 31/02/2024"]])).schedule_date is None
    assert parse_schedule_date("emitido 31/02/2024, data 28/02/2024") == date(2024, 2, 28)


def test_scan_row_does_not_mutate_input():
    row = _rows([["Profissional: Dr. Souza"]])[0]
    start = ScheduleMetadata()
    out = scan_row(start, row)
    assert start.doctor is None
    assert out.doctor == "Dr. Souza"
