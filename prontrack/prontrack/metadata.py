"""Schedule header detection: doctor, specialty and schedule date.

Detection is a fold over the rows. ``scan_row`` never modifies its input and a
field that is already set is never looked at again, so the first match wins and
running the fold twice gives the same snapshot.
"""
from __future__ import annotations

import re
from datetime import date
from functools import reduce
from typing import Iterable, Optional

from .grid import NormalizedRow
from .schema import ScheduleMetadata

DOCTOR_TRIGGERS = ("PROFISSIONAL", "MEDICO", "MÉDICO", "DR.", "DOUTOR")
SPECIALTY_TRIGGERS = ("ESPECIALIDADE",)

DOCTOR_LABEL = re.compile(r"(?:PROFISSIONAL|M[EÉ]DICO|DR\.|DOUTOR)[\s:.-]*", re.IGNORECASE)
SPECIALTY_LABEL = re.compile(r"ESPECIALIDADE[\s:.-]*", re.IGNORECASE)
DATE_LABEL = re.compile(r"\b(?:DATA|DIA)\b")
DATE_TOKEN = re.compile(r"(?<!\d)(\d{2})[-/](\d{2})[-/](\d{4}|\d{2})(?!\d)")
DOCTOR_STOP = re.compile(r"[|-]")


def _label_value(row: NormalizedRow, label: re.Pattern) -> str:
    """Text after ``label``, read from the original cells.

    The value is the rest of the cell holding the label; when that is empty the
    next non-empty cell is used.
    """
    for col, cell in enumerate(row.cells):
        m = label.search(cell)
        if not m:
            continue
        value = cell[m.end():].strip()
        if value:
            return value
        for nxt in row.cells[col + 1:]:
            if nxt.strip():
                return nxt.strip()
        return ""
    m = label.search(row.text)
    return row.text[m.end():].strip() if m else ""


def parse_schedule_date(text: str) -> Optional[date]:
    """First ``DD/MM/YY[YY]`` token in ``text`` as a date, day-month-year order."""
    for m in DATE_TOKEN.finditer(text):
        day, month, year = (int(g) for g in m.groups())
        if len(m.group(3)) == 2:
            year += 2000
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None


def _cut_at(value: str, label: re.Pattern) -> str:
    m = label.search(value)
    return value[: m.start()].strip() if m else value


def detect_doctor(row: NormalizedRow) -> Optional[str]:
    if not any(t in row.upper for t in DOCTOR_TRIGGERS):
        return None
    value = _cut_at(_label_value(row, DOCTOR_LABEL), SPECIALTY_LABEL)
    value = DOCTOR_STOP.split(value, 1)[0].strip()
    return value or None


def detect_specialty(row: NormalizedRow) -> Optional[str]:
    if not any(t in row.upper for t in SPECIALTY_TRIGGERS):
        return None
    # a doctor label sharing the cell ends the specialty
    return _cut_at(_label_value(row, SPECIALTY_LABEL), DOCTOR_LABEL) or None


def detect_date(row: NormalizedRow) -> Optional[date]:
    if not DATE_LABEL.search(row.upper):
        return None
    return parse_schedule_date(row.text)


def scan_row(meta: ScheduleMetadata, row: NormalizedRow) -> ScheduleMetadata:
    update = {}
    if meta.doctor is None:
        doctor = detect_doctor(row)
        if doctor:
            update["doctor"] = doctor
    if meta.specialty is None:
        specialty = detect_specialty(row)
        if specialty:
            update["specialty"] = specialty
    if meta.schedule_date is None:
        found = detect_date(row)
        if found:
            update["schedule_date"] = found
    return meta.model_copy(update=update) if update else meta


def detect_metadata(rows: Iterable[NormalizedRow]) -> ScheduleMetadata:
    return reduce(scan_row, rows, ScheduleMetadata())
