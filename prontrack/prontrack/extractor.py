"""Turn a loosely formatted schedule grid into appointment entries.

Schedules exported from the appointment system have no fixed layout: header
blocks, column titles and patient rows are interleaved and the record number
often wraps onto the line below the patient. Each row is matched on its own:

1. a time token within the first ``TIME_COLUMNS`` cells marks a patient row;
2. the name is the first plausible text cell right of the time;
3. the record number is looked up on the row and up to ``LOOKAHEAD`` rows below;
4. an age such as ``34 anos`` is picked up anywhere on the row.

Rows that do not fit are skipped silently; the caller sees an empty result, not
an exception.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import ExtractionEmpty
from .grid import NormalizedRow, normalize_grid
from .metadata import scan_row
from .schema import AppointmentEntry, ScheduleMetadata

logger = logging.getLogger(__name__)

TIME_COLUMNS = 6
LOOKAHEAD = 2
MIN_NAME_LENGTH = 5

TIME_TOKEN = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")
RECORD_NUMBER = re.compile(
    r"(?:PRONTU[ÁA]RIO|PRONT|C[ÓO]DIGO|MATR[ÍI]CULA)\s*[:.]?\s*(\d+)", re.IGNORECASE
)
AGE_TOKEN = re.compile(r"(\d+)\s*(ANOS?|MESES|M[EÊ]S|DIAS?)")
HEADER_TIME_LABELS = ("HORÁRIO", "HORARIO", "HORA")
HEADER_PATIENT_LABEL = "PACIENTE"
NON_NAME_WORDS = ("AGENDAMENTO", "RETORNO")

EMPTY_GUIDANCE = (
    "No patients were recognised. Check that the sheet has a column with "
    "appointment times (e.g. 07:00) and that the record number label "
    "(Prontuário: 1234) is visible on the patient row or on one of the two "
    "rows below it."
)


@dataclass
class ExtractionResult:
    entries: List[AppointmentEntry] = field(default_factory=list)
    metadata: ScheduleMetadata = field(default_factory=ScheduleMetadata)
    rows_read: int = 0

    @property
    def ok(self) -> bool:
        return bool(self.entries)

    @property
    def guidance(self) -> Optional[str]:
        return None if self.ok else EMPTY_GUIDANCE

    def raise_for_empty(self) -> "ExtractionResult":
        if not self.ok:
            raise ExtractionEmpty(self.rows_read, EMPTY_GUIDANCE)
        return self


def is_header_row(row: NormalizedRow) -> bool:
    return HEADER_PATIENT_LABEL in row.upper and any(label in row.upper for label in HEADER_TIME_LABELS)


def find_time_column(row: NormalizedRow) -> int:
    for col in range(min(TIME_COLUMNS, len(row.cells))):
        if TIME_TOKEN.match(row.cells[col].strip()):
            return col
    return -1


def _is_numeric(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def find_name(row: NormalizedRow, time_col: int) -> Optional[str]:
    for cell in row.cells[time_col + 1:]:
        value = cell.strip()
        if len(value) <= MIN_NAME_LENGTH or _is_numeric(value):
            continue
        upper = value.upper()
        if any(w in upper for w in NON_NAME_WORDS):
            continue
        if RECORD_NUMBER.search(value):
            continue
        return value
    return None


def find_record_number(rows: Sequence[NormalizedRow], i: int) -> Optional[str]:
    for row in rows[i:i + LOOKAHEAD + 1]:
        m = RECORD_NUMBER.search(row.upper)
        if m:
            return m.group(1)
    return None


def find_age(row: NormalizedRow) -> Optional[int]:
    m = AGE_TOKEN.search(row.upper)
    if not m:
        return None
    if m.group(2).startswith("ANO"):
        return int(m.group(1))
    return 0


def extract_rows(rows: Sequence[NormalizedRow]) -> ExtractionResult:
    meta = ScheduleMetadata()
    entries: List[AppointmentEntry] = []
    for i, row in enumerate(rows):
        meta = scan_row(meta, row)
        if is_header_row(row):
            continue
        time_col = find_time_column(row)
        if time_col == -1:
            continue
        name = find_name(row, time_col)
        if not name:
            continue
        number = find_record_number(rows, i)
        if not number:
            logger.debug("row %d: patient %r has no record number within reach", row.index, name)
            continue
        entries.append(
            AppointmentEntry(
                record_number=number,
                patient_name=name,
                age=find_age(row),
                time=row.cells[time_col].strip(),
                doctor=meta.doctor or "",
                specialty=meta.specialty or "",
            )
        )
    logger.info("extracted %d entries from %d rows", len(entries), len(rows))
    return ExtractionResult(entries=entries, metadata=meta, rows_read=len(rows))


def extract_schedule(grid: Sequence[Sequence[object]]) -> ExtractionResult:
    return extract_rows(normalize_grid(grid))
