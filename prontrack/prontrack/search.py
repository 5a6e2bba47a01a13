from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Literal, Optional

from .schema import MovementEntry, Record, normalize_number

SortKey = Literal["name", "number", "age", "movement"]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _number_key(number: str):
    # numeric numbers sort before the rest, by value
    return (0, int(number), "") if number.isdigit() else (1, 0, number.lower())


def _sort_key(sort_by: SortKey):
    if sort_by == "name":
        return lambda r: r.patient_name.lower()
    if sort_by == "number":
        return lambda r: _number_key(r.number)
    if sort_by == "age":
        return lambda r: r.age
    if sort_by == "movement":
        return lambda r: r.last_movement or _EPOCH
    raise ValueError(f"unknown sort key: {sort_by}")


def find_records(
    records: Iterable[Record],
    query: str = "",
    location: Optional[str] = None,
    sort_by: SortKey = "movement",
    descending: bool = True,
) -> List[Record]:
    q = query.strip().lower()
    result = [
        r for r in records
        if (not q or q in r.number.lower() or q in r.patient_name.lower())
        and (not location or r.current_location == location)
    ]
    result.sort(key=_sort_key(sort_by), reverse=descending)
    return result


def record_history(movements: Iterable[MovementEntry], number: object) -> List[MovementEntry]:
    key = normalize_number(number)
    hits = [m for m in movements if m.record_number == key]
    return sorted(hits, key=lambda m: (m.timestamp, m.id), reverse=True)
