from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Dict, Iterable

from .schema import BatchDigest, MovementEntry


MOVEMENT_HEADERS = [
    "id",
    "timestamp",
    "record_number",
    "patient_name",
    "age",
    "origin",
    "destination",
    "user",
    "note",
]

DIGEST_HEADERS = [
    "digest_id",
    "imported_at",
    "user",
    "doctor",
    "specialty",
    "time",
    "record_number",
    "patient_name",
    "age",
    "status",
]


def _movement_row(m: MovementEntry) -> Dict[str, Any]:
    return {
        "id": m.id,
        "timestamp": m.timestamp.isoformat(),
        "record_number": m.record_number,
        "patient_name": m.patient_name,
        "age": m.age,
        "origin": m.origin,
        "destination": m.destination,
        "user": m.user,
        "note": m.note or "",
    }


def movements_to_csv(entries: Iterable[MovementEntry], out_path: str | Path) -> Path:
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=MOVEMENT_HEADERS)
        w.writeheader()
        for m in entries:
            w.writerow(_movement_row(m))
    return out


def digest_to_csv(digest: BatchDigest, out_path: str | Path) -> Path:
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=DIGEST_HEADERS)
        w.writeheader()
        for e in digest.entries:
            w.writerow({
                "digest_id": digest.id,
                "imported_at": digest.imported_at.isoformat(),
                "user": digest.user,
                "doctor": digest.doctor,
                "specialty": digest.specialty,
                "time": e.time,
                "record_number": e.record_number,
                "patient_name": e.patient_name,
                "age": "" if e.age is None else e.age,
                "status": e.status,
            })
    return out
