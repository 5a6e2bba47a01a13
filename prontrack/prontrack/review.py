from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .extractor import ExtractionResult
from .schema import AppointmentEntry, ScheduleMetadata

FALLBACK_DOCTOR = "Various"
FALLBACK_SPECIALTY = "General"


@dataclass
class ImportSession:
    """Entries of one schedule import while they are being reviewed."""

    entries: List[AppointmentEntry] = field(default_factory=list)
    metadata: ScheduleMetadata = field(default_factory=ScheduleMetadata)

    @classmethod
    def from_result(cls, result: ExtractionResult) -> "ImportSession":
        return cls(entries=list(result.entries), metadata=result.metadata)

    def _find(self, entry_id: str) -> int:
        for i, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return i
        raise KeyError(entry_id)

    def toggle(self, entry_id: str) -> AppointmentEntry:
        entry = self.entries[self._find(entry_id)]
        entry.selected = not entry.selected
        return entry

    def select_all(self, selected: bool = True) -> None:
        for entry in self.entries:
            entry.selected = selected

    def select_numbers(self, numbers, selected: bool) -> int:
        wanted = {str(n).strip() for n in numbers}
        hits = 0
        for entry in self.entries:
            if entry.record_number in wanted:
                entry.selected = selected
                hits += 1
        return hits

    def update_entry(self, entry_id: str, **changes) -> AppointmentEntry:
        idx = self._find(entry_id)
        data = self.entries[idx].model_dump()
        data.update(changes)
        self.entries[idx] = AppointmentEntry.model_validate(data)
        return self.entries[idx]

    def selected(self) -> List[AppointmentEntry]:
        return [e for e in self.entries if e.selected]

    def set_metadata(self, **changes) -> ScheduleMetadata:
        self.metadata = ScheduleMetadata.model_validate({**self.metadata.model_dump(), **changes})
        return self.metadata

    def resolved_doctor(self) -> str:
        pool = self.selected() or self.entries
        first = pool[0].doctor if pool else ""
        return self.metadata.doctor or first or FALLBACK_DOCTOR

    def resolved_specialty(self) -> str:
        pool = self.selected() or self.entries
        first = pool[0].specialty if pool else ""
        return self.metadata.specialty or first or FALLBACK_SPECIALTY

    def apply_metadata(self) -> None:
        """Fill blank doctor/specialty on entries from the session metadata."""
        for entry in self.entries:
            if not entry.doctor and self.metadata.doctor:
                entry.doctor = self.metadata.doctor
            if not entry.specialty and self.metadata.specialty:
                entry.specialty = self.metadata.specialty

    def clear(self) -> None:
        self.entries = []
        self.metadata = ScheduleMetadata()
