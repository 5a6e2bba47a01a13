from __future__ import annotations

from typing import List, Sequence


class ProntrackError(Exception):
    pass


class StructuralParseError(ProntrackError):
    """The source file could not be turned into a cell grid."""


class ExtractionEmpty(ProntrackError):
    def __init__(self, rows_read: int, guidance: str):
        super().__init__(f"read {rows_read} rows but found no patients")
        self.rows_read = rows_read
        self.guidance = guidance


class DuplicateKey(ProntrackError):
    def __init__(self, number: str):
        super().__init__(f"record number already exists: {number}")
        self.number = number


class RecordNotFound(ProntrackError, KeyError):
    def __init__(self, number: str):
        super().__init__(f"record not found: {number}")
        self.number = number

    def __str__(self) -> str:
        return self.args[0]


class LocationConflict(ProntrackError):
    """Some entries target records that are not in the source pool."""

    def __init__(self, conflicts: Sequence[object]):
        self.conflicts: List[object] = list(conflicts)
        super().__init__(f"{len(self.conflicts)} record(s) are not in the source pool")


class NoPriorLocation(ProntrackError):
    def __init__(self, number: str):
        super().__init__(f"record {number} has no previous location to revert to")
        self.number = number


class MissingRequiredField(ProntrackError, ValueError):
    def __init__(self, field: str):
        super().__init__(f"required field missing: {field}")
        self.field = field


class NothingSelected(ProntrackError, ValueError):
    pass


class NoChange(ProntrackError, ValueError):
    pass


class StorePathError(ProntrackError, ValueError):
    pass
