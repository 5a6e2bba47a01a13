from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


RecordStatus = Literal["Active", "Deactivated", "Lost"]
ProcessingStatus = Literal["Pending", "Moved", "CreatedAndMoved", "Error"]
Sex = Literal["M", "F", "O", "unknown"]

UNKNOWN = "unknown"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_number(value: object) -> str:
    """Record numbers compare as trimmed strings, whatever type they arrive as."""
    return str(value).strip()


class Record(BaseModel):
    number: str
    patient_name: str
    age: int = Field(default=0, ge=0)
    sex: Optional[Sex] = None
    birth_date: Optional[str] = None
    status: RecordStatus = "Active"
    current_location: str
    previous_location: Optional[str] = None
    last_movement: Optional[datetime] = None

    model_config = {"extra": "forbid"}

    @field_validator("number", mode="before")
    @classmethod
    def _normalize_number(cls, v):
        v = normalize_number(v)
        if not v:
            raise ValueError("record number must not be empty")
        return v

    @field_validator("birth_date")
    @classmethod
    def _check_birth_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == UNKNOWN:
            return v
        if not _ISO_DATE.match(v):
            raise ValueError(f"birth_date must be YYYY-MM-DD or '{UNKNOWN}': {v!r}")
        date.fromisoformat(v)
        return v


class MovementEntry(BaseModel):
    id: int = 0
    record_number: str
    patient_name: str
    age: int = 0
    origin: str
    destination: str
    user: str
    note: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = {"extra": "forbid", "frozen": True}


class AppointmentEntry(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    record_number: str
    patient_name: str
    age: Optional[int] = Field(default=None, ge=0)
    time: str
    doctor: str = ""
    specialty: str = ""
    selected: bool = True
    status: ProcessingStatus = "Pending"

    model_config = {"extra": "forbid", "validate_assignment": True}

    @field_validator("record_number", mode="before")
    @classmethod
    def _normalize_number(cls, v):
        v = normalize_number(v)
        if not v:
            raise ValueError("record number must not be empty")
        return v


class ScheduleMetadata(BaseModel):
    doctor: Optional[str] = None
    specialty: Optional[str] = None
    schedule_date: Optional[date] = None

    model_config = {"extra": "forbid", "frozen": True}


class BatchDigest(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    imported_at: datetime = Field(default_factory=utcnow)
    user: str
    doctor: str
    specialty: str
    total: int = Field(ge=0)
    entries: List[AppointmentEntry] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="after")
    def check_total(self) -> "BatchDigest":
        if self.total != len(self.entries):
            raise ValueError("total must equal the number of entries")
        return self


class RequiredFields(BaseModel):
    age: bool = True
    sex: bool = False
    birth_date: bool = False

    model_config = {"extra": "forbid"}


class Permissions(BaseModel):
    common_can_view_history: bool = True
    common_can_import_schedule: bool = True
    common_can_edit_record: bool = False
    common_can_delete_record: bool = False
    common_can_manage_destinations: bool = False
    common_can_manage_required_fields: bool = False

    model_config = {"extra": "forbid"}


class SystemConfig(BaseModel):
    required_fields: RequiredFields = Field(default_factory=RequiredFields)
    permissions: Permissions = Field(default_factory=Permissions)

    model_config = {"extra": "forbid"}
