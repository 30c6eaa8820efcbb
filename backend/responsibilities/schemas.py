"""Pydantic schemas for versioned record attributes and read results."""

# purpose: validate kind-specific attributes and shape records handed back to controllers
# status: active
# depends_on: pydantic

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator


class VersionedAttributes(BaseModel):
    """Validity window shared by every governed kind."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    start_date: date
    end_date: Optional[date] = None

    @field_validator("end_date")
    @classmethod
    def _end_not_before_start(cls, value: Optional[date], info: ValidationInfo) -> Optional[date]:
        start = info.data.get("start_date")
        if value is not None and start is not None and value < start:
            raise ValueError("end_date must not precede start_date")
        return value


class WorkerAttributes(VersionedAttributes):
    display_name: str = Field(min_length=1, max_length=120)
    first_name: Optional[str] = Field(default=None, max_length=80)
    last_name: Optional[str] = Field(default=None, max_length=80)
    initials: Optional[str] = Field(default=None, max_length=8)
    email: Optional[EmailStr] = None


class ActivityTypeAttributes(VersionedAttributes):
    name: str = Field(min_length=1, max_length=50)
    description: Optional[str] = None


class ActivityAttributes(VersionedAttributes):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    icon: Optional[str] = Field(default=None, max_length=10)
    activity_type: int = Field(gt=0)


class ActivityTaskAttributes(VersionedAttributes):
    activity: int = Field(gt=0)
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)


class ResponsibleForAttributes(VersionedAttributes):
    activity: int = Field(gt=0)
    user: int = Field(gt=0)


class AssignedToAttributes(VersionedAttributes):
    task: int = Field(gt=0)
    user: int = Field(gt=0)


class RecordOut(BaseModel):
    """One immutable version of a record as seen by callers."""

    kind: str
    entry: int
    version: int
    status: str
    start_date: date
    end_date: Optional[date] = None
    created_by: int
    created_at: datetime
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_version(cls, kind: str, row: Any) -> "RecordOut":
        attributes = row.attributes()
        start_date = attributes.pop("start_date")
        end_date = attributes.pop("end_date")
        return cls(
            kind=kind,
            entry=row.entry,
            version=row.version,
            status=row.status,
            start_date=start_date,
            end_date=end_date,
            created_by=row.created_by,
            created_at=row.created_at,
            attributes=attributes,
        )


class ResolvedAssignment(BaseModel):
    """A responsibility or assignment link joined to the worker valid on the same date."""

    link: RecordOut
    worker: RecordOut


class TaskOverview(BaseModel):
    task: RecordOut
    assignees: List[ResolvedAssignment] = Field(default_factory=list)


class ActivityOverview(BaseModel):
    activity: RecordOut
    responsibles: List[ResolvedAssignment] = Field(default_factory=list)
    tasks: List[TaskOverview] = Field(default_factory=list)


class AuditLogOut(BaseModel):
    id: int
    kind: str
    entry: int
    operation: str
    actor: int
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditReportItem(BaseModel):
    operation: str
    count: int
