# backend/lmsdb/apps/catalog/schemas.py

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..accounts.models import Seniority
from .models import Modality, SessionStatus, TimeSlot


# ---------------------------------------------------------------------------
# FORMATIONS
# ---------------------------------------------------------------------------


class FormationBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str
    objectives: str
    prerequisites: Optional[str] = None
    duration: str = Field(..., min_length=1, max_length=64)
    modality: Modality = Modality.PRESENTIEL
    seniority_required: Optional[Seniority] = None
    theme: str = Field(..., min_length=1, max_length=128)
    tags: List[str] = Field(default_factory=list)
    active: bool = True


class FormationCreate(FormationBase):
    pass


class FormationUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    objectives: Optional[str] = None
    prerequisites: Optional[str] = None
    duration: Optional[str] = Field(None, min_length=1, max_length=64)
    modality: Optional[Modality] = None
    seniority_required: Optional[Seniority] = None
    theme: Optional[str] = Field(None, min_length=1, max_length=128)
    tags: Optional[List[str]] = None
    active: Optional[bool] = None


class FormationRead(FormationBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# SESSIONS
# ---------------------------------------------------------------------------


class SessionCreate(BaseModel):
    formation_id: str
    start_date: datetime
    end_date: datetime
    location: Optional[str] = Field(None, max_length=255)
    capacity: int = Field(..., ge=1)
    instructor_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "SessionCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class SessionUpdate(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    capacity: Optional[int] = Field(None, ge=1)
    instructor_id: Optional[str] = None
    status: Optional[SessionStatus] = None


class SessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    formation_id: str
    start_date: datetime
    end_date: datetime
    location: Optional[str] = None
    capacity: int
    instructor_id: Optional[str] = None
    status: SessionStatus


# ---------------------------------------------------------------------------
# INSTRUCTORS
# ---------------------------------------------------------------------------


class AvailabilitySlot(BaseModel):
    date: date
    time_slot: TimeSlot


class AvailabilityUpsert(BaseModel):
    formation_id: str
    slots: List[AvailabilitySlot] = Field(default_factory=list)


class AvailabilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    instructor_id: str
    formation_id: str
    slots: List[AvailabilitySlot]
    updated_at: datetime


class InstructorFormationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    instructor_id: str
    formation_id: str
    assigned_at: datetime
