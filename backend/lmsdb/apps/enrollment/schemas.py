# backend/lmsdb/apps/enrollment/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..accounts.schemas import QuotaSummary, UserSummary
from .models import CoachStatus, InterestStatus, Priority, RegistrationStatus


# ---------------------------------------------------------------------------
# INTERESTS
# ---------------------------------------------------------------------------


class OffCatalogRequest(BaseModel):
    """Training found outside the catalog (conference, vendor course, ...)."""

    title: str = Field(..., min_length=5, max_length=255)
    description: str = Field(..., min_length=10)
    link: Optional[str] = Field(None, max_length=512)
    price: Optional[str] = Field(None, max_length=64)
    fitnet_number: Optional[str] = Field(None, max_length=64)
    mission_manager: Optional[str] = Field(None, max_length=255)


class InterestCreate(BaseModel):
    formation_id: Optional[str] = None
    custom: Optional[OffCatalogRequest] = None
    priority: Priority

    @model_validator(mode="after")
    def _one_target(self) -> "InterestCreate":
        if bool(self.formation_id) == bool(self.custom):
            raise ValueError("Provide either formation_id or custom, not both.")
        return self


class InterestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    formation_id: Optional[str] = None
    priority: Priority
    status: InterestStatus
    expressed_at: datetime

    coach_status: CoachStatus
    coach_id: Optional[str] = None
    coach_validated_at: Optional[datetime] = None

    custom_title: Optional[str] = None
    custom_description: Optional[str] = None
    custom_link: Optional[str] = None
    custom_price: Optional[str] = None
    custom_fitnet_number: Optional[str] = None
    custom_mission_manager: Optional[str] = None

    custom_review_rating: Optional[int] = None
    custom_review_comment: Optional[str] = None
    custom_reviewed_at: Optional[datetime] = None


class InterestStatusUpdate(BaseModel):
    status: InterestStatus


class InterestReview(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class InterestStatistics(BaseModel):
    formation_id: str
    title: str
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]


# ---------------------------------------------------------------------------
# REGISTRATIONS
# ---------------------------------------------------------------------------


class RegistrationCreate(BaseModel):
    session_id: str
    priority: Optional[Priority] = None


class RegistrationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    session_id: str
    formation_id: str
    priority: Priority
    status: RegistrationStatus
    registered_at: datetime
    attended: bool


class RegistrationStatusUpdate(BaseModel):
    status: RegistrationStatus
    attended: Optional[bool] = None


# ---------------------------------------------------------------------------
# USERS / COACHING
# ---------------------------------------------------------------------------


class ArchiveResult(BaseModel):
    user_id: str
    removed_interests: int
    removed_registrations: int


class CoacheeOverview(BaseModel):
    user: UserSummary
    quota: QuotaSummary
    interests: List[InterestRead] = Field(default_factory=list)
    registrations: List[RegistrationRead] = Field(default_factory=list)


class CoachOverview(BaseModel):
    coach_validation_only: bool
    coachees: List[CoacheeOverview] = Field(default_factory=list)
