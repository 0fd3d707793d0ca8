# backend/lmsdb/apps/accounts/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import Seniority, UserRole


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    seniority: Optional[Seniority] = None
    business_unit: Optional[str] = Field(None, max_length=128)


class UserRegister(UserBase):
    """
    Self-service registration.

    `roles` may be omitted (defaults to consultant). A single `rh` or
    `manager` role is widened to include `consultant`.
    """

    password: str
    roles: List[UserRole] = Field(default_factory=list)


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    roles: List[UserRole]
    seniority: Optional[Seniority] = None
    business_unit: Optional[str] = None
    p1_used: int
    p2_used: int
    archived: bool
    archived_at: Optional[datetime] = None
    created_at: datetime


class RolesUpdate(BaseModel):
    roles: List[UserRole] = Field(..., min_length=1)


class QuotaSummary(BaseModel):
    p1_used: int
    p2_used: int
    p1_remaining: int
    p2_remaining: int


class MeRead(BaseModel):
    user: UserRead
    coaches: List[UserSummary] = Field(default_factory=list)
    quota: QuotaSummary


# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead


# ---------------------------------------------------------------------------
# COACH ASSIGNMENTS
# ---------------------------------------------------------------------------


class CoachAssignmentCreate(BaseModel):
    coach_id: str
    coachee_id: str


class CoachAssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    coach_id: str
    coachee_id: str
    created_at: datetime
    coach: Optional[UserSummary] = None
    coachee: Optional[UserSummary] = None
