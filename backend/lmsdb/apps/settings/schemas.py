from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class WorkflowSettingsRead(BaseModel):
    coach_validation_only: bool
    rh_validation_only: bool


class WorkflowSettingsUpdate(BaseModel):
    """Omitted fields keep their current value."""

    coach_validation_only: Optional[bool] = None
    rh_validation_only: Optional[bool] = None


class DashboardInformation(BaseModel):
    enabled: bool = False
    title: str = Field("", max_length=255)
    body: str = Field("", max_length=5000)
