from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    route: str
    title: str
    message: Optional[str] = None
    metadata: Optional[dict] = Field(default=None, validation_alias="metadata_json")
    read: bool
    created_at: datetime
    read_at: Optional[datetime] = None


class UnreadCount(BaseModel):
    count: int


class MarkReadRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)
    route: Optional[str] = None


class MarkReadResult(BaseModel):
    updated: int
