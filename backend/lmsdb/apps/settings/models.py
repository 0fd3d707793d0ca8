from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, JSON, String

from lmsdb.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AppSetting(Base):
    """Runtime business switches editable by RH (key -> JSON value)."""

    __tablename__ = "app_settings"

    key = Column(String(128), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    updated_by_user_id = Column(String(36), nullable=True)

    def __repr__(self) -> str:
        return f"<AppSetting key={self.key} value={self.value!r}>"
