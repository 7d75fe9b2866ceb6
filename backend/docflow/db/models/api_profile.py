"""
ApiProfile: base URL and bearer token for api_endpoint steps.

`source_type` is `main` for the single primary profile and `secondary`
for additional APIs addressed by id.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docflow.db.models.base import Base, generate_uuid, utcnow


class ApiProfile(Base):
    __tablename__ = "api_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    source_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="main", index=True
    )  # main | secondary
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_url: Mapped[str] = mapped_column(Text, nullable=False)
    auth_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<ApiProfile {self.source_type}:{self.name} active={self.is_active}>"
