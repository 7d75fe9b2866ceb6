"""
EmailProviderConfig: credentials for the outbound email provider.

Office 365 uses tenant_id/client_id/client_secret (client credentials);
Gmail uses client_id/client_secret/refresh_token.  The newest active row
wins.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docflow.db.models.base import Base, generate_uuid, utcnow


class EmailProviderConfig(Base):
    __tablename__ = "email_provider_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    provider: Mapped[str] = mapped_column(
        String(20), nullable=False, default="office365"
    )  # office365 | gmail
    default_send_from_email: Mapped[str] = mapped_column(String(320), nullable=False, default="")

    tenant_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_secret: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<EmailProviderConfig {self.provider} from={self.default_send_from_email}>"
