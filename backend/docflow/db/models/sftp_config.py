"""
SftpConfig: the SFTP target sftp_upload steps deliver to.

Per-type remote folders are optional; unset ones fall back to the
SFTP_DEFAULT_*_PATH settings.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docflow.db.models.base import Base, generate_uuid, utcnow


class SftpConfig(Base):
    __tablename__ = "sftp_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    host: Mapped[str] = mapped_column(String(255), nullable=False)
    port: Mapped[int] = mapped_column(Integer, nullable=False, default=22)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False, default="")

    pdf_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    json_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    xml_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    csv_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<SftpConfig {self.username}@{self.host}:{self.port}>"
