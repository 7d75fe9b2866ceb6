"""
ExtractionLog: one row per workflow invocation, describing its input.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text

from docflow.db.models.base import Base, generate_uuid, utcnow


class ExtractionLog(Base):
    __tablename__ = "extraction_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=True, index=True)
    extraction_type_id = Column(String(36), nullable=True)
    transformation_type_id = Column(String(36), nullable=True)
    processing_mode = Column(String(20), nullable=False, default="extraction")

    pdf_filename = Column(String(500), nullable=True)
    pdf_pages = Column(Integer, nullable=True)
    extracted_data = Column(Text, nullable=True)

    # ── Multi page-group documents ────────────
    session_id = Column(String(64), nullable=True, index=True)
    group_order = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ExtractionLog {self.id} mode={self.processing_mode} pdf={self.pdf_filename}>"
