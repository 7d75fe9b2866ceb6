"""
PageGroupData: fields extracted from one page group of a multi-group document.

Later groups of the same session see earlier groups' fields in their
workflow context as `group<N>_<field>`.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from docflow.db.models.base import Base, JSONType, generate_uuid, utcnow


class PageGroupData(Base):
    __tablename__ = "page_group_data"
    __table_args__ = (UniqueConstraint("session_id", "group_order", name="uq_page_group_data_group"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(String(64), nullable=False, index=True)
    group_order = Column(Integer, nullable=False)
    extracted_fields = Column(JSONType, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<PageGroupData session={self.session_id} group={self.group_order}>"
