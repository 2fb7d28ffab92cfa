"""
SQLAlchemy tables: stored reports, subject profiles, and free-report credit usage.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, Column, Integer, String, Text

from backend_riskscope.database.connection import Base


class StoredReport(Base):
    """
    One assembled report. payload holds RiskReport.to_dict() as JSON; the other
    columns are copies used for ordering and lookups.
    """

    __tablename__ = "risk_reports"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(160), unique=True, nullable=False, index=True)
    subject_handle = Column(String(64), nullable=False, index=True)
    risk_score = Column(Integer, nullable=False)
    created_at = Column(Integer, nullable=False, index=True)  # epoch ms
    payload = Column(Text, nullable=False)


class SubjectProfile(Base):
    __tablename__ = "subjects"

    handle = Column(String(64), primary_key=True)
    display_name = Column(String(256), nullable=True)
    avatar_url = Column(String(512), nullable=True)
    updated_at = Column(Integer, nullable=True)  # epoch ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "handle": self.handle,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
        }


class CreditUsage(Base):
    """Free-report flag per wallet address (lower-cased)."""

    __tablename__ = "credit_usage"

    address = Column(String(64), primary_key=True)
    free_report_used = Column(Boolean, nullable=False, default=False)
    used_at = Column(Integer, nullable=True)  # epoch ms
