"""
Report history, subject profiles, and free-report credits on top of SQLAlchemy.

ReportStore keeps at most max_stored_reports rows (oldest trimmed on save) and
lists newest first. All stores open a short session per call.
"""

from __future__ import annotations

import json
import time
from typing import Any

from sqlalchemy.exc import IntegrityError

from backend_riskscope.analytics.analytics_pipeline import default_subject
from backend_riskscope.analytics.models import RiskReport, SubjectData
from backend_riskscope.config.settings import get_settings
from backend_riskscope.database.connection import session_scope
from backend_riskscope.database.models import CreditUsage, StoredReport, SubjectProfile
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _row_to_report(row: StoredReport) -> RiskReport:
    return RiskReport.from_dict(json.loads(row.payload))


class ReportStore:
    """Caller-owned report history (save / list / get / delete)."""

    def __init__(self, max_stored_reports: int | None = None) -> None:
        limit = max_stored_reports if max_stored_reports is not None else get_settings().max_stored_reports
        self.max_stored_reports = max(1, int(limit))

    def save(self, report: RiskReport) -> None:
        """Insert or replace by id, then drop everything beyond the newest max_stored_reports."""
        payload = json.dumps(report.to_dict())
        with session_scope() as session:
            row = session.query(StoredReport).filter(StoredReport.id == report.id).first()
            if row is None:
                row = StoredReport(id=report.id)
                session.add(row)
            row.subject_handle = report.subject.handle
            row.risk_score = report.risk_score
            row.created_at = report.created_at
            row.payload = payload
            session.flush()

            stale = (
                session.query(StoredReport)
                .order_by(StoredReport.created_at.desc(), StoredReport.pk.desc())
                .offset(self.max_stored_reports)
                .all()
            )
            for old in stale:
                session.delete(old)
        logger.info(
            "report_saved",
            report_id=report.id,
            subject=report.subject.handle,
            trimmed=len(stale),
        )

    def list(self, limit: int | None = None) -> list[RiskReport]:
        """Newest first; limit None returns every stored report."""
        with session_scope() as session:
            query = session.query(StoredReport).order_by(
                StoredReport.created_at.desc(), StoredReport.pk.desc()
            )
            if limit is not None:
                query = query.limit(max(0, int(limit)))
            return [_row_to_report(r) for r in query.all()]

    def get(self, report_id: str) -> RiskReport | None:
        with session_scope() as session:
            row = session.query(StoredReport).filter(StoredReport.id == report_id).first()
            return _row_to_report(row) if row else None

    def list_by_subject(self, handle: str) -> list[RiskReport]:
        handle = (handle or "").strip().lower()
        with session_scope() as session:
            rows = (
                session.query(StoredReport)
                .filter(StoredReport.subject_handle == handle)
                .order_by(StoredReport.created_at.desc(), StoredReport.pk.desc())
                .all()
            )
            return [_row_to_report(r) for r in rows]

    def delete(self, report_id: str) -> bool:
        """True if a row was removed."""
        with session_scope() as session:
            deleted = session.query(StoredReport).filter(StoredReport.id == report_id).delete()
        if deleted:
            logger.info("report_deleted", report_id=report_id)
        return bool(deleted)


class SubjectStore:
    """Display identity per analyzed handle."""

    def get(self, handle: str) -> SubjectData | None:
        with session_scope() as session:
            row = session.get(SubjectProfile, (handle or "").strip().lower())
            return SubjectData.from_dict(row.to_dict()) if row else None

    def save(self, subject: SubjectData) -> None:
        handle = subject.handle.strip().lower()
        with session_scope() as session:
            row = session.get(SubjectProfile, handle)
            if row is None:
                row = SubjectProfile(handle=handle)
                session.add(row)
            row.display_name = subject.display_name
            row.avatar_url = subject.avatar_url
            row.updated_at = _now_ms()
        logger.debug("subject_saved", subject=handle)

    def list(self) -> list[SubjectData]:
        with session_scope() as session:
            rows = session.query(SubjectProfile).order_by(SubjectProfile.handle).all()
            return [SubjectData.from_dict(r.to_dict()) for r in rows]

    def delete(self, handle: str) -> bool:
        handle = (handle or "").strip().lower()
        with session_scope() as session:
            deleted = session.query(SubjectProfile).filter(SubjectProfile.handle == handle).delete()
        if deleted:
            logger.info("subject_deleted", subject=handle)
        return bool(deleted)

    def get_or_default(self, handle: str) -> SubjectData:
        """Stored profile, else the default display name and avatar for handle."""
        return self.get(handle) or default_subject(handle)

    @staticmethod
    def default_subject(handle: str) -> SubjectData:
        return default_subject(handle)


class CreditLedger:
    """Tracks whether a wallet has spent its one free report."""

    def has_used_free_report(self, address: str) -> bool:
        key = (address or "").strip().lower()
        if not key:
            return False
        with session_scope() as session:
            row = session.get(CreditUsage, key)
            return bool(row and row.free_report_used)

    def mark_free_report_used(self, address: str) -> None:
        key = (address or "").strip().lower()
        if not key:
            raise ValueError("address must be non-empty")
        with session_scope() as session:
            row = session.get(CreditUsage, key)
            if row is None:
                row = CreditUsage(address=key)
                session.add(row)
            row.free_report_used = True
            row.used_at = _now_ms()
        logger.info("free_report_marked_used", address=key)

    def reserve_free_report(self, address: str) -> bool:
        """
        Atomically claim the free report for address. True if this call claimed
        it, False if it was already used or claimed by a concurrent request.
        """
        key = (address or "").strip().lower()
        if not key:
            raise ValueError("address must be non-empty")
        now = _now_ms()
        with session_scope() as session:
            claimed = (
                session.query(CreditUsage)
                .filter(CreditUsage.address == key, CreditUsage.free_report_used.is_(False))
                .update({"free_report_used": True, "used_at": now}, synchronize_session=False)
            )
            exists = claimed or session.get(CreditUsage, key) is not None
        if not exists:
            try:
                with session_scope() as session:
                    session.add(CreditUsage(address=key, free_report_used=True, used_at=now))
                claimed = 1
            except IntegrityError:
                claimed = 0
        logger.info("free_report_reserve", address=key, claimed=bool(claimed))
        return bool(claimed)

    def release_free_report(self, address: str) -> None:
        """Give back a reservation whose report was not delivered."""
        key = (address or "").strip().lower()
        if not key:
            return
        with session_scope() as session:
            session.query(CreditUsage).filter(CreditUsage.address == key).update(
                {"free_report_used": False, "used_at": None}, synchronize_session=False
            )
        logger.info("free_report_released", address=key)

    def status(self, address: str) -> dict[str, Any]:
        return {"address": (address or "").strip().lower(), "freeReportUsed": self.has_used_free_report(address)}
