"""
Persistence layer: report history, subject profiles, free-report credits.

SQLAlchemy over DATABASE_URL (SQLite by default); swap the URL for PostgreSQL.
"""

from backend_riskscope.database.connection import init_db, reset_engine_for_test, session_scope
from backend_riskscope.database.repositories import CreditLedger, ReportStore, SubjectStore

__all__ = [
    "init_db",
    "reset_engine_for_test",
    "session_scope",
    "CreditLedger",
    "ReportStore",
    "SubjectStore",
]
