"""
Structured logging for Backend RiskScope.

JSON logs with timestamp, subject, event_type. Use get_logger() in all modules.
"""

from backend_riskscope.riskscope_logging.logger import bind_subject, get_logger

__all__ = ["bind_subject", "get_logger"]
