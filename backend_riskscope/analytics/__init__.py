"""
RiskScope analytics: normalize metrics, score risk, write the narrative, and
assemble the report.

Modules: models, normalizer, risk_engine, narrative, analytics_pipeline.
"""

from backend_riskscope.analytics.normalizer import normalize
from backend_riskscope.analytics.risk_engine import calculate_risk_score, risk_band
from backend_riskscope.analytics.narrative import fallback_narrative, synthesize
from backend_riskscope.analytics.analytics_pipeline import PipelineConfig, ReportStage, build_report

__all__ = [
    "normalize",
    "calculate_risk_score",
    "risk_band",
    "fallback_narrative",
    "synthesize",
    "PipelineConfig",
    "ReportStage",
    "build_report",
]
