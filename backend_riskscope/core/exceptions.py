"""
Application-level exceptions.

Only InvalidSubjectError and GenerationCancelledError leave the report pipeline;
UpstreamFetchFailure and NarrativeGenerationFailure are raised by adapters and
absorbed by the pipeline with synthetic or templated substitutes.
Each exception carries a stable code for API error bodies.
"""

from __future__ import annotations


class RiskScopeError(Exception):
    """Base class for RiskScope domain errors."""

    code = "riskscope_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class InvalidSubjectError(RiskScopeError):
    """Handle is empty or unparseable after normalization. Fatal."""

    code = "invalid_subject"


class UpstreamFetchFailure(RiskScopeError):
    """Social or blockchain provider failed, timed out, or returned unusable data."""

    code = "upstream_fetch_failure"

    def __init__(self, source: str, message: str = "") -> None:
        super().__init__(f"{source}: {message}" if message else source)
        self.source = source


class NarrativeGenerationFailure(RiskScopeError):
    """Text generator failed, timed out, or returned text without both sections."""

    code = "narrative_generation_failure"


class GenerationCancelledError(RiskScopeError):
    """Caller cancelled report generation (event or timeout) before assembly. Fatal."""

    code = "generation_cancelled"

    def __init__(self, message: str = "generation cancelled") -> None:
        super().__init__(message)


class InsufficientCreditError(RiskScopeError):
    """Wallet has neither paid nor an unused free report."""

    code = "insufficient_credit"
