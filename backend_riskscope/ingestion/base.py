"""
Interfaces for the report pipeline's external collaborators.

Providers return normalized-shape dataclasses or raise (any exception counts
as a failed fetch; adapters raise UpstreamFetchFailure). The text generator is
a single-turn completion capability; absence is modeled as None by callers.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from backend_riskscope.analytics.models import (
    BlockchainActivity,
    Platform,
    RiskReport,
    SocialMetrics,
)


@runtime_checkable
class SocialMetricsProvider(Protocol):
    async def fetch(self, handle: str, platform: Platform) -> SocialMetrics: ...


@runtime_checkable
class BlockchainActivityProvider(Protocol):
    async def fetch(self, address: str) -> BlockchainActivity: ...


@runtime_checkable
class TextGenerator(Protocol):
    async def complete(self, prompt: str) -> str: ...


@runtime_checkable
class ReportStore(Protocol):
    """Caller-owned persistence; the pipeline never calls it."""

    def save(self, report: RiskReport) -> None: ...

    def list(self, limit: int | None = None) -> Sequence[RiskReport]: ...
