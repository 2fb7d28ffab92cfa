"""
Report pipeline: fetch -> normalize -> score -> synthesize -> assemble.

Single entrypoint for the API and CLI. Social and blockchain fetches run
concurrently with bounded retries; a provider that still fails is replaced by
deterministic synthetic data, so the only errors that escape are
InvalidSubjectError (bad handle) and GenerationCancelledError (cancel event or
timeout before assembly). The pipeline never persists; callers own storage.
"""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from backend_riskscope.analytics.models import (
    BlockchainActivity,
    Platform,
    RiskReport,
    SubjectData,
)
from backend_riskscope.analytics.narrative import fallback_narrative, synthesize
from backend_riskscope.analytics.normalizer import normalize
from backend_riskscope.analytics.risk_engine import calculate_risk_score, risk_band, score_breakdown
from backend_riskscope.config.settings import Settings, get_settings
from backend_riskscope.core.exceptions import (
    GenerationCancelledError,
    InvalidSubjectError,
    UpstreamFetchFailure,
)
from backend_riskscope.core.retry import DEFAULT_ATTEMPTS, DEFAULT_BACKOFF_SEC, call_with_retries
from backend_riskscope.ingestion.base import (
    BlockchainActivityProvider,
    SocialMetricsProvider,
    TextGenerator,
)
from backend_riskscope.ingestion.synthetic import (
    derive_address,
    synthetic_blockchain_activity,
    synthetic_social_metrics,
)
from backend_riskscope.riskscope_logging import bind_subject, get_logger

logger = get_logger(__name__)

DEFAULT_FETCH_TIMEOUT_SEC = 10.0
DEFAULT_NARRATIVE_TIMEOUT_SEC = 30.0
# Share of the report deadline kept back for assembly, capped at this many seconds
DEADLINE_MARGIN_FRACTION = 0.1
MAX_DEADLINE_MARGIN_SEC = 1.0
MAX_HANDLE_LENGTH = 64
AVATAR_URL_TEMPLATE = "https://placehold.co/100x100/6D28D9/FFFFFF/?text={initials}"

_HANDLE_RE = re.compile(r"^[a-z0-9_.-]+$")


class ReportStage(str, Enum):
    FETCHING_SOCIAL = "fetching_social"
    FETCHING_BLOCKCHAIN = "fetching_blockchain"
    NORMALIZING = "normalizing"
    SCORING = "scoring"
    SYNTHESIZING = "synthesizing"
    ASSEMBLED = "assembled"


@dataclass
class PipelineConfig:
    """
    Retry and timeout knobs for one report build.

    fetch_timeout_sec / narrative_timeout_sec bound each attempt.
    retry_attempts / retry_backoff_sec apply to fetches and the narrative alike.
    report_timeout_sec: overall deadline; None means no deadline.
    """

    fetch_timeout_sec: float = DEFAULT_FETCH_TIMEOUT_SEC
    narrative_timeout_sec: float = DEFAULT_NARRATIVE_TIMEOUT_SEC
    retry_attempts: int = DEFAULT_ATTEMPTS
    retry_backoff_sec: float = DEFAULT_BACKOFF_SEC
    report_timeout_sec: float | None = None

    def __post_init__(self) -> None:
        self.fetch_timeout_sec = max(0.01, float(self.fetch_timeout_sec))
        self.narrative_timeout_sec = max(0.01, float(self.narrative_timeout_sec))
        self.retry_attempts = max(1, int(self.retry_attempts))
        self.retry_backoff_sec = max(0.0, float(self.retry_backoff_sec))
        if self.report_timeout_sec is not None:
            self.report_timeout_sec = max(0.01, float(self.report_timeout_sec))

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PipelineConfig":
        s = settings or get_settings()
        return cls(
            fetch_timeout_sec=s.fetch_timeout_sec,
            narrative_timeout_sec=s.narrative_timeout_sec,
            retry_attempts=s.retry_attempts,
            retry_backoff_sec=s.retry_backoff_sec,
            report_timeout_sec=s.report_timeout_sec,
        )


def normalize_handle(handle: Any) -> str:
    """
    Trim, strip one leading '@', lowercase. Raises InvalidSubjectError when the
    result is empty, longer than 64 chars, or has characters outside [a-z0-9_.-].
    """
    h = str(handle or "").strip()
    if h.startswith("@"):
        h = h[1:]
    h = h.strip().lower()
    if not h:
        raise InvalidSubjectError("handle is empty")
    if len(h) > MAX_HANDLE_LENGTH:
        raise InvalidSubjectError(f"handle longer than {MAX_HANDLE_LENGTH} characters")
    if not _HANDLE_RE.match(h):
        raise InvalidSubjectError(f"handle contains invalid characters: {h!r}")
    return h


def default_subject(handle: str) -> SubjectData:
    """Display name is the capitalized handle; avatar is a placeholder with its first two letters."""
    return SubjectData(
        handle=handle,
        display_name=handle[:1].upper() + handle[1:],
        avatar_url=AVATAR_URL_TEMPLATE.format(initials=handle[:2].upper()),
    )


def _now_ms() -> int:
    return int(time.time() * 1000)


async def _fetch_social(
    handle: str,
    platform: Platform,
    provider: SocialMetricsProvider,
    config: PipelineConfig,
) -> Any:
    try:
        return await call_with_retries(
            lambda: provider.fetch(handle, platform),
            operation="social_fetch",
            attempts=config.retry_attempts,
            backoff_sec=config.retry_backoff_sec,
            timeout_sec=config.fetch_timeout_sec,
            subject=handle,
        )
    except Exception as e:
        failure = e if isinstance(e, UpstreamFetchFailure) else UpstreamFetchFailure("social", repr(e))
        logger.warning("social_fetch_fallback_synthetic", subject=handle, error=failure.message)
        return synthetic_social_metrics(handle)


async def _fetch_blockchain(
    handle: str,
    address: str,
    provider: BlockchainActivityProvider,
    config: PipelineConfig,
) -> Any:
    try:
        return await call_with_retries(
            lambda: provider.fetch(address),
            operation="blockchain_fetch",
            attempts=config.retry_attempts,
            backoff_sec=config.retry_backoff_sec,
            timeout_sec=config.fetch_timeout_sec,
            subject=handle,
            address=address,
        )
    except Exception as e:
        failure = e if isinstance(e, UpstreamFetchFailure) else UpstreamFetchFailure("blockchain", repr(e))
        logger.warning(
            "blockchain_fetch_fallback_synthetic",
            subject=handle,
            address=address,
            error=failure.message,
        )
        return synthetic_blockchain_activity(address)


async def _run_stages(
    handle: str,
    platform: Platform,
    address: str,
    subject: SubjectData,
    social_provider: SocialMetricsProvider,
    blockchain_provider: BlockchainActivityProvider,
    text_generator: TextGenerator | None,
    config: PipelineConfig,
    enter: Callable[[ReportStage], None],
    clock: Callable[[], int],
    narrative_deadline: float | None = None,
) -> RiskReport:
    enter(ReportStage.FETCHING_SOCIAL)
    enter(ReportStage.FETCHING_BLOCKCHAIN)
    raw_social, raw_chain = await asyncio.gather(
        _fetch_social(handle, platform, social_provider, config),
        _fetch_blockchain(handle, address, blockchain_provider, config),
    )

    enter(ReportStage.NORMALIZING)
    social, chain = normalize(raw_social, raw_chain)
    if chain.address is None:
        chain = BlockchainActivity(
            address=address,
            rug_pull_count=chain.rug_pull_count,
            dumping_behavior=chain.dumping_behavior,
            mev_detected=chain.mev_detected,
        )

    enter(ReportStage.SCORING)
    score = calculate_risk_score(social, chain)
    breakdown = score_breakdown(social, chain)

    enter(ReportStage.SYNTHESIZING)
    narrative_call = synthesize(
        score,
        handle,
        platform,
        social,
        chain,
        text_generator,
        attempts=config.retry_attempts,
        backoff_sec=config.retry_backoff_sec,
        timeout_sec=config.narrative_timeout_sec,
    )
    if narrative_deadline is None:
        narrative = await narrative_call
    else:
        budget = narrative_deadline - asyncio.get_running_loop().time()
        try:
            narrative = await asyncio.wait_for(narrative_call, timeout=max(0.0, budget))
        except asyncio.TimeoutError:
            logger.warning(
                "narrative_deadline_fallback_template",
                subject=handle,
                budget_sec=round(budget, 3),
            )
            narrative = fallback_narrative(score, handle, platform, social, chain)

    created_at = int(clock())
    report = RiskReport(
        id=f"{handle}-{created_at}-{uuid.uuid4().hex[:8]}",
        subject=subject,
        social_metrics=social,
        blockchain_activity=chain,
        risk_score=score,
        summary=narrative.summary,
        detailed_analysis=narrative.detailed_analysis,
        created_at=created_at,
        platform=platform,
        narrative_source=narrative.source,
        score_breakdown=breakdown,
    )
    return report


async def build_report(
    handle: str,
    platform: Platform | str,
    social_provider: SocialMetricsProvider,
    blockchain_provider: BlockchainActivityProvider,
    text_generator: TextGenerator | None = None,
    *,
    address: str | None = None,
    subject: SubjectData | None = None,
    config: PipelineConfig | None = None,
    cancel_event: asyncio.Event | None = None,
    timeout_sec: float | None = None,
    on_stage: Callable[[ReportStage], None] | None = None,
    clock: Callable[[], int] | None = None,
) -> RiskReport:
    """
    Build one RiskReport for handle on platform.

    address: wallet to inspect; derived from the handle when omitted.
    subject: display identity; default_subject(handle) when omitted.
    cancel_event / timeout_sec (falls back to config.report_timeout_sec):
    either one firing before assembly cancels all pending work and raises
    GenerationCancelledError. With a deadline, SYNTHESIZING stops a little before
    it and uses the templated narrative, so a slow text generator alone never
    cancels the report. on_stage is called with each ReportStage in order.
    clock returns epoch milliseconds.
    """
    normalized = normalize_handle(handle)
    platform = Platform.parse(platform)
    config = config or PipelineConfig()
    clock = clock or _now_ms
    deadline = timeout_sec if timeout_sec is not None else config.report_timeout_sec
    address = (address or "").strip() or derive_address(normalized)
    if subject is None:
        subject = default_subject(normalized)
    elif subject.handle != normalized:
        subject = SubjectData(handle=normalized, display_name=subject.display_name, avatar_url=subject.avatar_url)

    log = bind_subject(normalized, __name__)

    def enter(stage: ReportStage) -> None:
        log.info("report_stage", stage=stage.value)
        if on_stage is not None:
            on_stage(stage)

    if cancel_event is not None and cancel_event.is_set():
        log.info("report_cancelled", reason="cancelled_before_start")
        raise GenerationCancelledError()

    log.info("report_pipeline_start", platform=platform.value, address=address)
    narrative_deadline = None
    if deadline is not None:
        margin = min(MAX_DEADLINE_MARGIN_SEC, deadline * DEADLINE_MARGIN_FRACTION)
        narrative_deadline = asyncio.get_running_loop().time() + deadline - margin
    work = asyncio.ensure_future(
        _run_stages(
            normalized,
            platform,
            address,
            subject,
            social_provider,
            blockchain_provider,
            text_generator,
            config,
            enter,
            clock,
            narrative_deadline,
        )
    )
    waiters: set[asyncio.Future[Any]] = {work}
    cancel_waiter: asyncio.Future[Any] | None = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=deadline, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        if cancel_waiter is not None:
            cancel_waiter.cancel()
        raise
    finally:
        if cancel_waiter is not None and not cancel_waiter.done():
            cancel_waiter.cancel()

    if work not in done:
        reason = "cancel_event" if cancel_waiter is not None and cancel_waiter in done else "timeout"
        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        log.warning("report_cancelled", reason=reason, timeout_sec=deadline)
        raise GenerationCancelledError(f"generation cancelled ({reason})")

    report = work.result()
    enter(ReportStage.ASSEMBLED)
    log.info(
        "report_assembled",
        report_id=report.id,
        risk_score=report.risk_score,
        risk_band=risk_band(report.risk_score),
        narrative_source=report.narrative_source.value,
    )
    return report


def run_report(handle: str, platform: Platform | str = Platform.X, **kwargs: Any) -> RiskReport:
    """Synchronous wrapper for scripts: asyncio.run(build_report(...))."""
    return asyncio.run(build_report(handle, platform, **kwargs))


__all__ = [
    "PipelineConfig",
    "ReportStage",
    "build_report",
    "default_subject",
    "normalize_handle",
    "run_report",
]
