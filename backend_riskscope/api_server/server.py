"""
FastAPI server for influencer risk reports.

POST /reports builds a report (free-report gating per wallet), persists the
subject and report, and returns the report JSON. History, subject admin, and
credit lookups read from the database. Config via env (see config.settings).
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from backend_riskscope import __version__
from backend_riskscope.ai_engine import build_text_generator
from backend_riskscope.analytics.analytics_pipeline import PipelineConfig, build_report, normalize_handle
from backend_riskscope.analytics.models import RiskReport
from backend_riskscope.config.settings import Settings, get_settings
from backend_riskscope.core.exceptions import (
    GenerationCancelledError,
    InsufficientCreditError,
    InvalidSubjectError,
)
from backend_riskscope.database import CreditLedger, ReportStore, SubjectStore, init_db
from backend_riskscope.ingestion.base import (
    BlockchainActivityProvider,
    SocialMetricsProvider,
    TextGenerator,
)
from backend_riskscope.ingestion.bsc_explorer import BscExplorerProvider
from backend_riskscope.ingestion.cache import TTLCache
from backend_riskscope.ingestion.synthetic import SyntheticBlockchainProvider, SyntheticSocialProvider
from backend_riskscope.ingestion.twitter import TwitterMetricsProvider
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Services and dependencies
# -----------------------------------------------------------------------------


@dataclass
class ReportServices:
    """Collaborators for POST /reports; built once per app from Settings."""

    social_provider: SocialMetricsProvider
    blockchain_provider: BlockchainActivityProvider
    text_generator: TextGenerator | None
    config: PipelineConfig


def build_services(settings: Settings) -> ReportServices:
    """Live adapters where credentials exist, synthetic providers otherwise."""
    if settings.has_twitter:
        social: SocialMetricsProvider = TwitterMetricsProvider(
            settings.twitter_bearer_token,
            base_url=settings.twitter_api_url,
            timeout_sec=settings.fetch_timeout_sec,
            cache=TTLCache(settings.cache_ttl_sec),
        )
    else:
        social = SyntheticSocialProvider()
    if settings.bsc_api_key:
        chain: BlockchainActivityProvider = BscExplorerProvider(
            settings.bsc_api_key,
            explorer_url=settings.bsc_explorer_url,
            timeout_sec=settings.fetch_timeout_sec,
            cache=TTLCache(settings.cache_ttl_sec),
        )
    else:
        chain = SyntheticBlockchainProvider()
    services = ReportServices(
        social_provider=social,
        blockchain_provider=chain,
        text_generator=build_text_generator(settings),
        config=PipelineConfig.from_settings(settings),
    )
    logger.info(
        "report_services_built",
        social_provider=type(social).__name__,
        blockchain_provider=type(chain).__name__,
        text_generator=type(services.text_generator).__name__ if services.text_generator else None,
    )
    return services


def get_services(request: Request) -> ReportServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services(get_settings())
        request.app.state.services = services
    return services


def get_report_store() -> ReportStore:
    return ReportStore()


def get_subject_store() -> SubjectStore:
    return SubjectStore()


def get_credit_ledger() -> CreditLedger:
    return CreditLedger()


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class CreateReportRequest(BaseModel):
    """POST /reports body."""

    handle: str = Field(..., min_length=1, max_length=80, description="Influencer handle, with or without @")
    platform: str = Field("x", description="x, instagram, telegram, or other")
    wallet_address: str | None = Field(None, alias="walletAddress", description="Requesting wallet (credit owner)")
    has_paid: bool = Field(False, alias="hasPaid", description="True when the request was paid for")
    address: str | None = Field(None, max_length=64, description="Influencer's on-chain address; derived when omitted")


class CreditStatusResponse(BaseModel):
    address: str
    freeReportUsed: bool


# -----------------------------------------------------------------------------
# Lifespan
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and build report services once at startup."""
    settings = get_settings()
    try:
        init_db()
    except Exception as e:
        logger.warning("database_init_skip", error=str(e))
    app.state.services = build_services(settings)
    logger.info("api_started", version=__version__)
    yield
    logger.info("api_stopped")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="RiskScope API",
    description="Crypto influencer risk reports: social metrics, on-chain behavior, and narrative.",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok", "version": __version__}


@app.post("/reports", status_code=201)
async def create_report(
    body: CreateReportRequest,
    services: ReportServices = Depends(get_services),
    reports: ReportStore = Depends(get_report_store),
    subjects: SubjectStore = Depends(get_subject_store),
    credits: CreditLedger = Depends(get_credit_ledger),
) -> dict[str, Any]:
    """
    Build and store a report. Unpaid requests need a wallet with an unused free
    report (402 otherwise). The free report is reserved before the build and
    given back if the report is not built and stored.
    """
    try:
        handle = normalize_handle(body.handle)
    except InvalidSubjectError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e

    wallet = (body.wallet_address or "").strip()
    if not body.has_paid:
        if not wallet:
            err = InsufficientCreditError("connect a wallet or pay to generate a report")
            raise HTTPException(status_code=402, detail=err.to_dict())
        if not await asyncio.to_thread(credits.reserve_free_report, wallet):
            err = InsufficientCreditError("free report already used for this wallet")
            logger.info("report_request_rejected", subject=handle, reason=err.code)
            raise HTTPException(status_code=402, detail=err.to_dict())

    try:
        report = await _build_and_store(handle, body, services, reports, subjects)
    except BaseException:
        if not body.has_paid:
            await asyncio.shield(asyncio.to_thread(credits.release_free_report, wallet))
        raise
    logger.info("report_created", report_id=report.id, subject=handle, paid=body.has_paid)
    return report.to_dict()


async def _build_and_store(
    handle: str,
    body: CreateReportRequest,
    services: ReportServices,
    reports: ReportStore,
    subjects: SubjectStore,
) -> RiskReport:
    # Store calls are blocking SQLAlchemy calls
    subject = await asyncio.to_thread(subjects.get_or_default, handle)
    try:
        report = await build_report(
            handle,
            body.platform,
            services.social_provider,
            services.blockchain_provider,
            services.text_generator,
            address=body.address,
            subject=subject,
            config=services.config,
        )
    except InvalidSubjectError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e
    except GenerationCancelledError as e:
        raise HTTPException(status_code=504, detail=e.to_dict()) from e

    await asyncio.to_thread(subjects.save, report.subject)
    await asyncio.to_thread(reports.save, report)
    return report


@app.get("/reports")
def list_reports(
    limit: int | None = Query(None, ge=1, le=500),
    reports: ReportStore = Depends(get_report_store),
) -> list[dict[str, Any]]:
    """Newest first; default limit is Settings.history_limit."""
    n = limit if limit is not None else get_settings().history_limit
    return [r.to_dict() for r in reports.list(n)]


@app.get("/reports/{report_id}")
def get_report(report_id: str, reports: ReportStore = Depends(get_report_store)) -> dict[str, Any]:
    report = reports.get(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="report not found")
    return report.to_dict()


@app.delete("/reports/{report_id}")
def delete_report(report_id: str, reports: ReportStore = Depends(get_report_store)) -> dict[str, Any]:
    if not reports.delete(report_id):
        raise HTTPException(status_code=404, detail="report not found")
    return {"id": report_id, "deleted": True}


@app.get("/subjects")
def list_subjects(subjects: SubjectStore = Depends(get_subject_store)) -> list[dict[str, Any]]:
    return [s.to_dict() for s in subjects.list()]


@app.get("/subjects/{handle}/reports")
def list_subject_reports(handle: str, reports: ReportStore = Depends(get_report_store)) -> list[dict[str, Any]]:
    return [r.to_dict() for r in reports.list_by_subject(handle)]


@app.delete("/subjects/{handle}")
def delete_subject(handle: str, subjects: SubjectStore = Depends(get_subject_store)) -> dict[str, Any]:
    if not subjects.delete(handle):
        raise HTTPException(status_code=404, detail="subject not found")
    return {"handle": handle.strip().lower(), "deleted": True}


@app.get("/credits/{address}", response_model=CreditStatusResponse)
def credit_status(address: str, credits: CreditLedger = Depends(get_credit_ledger)) -> dict[str, Any]:
    return credits.status(address)
