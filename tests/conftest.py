"""
Pytest fixtures for RiskScope tests. Uses a temporary SQLite DB, synthetic
providers, and scripted fakes so no test touches the network.
"""

from __future__ import annotations

import pytest

from backend_riskscope.analytics.models import BlockchainActivity, DumpingBehavior, SocialMetrics
from tests.helpers import make_assets


@pytest.fixture
def high_risk_metrics():
    social = SocialMetrics(
        followers=85000,
        real_follower_percentage=72.0,
        engagement_rate=1.8,
        promoted_assets=make_assets(rugpull=6, active=2, declined=2),
    )
    chain = BlockchainActivity(
        address="0xdeadbeef",
        rug_pull_count=6,
        dumping_behavior=DumpingBehavior.HIGH,
        mev_detected=True,
    )
    return social, chain


@pytest.fixture
def low_risk_metrics():
    social = SocialMetrics(
        followers=125000,
        real_follower_percentage=88.0,
        engagement_rate=3.2,
        promoted_assets=make_assets(active=8, declined=2),
    )
    chain = BlockchainActivity(
        address="0xfeedface",
        rug_pull_count=0,
        dumping_behavior=DumpingBehavior.LOW,
        mev_detected=False,
    )
    return social, chain


@pytest.fixture
def riskscope_settings(tmp_path, monkeypatch):
    """
    Settings pointed at a temporary SQLite DB with no API credentials, so
    providers fall back to synthetic data and narratives to templates.
    """
    for name in ("OPENAI_API_KEY", "TWITTER_BEARER_TOKEN", "BSC_API_KEY"):
        monkeypatch.setenv(name, "")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'riskscope.db'}")
    monkeypatch.setenv("RETRY_BACKOFF_SEC", "0")
    monkeypatch.setenv("MAX_STORED_REPORTS", "50")
    monkeypatch.setenv("HISTORY_LIMIT", "10")

    from backend_riskscope.config import get_settings, reset_settings

    reset_settings()
    yield get_settings()
    reset_settings()


@pytest.fixture
def riskscope_db(riskscope_settings):
    """Fresh engine and tables on the temporary DB; engine disposed afterwards."""
    from backend_riskscope.database import init_db, reset_engine_for_test

    reset_engine_for_test()
    init_db()
    yield
    reset_engine_for_test()


@pytest.fixture
def client(riskscope_db):
    """FastAPI TestClient over the temp DB with synthetic providers and no generator."""
    from fastapi.testclient import TestClient

    from backend_riskscope.analytics.analytics_pipeline import PipelineConfig
    from backend_riskscope.api_server.server import ReportServices, app, get_services
    from backend_riskscope.ingestion.synthetic import SyntheticBlockchainProvider, SyntheticSocialProvider

    services = ReportServices(
        social_provider=SyntheticSocialProvider(),
        blockchain_provider=SyntheticBlockchainProvider(),
        text_generator=None,
        config=PipelineConfig(retry_backoff_sec=0.0),
    )
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()
