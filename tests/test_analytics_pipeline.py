"""
Tests for the report pipeline (analytics_pipeline.build_report): handle
validation, stage order, provider fallback, cancellation, and assembly.
"""

from __future__ import annotations

import asyncio

import pytest

from backend_riskscope.analytics.analytics_pipeline import (
    PipelineConfig,
    ReportStage,
    build_report,
    default_subject,
    normalize_handle,
)
from backend_riskscope.analytics.models import NarrativeSource, Platform, SubjectData
from backend_riskscope.analytics.narrative import fallback_narrative
from backend_riskscope.config.settings import Settings
from backend_riskscope.core.exceptions import (
    GenerationCancelledError,
    InvalidSubjectError,
    UpstreamFetchFailure,
)
from backend_riskscope.ingestion.synthetic import (
    derive_address,
    synthetic_blockchain_activity,
    synthetic_social_metrics,
)
from tests.helpers import (
    GOOD_COMPLETION,
    FakeBlockchainProvider,
    FakeSocialProvider,
    ScriptedTextGenerator,
)

FAST = PipelineConfig(retry_attempts=2, retry_backoff_sec=0.0, fetch_timeout_sec=1.0, narrative_timeout_sec=1.0)


# --- handle normalization ---


@pytest.mark.parametrize(
    "raw,expected",
    [("@CryptoKing", "cryptoking"), ("  alice_01 ", "alice_01"), ("@@x", None), ("bob.eth", "bob.eth")],
)
def test_normalize_handle(raw, expected):
    if expected is None:
        with pytest.raises(InvalidSubjectError):
            normalize_handle(raw)
    else:
        assert normalize_handle(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "@", "bad handle", "emoji🚀", "a" * 65, None])
def test_invalid_handles_raise(raw):
    with pytest.raises(InvalidSubjectError):
        normalize_handle(raw)


def test_default_subject():
    subject = default_subject("cryptoking")
    assert subject.display_name == "Cryptoking"
    assert subject.avatar_url.endswith("?text=CR")


def test_pipeline_config_from_settings():
    config = PipelineConfig.from_settings(
        Settings(fetch_timeout_sec=3, retry_attempts=5, retry_backoff_sec=0.25, report_timeout_sec=45)
    )
    assert config.fetch_timeout_sec == 3
    assert config.retry_attempts == 5
    assert config.retry_backoff_sec == 0.25
    assert config.report_timeout_sec == 45


def test_pipeline_config_clamps():
    config = PipelineConfig(retry_attempts=0, retry_backoff_sec=-1)
    assert config.retry_attempts == 1
    assert config.retry_backoff_sec == 0.0


# --- build_report ---


@pytest.mark.asyncio
async def test_invalid_handle_fails_before_fetching():
    social, chain = FakeSocialProvider(), FakeBlockchainProvider()
    with pytest.raises(InvalidSubjectError):
        await build_report("  @ ", Platform.X, social, chain, config=FAST)
    assert social.calls == [] and chain.calls == []


@pytest.mark.asyncio
async def test_report_assembled_with_stages_in_order():
    stages: list[ReportStage] = []
    report = await build_report(
        "@Alice",
        "twitter",
        FakeSocialProvider(),
        FakeBlockchainProvider(),
        config=FAST,
        on_stage=stages.append,
        clock=lambda: 1_700_000_000_000,
    )
    assert stages == list(ReportStage)
    assert report.subject.handle == "alice"
    assert report.platform is Platform.X
    assert report.created_at == 1_700_000_000_000
    assert report.id.startswith("alice-1700000000000-")
    assert len(report.id.rsplit("-", 1)[1]) == 8
    assert report.risk_score == 20
    assert report.narrative_source is NarrativeSource.TEMPLATE
    assert "high level of trustworthiness" in report.summary
    assert report.score_breakdown["raw"] == pytest.approx(19.6)


@pytest.mark.asyncio
async def test_report_ids_are_unique():
    social, chain = FakeSocialProvider(), FakeBlockchainProvider()
    a = await build_report("alice", Platform.X, social, chain, config=FAST, clock=lambda: 1)
    b = await build_report("alice", Platform.X, social, chain, config=FAST, clock=lambda: 1)
    assert a.id != b.id


@pytest.mark.asyncio
async def test_address_defaults_to_derived_from_handle():
    chain = FakeBlockchainProvider()
    await build_report("alice", Platform.X, FakeSocialProvider(), chain, config=FAST)
    assert chain.calls == [derive_address("alice")]

    chain = FakeBlockchainProvider()
    await build_report("alice", Platform.X, FakeSocialProvider(), chain, address="0xCAFE", config=FAST)
    assert chain.calls == ["0xCAFE"]


@pytest.mark.asyncio
async def test_caller_subject_is_kept():
    subject = SubjectData(handle="alice", display_name="Alice W.", avatar_url="https://img.test/a.png")
    report = await build_report(
        "alice", Platform.X, FakeSocialProvider(), FakeBlockchainProvider(), subject=subject, config=FAST
    )
    assert report.subject == subject


@pytest.mark.asyncio
async def test_both_providers_failing_still_yields_synthetic_report():
    social = FakeSocialProvider(error=UpstreamFetchFailure("social", "down"))
    chain = FakeBlockchainProvider(error=RuntimeError("boom"))
    report = await build_report("cryptoking", Platform.X, social, chain, config=FAST)

    address = derive_address("cryptoking")
    assert report.social_metrics == synthetic_social_metrics("cryptoking")
    assert report.blockchain_activity == synthetic_blockchain_activity(address)
    assert 1 <= report.risk_score <= 99
    assert len(social.calls) == FAST.retry_attempts
    assert len(chain.calls) == FAST.retry_attempts
    assert report.summary and report.detailed_analysis


@pytest.mark.asyncio
async def test_synthetic_fallback_is_deterministic():
    social = FakeSocialProvider(error=RuntimeError("x"))
    chain = FakeBlockchainProvider(error=RuntimeError("y"))
    a = await build_report("dora", Platform.X, social, chain, config=FAST, clock=lambda: 5)
    b = await build_report("dora", Platform.X, social, chain, config=FAST, clock=lambda: 5)
    assert a.risk_score == b.risk_score
    assert a.summary == b.summary
    assert a.social_metrics == b.social_metrics


@pytest.mark.asyncio
async def test_fetch_timeout_falls_back_to_synthetic():
    config = PipelineConfig(retry_attempts=1, retry_backoff_sec=0.0, fetch_timeout_sec=0.05)
    social = FakeSocialProvider(delay=2.0)
    report = await build_report("eve", Platform.X, social, FakeBlockchainProvider(), config=config)
    assert report.social_metrics == synthetic_social_metrics("eve")


@pytest.mark.asyncio
async def test_raw_provider_payloads_are_normalized():
    social = FakeSocialProvider(metrics={"followers": "900", "realFollowerPercentage": 250, "engagementRate": -1})
    chain = FakeBlockchainProvider(activity={"rugPullCount": 2, "dumpingBehavior": "medium"})
    report = await build_report("frank", Platform.X, social, chain, address="0xF00", config=FAST)
    assert report.social_metrics.followers == 900
    assert report.social_metrics.real_follower_percentage == 100.0
    assert report.social_metrics.engagement_rate == 0.0
    assert report.blockchain_activity.address == "0xF00"


@pytest.mark.asyncio
async def test_generator_narrative_used_when_available():
    gen = ScriptedTextGenerator(GOOD_COMPLETION)
    report = await build_report(
        "alice", Platform.X, FakeSocialProvider(), FakeBlockchainProvider(), gen, config=FAST
    )
    assert report.narrative_source is NarrativeSource.GENERATED
    assert report.summary.startswith("Alice looks mostly reliable")


@pytest.mark.asyncio
async def test_generator_failure_uses_template():
    gen = ScriptedTextGenerator(RuntimeError("down"))
    report = await build_report(
        "alice", Platform.X, FakeSocialProvider(), FakeBlockchainProvider(), gen, config=FAST
    )
    expected = fallback_narrative(
        report.risk_score, "alice", Platform.X, report.social_metrics, report.blockchain_activity
    )
    assert report.summary == expected.summary
    assert report.detailed_analysis == expected.detailed_analysis
    assert len(gen.prompts) == FAST.retry_attempts


# --- cancellation ---


@pytest.mark.asyncio
async def test_cancel_event_already_set():
    event = asyncio.Event()
    event.set()
    social = FakeSocialProvider()
    with pytest.raises(GenerationCancelledError):
        await build_report("alice", Platform.X, social, FakeBlockchainProvider(), cancel_event=event)
    assert social.calls == []


@pytest.mark.asyncio
async def test_cancel_event_during_fetch_stops_work():
    event = asyncio.Event()
    stages: list[ReportStage] = []
    social = FakeSocialProvider(delay=5.0)

    async def cancel_soon():
        await asyncio.sleep(0.05)
        event.set()

    canceller = asyncio.ensure_future(cancel_soon())
    with pytest.raises(GenerationCancelledError):
        await build_report(
            "alice",
            Platform.X,
            social,
            FakeBlockchainProvider(),
            config=PipelineConfig(fetch_timeout_sec=10.0),
            cancel_event=event,
            on_stage=stages.append,
        )
    await canceller
    assert ReportStage.ASSEMBLED not in stages
    assert ReportStage.SCORING not in stages


@pytest.mark.asyncio
async def test_overall_timeout_cancels():
    social = FakeSocialProvider(delay=5.0)
    with pytest.raises(GenerationCancelledError):
        await build_report(
            "alice",
            Platform.X,
            social,
            FakeBlockchainProvider(),
            config=PipelineConfig(fetch_timeout_sec=10.0),
            timeout_sec=0.05,
        )


class HangingGenerator:
    def __init__(self) -> None:
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        await asyncio.sleep(3600)
        return GOOD_COMPLETION


def _scaled_default_config(scale: float) -> PipelineConfig:
    """Default Settings with every duration multiplied by scale."""
    defaults = Settings()
    return PipelineConfig.from_settings(
        Settings(
            fetch_timeout_sec=defaults.fetch_timeout_sec * scale,
            narrative_timeout_sec=defaults.narrative_timeout_sec * scale,
            retry_attempts=defaults.retry_attempts,
            retry_backoff_sec=defaults.retry_backoff_sec * scale,
            report_timeout_sec=defaults.report_timeout_sec * scale,
        )
    )


@pytest.mark.asyncio
async def test_hanging_generator_with_default_proportions_falls_back_to_template():
    config = _scaled_default_config(0.02)
    defaults = Settings()
    narrative_budget = config.retry_attempts * config.narrative_timeout_sec
    assert narrative_budget > config.report_timeout_sec
    assert defaults.retry_attempts * defaults.narrative_timeout_sec > defaults.report_timeout_sec

    gen = HangingGenerator()
    loop = asyncio.get_running_loop()
    started = loop.time()
    report = await build_report("alice", Platform.X, FakeSocialProvider(), FakeBlockchainProvider(), gen, config=config)

    assert report.narrative_source is NarrativeSource.TEMPLATE
    assert "high level of trustworthiness" in report.summary
    assert gen.prompts
    assert loop.time() - started < config.report_timeout_sec


@pytest.mark.asyncio
async def test_narrative_gets_only_the_time_left_before_the_deadline():
    stages: list[ReportStage] = []
    report = await build_report(
        "alice",
        Platform.X,
        FakeSocialProvider(delay=0.3),
        FakeBlockchainProvider(),
        HangingGenerator(),
        config=PipelineConfig(fetch_timeout_sec=1.0, narrative_timeout_sec=5.0),
        timeout_sec=0.6,
        on_stage=stages.append,
    )
    assert stages[-1] is ReportStage.ASSEMBLED
    assert report.narrative_source is NarrativeSource.TEMPLATE
