"""
Tests for the metrics normalizer: clamping, risk-neutral defaults, idempotence.
"""

from __future__ import annotations

import math

from backend_riskscope.analytics.models import (
    AssetStatus,
    BlockchainActivity,
    DumpingBehavior,
    SocialMetrics,
)
from backend_riskscope.analytics.normalizer import normalize, normalize_blockchain, normalize_social


def test_social_clamps_percentages_and_counts():
    social = normalize_social(
        {"followers": -5, "realFollowerPercentage": 140, "engagementRate": -2.5, "promotedAssets": []}
    )
    assert social.followers == 0
    assert social.real_follower_percentage == 100.0
    assert social.engagement_rate == 0.0
    assert social.promoted_assets == ()


def test_social_accepts_snake_case_and_truncates_followers():
    social = normalize_social({"followers": 1234.9, "real_follower_percentage": "55.5", "engagement_rate": 2})
    assert social.followers == 1234
    assert social.real_follower_percentage == 55.5
    assert social.engagement_rate == 2.0


def test_social_invalid_values_fall_back_to_zero():
    social = normalize_social(
        {"followers": "lots", "realFollowerPercentage": math.nan, "engagementRate": math.inf}
    )
    assert social == SocialMetrics()


def test_promoted_assets_unknown_status_is_declined():
    social = normalize_social(
        {
            "promotedTokens": [
                {"name": "MOON", "status": "rugpull", "performancePercentage": -90},
                {"name": "SUN", "status": "mooning", "performancePercentage": "nan"},
                {"name": "STAR", "status": "ACTIVE", "performance_percentage": 12.5},
            ]
        }
    )
    statuses = [a.status for a in social.promoted_assets]
    assert statuses == [AssetStatus.RUGPULL, AssetStatus.DECLINED, AssetStatus.ACTIVE]
    assert social.promoted_assets[1].performance_percentage == 0.0
    assert social.count_by_status()[AssetStatus.RUGPULL] == 1


def test_blockchain_defaults_are_risk_neutral():
    chain = normalize_blockchain({})
    assert chain == BlockchainActivity(
        address=None, rug_pull_count=0, dumping_behavior=DumpingBehavior.LOW, mev_detected=False
    )
    assert normalize_blockchain(None) == chain


def test_blockchain_parses_aliases_and_clamps():
    chain = normalize_blockchain(
        {"address": " 0xABC ", "rugPullCount": -3, "dumpingBehavior": "HIGH", "mevActivity": "true"}
    )
    assert chain.address == "0xABC"
    assert chain.rug_pull_count == 0
    assert chain.dumping_behavior is DumpingBehavior.HIGH
    assert chain.mev_detected is True


def test_unknown_dumping_behavior_is_low():
    assert normalize_blockchain({"dumpingBehavior": "extreme"}).dumping_behavior is DumpingBehavior.LOW


def test_normalize_is_idempotent():
    raw_social = {
        "followers": 85000.7,
        "realFollowerPercentage": 120,
        "engagementRate": 1.8,
        "promotedAssets": [{"name": "X", "status": "weird", "performancePercentage": 3}],
    }
    raw_chain = {"rugPullCount": 4, "dumpingBehavior": "medium", "mevDetected": 1}
    once = normalize(raw_social, raw_chain)
    twice = normalize(*once)
    assert once == twice


def test_normalize_accepts_dataclasses(high_risk_metrics):
    social, chain = high_risk_metrics
    assert normalize(social, chain) == (social, chain)
