"""
Tests for deterministic synthetic metrics used when live providers fail.
"""

from __future__ import annotations

import pytest

from backend_riskscope.analytics.models import AssetStatus, DumpingBehavior, Platform
from backend_riskscope.ingestion.synthetic import (
    SyntheticBlockchainProvider,
    SyntheticSocialProvider,
    derive_address,
    stable_seed,
    synthetic_blockchain_activity,
    synthetic_social_metrics,
)


def test_stable_seed_is_deterministic():
    assert stable_seed("alice") == stable_seed("alice")
    assert stable_seed("alice") != stable_seed("bob")


def test_derive_address_is_hex_of_handle():
    assert derive_address("ab") == "0x6162" + "0" * 36
    addr = derive_address("averyveryverylonghandlename")
    assert addr.startswith("0x") and len(addr) == 42
    assert derive_address("alice") == derive_address("alice")


@pytest.mark.parametrize("handle", ["alice", "bob", "cryptoking", "x"])
def test_social_metrics_within_ranges(handle):
    m = synthetic_social_metrics(handle)
    assert 5000 <= m.followers <= 185000
    assert 40 <= m.real_follower_percentage <= 90
    assert 0.5 <= m.engagement_rate <= 1.4
    assert len(m.promoted_assets) == 10
    counts = m.count_by_status()
    assert 1 <= counts[AssetStatus.RUGPULL] <= 9
    for asset in m.promoted_assets:
        if asset.status is AssetStatus.RUGPULL:
            assert -99 <= asset.performance_percentage <= -50


def test_social_metrics_are_deterministic():
    assert synthetic_social_metrics("alice") == synthetic_social_metrics("alice")


@pytest.mark.parametrize("address", ["0xabc", "0xDEF0", derive_address("carol")])
def test_blockchain_activity_consistent(address):
    a = synthetic_blockchain_activity(address)
    assert a == synthetic_blockchain_activity(address)
    assert a.address == address
    assert 0 <= a.rug_pull_count <= 9
    if a.rug_pull_count > 6:
        assert a.dumping_behavior is DumpingBehavior.HIGH
    elif a.rug_pull_count > 3:
        assert a.dumping_behavior is DumpingBehavior.MEDIUM
    else:
        assert a.dumping_behavior is DumpingBehavior.LOW
    assert a.mev_detected is (a.rug_pull_count > 5)


def test_blockchain_seed_ignores_address_case():
    a = synthetic_blockchain_activity("0xABCDEF")
    b = synthetic_blockchain_activity("0xabcdef")
    assert a.rug_pull_count == b.rug_pull_count


@pytest.mark.asyncio
async def test_synthetic_providers_match_functions():
    assert await SyntheticSocialProvider().fetch("alice", Platform.X) == synthetic_social_metrics("alice")
    assert await SyntheticBlockchainProvider().fetch("0xabc") == synthetic_blockchain_activity("0xabc")
