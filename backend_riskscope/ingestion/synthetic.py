"""
Deterministic synthetic metrics for subjects without live data.

Values come from a random.Random seeded with a SHA-256 hash of the handle or
address, so analyzing the same subject twice yields identical metrics. Used as
the pipeline's substitute when a live provider fails, and as a standalone
provider when no API credentials are configured.
"""

from __future__ import annotations

import hashlib
import random

from backend_riskscope.analytics.models import (
    AssetStatus,
    BlockchainActivity,
    DumpingBehavior,
    Platform,
    PromotedAsset,
    SocialMetrics,
)

PROMOTED_ASSET_COUNT = 10
RUGPULL_SHARE_MIN = 10
RUGPULL_SHARE_MAX = 90
DECLINED_THRESHOLD = 0.7
MAX_SYNTHETIC_RUG_PULLS = 10
ADDRESS_HEX_LENGTH = 40


def stable_seed(text: str) -> int:
    """64-bit seed from SHA-256 of text; stable across processes and platforms."""
    digest = hashlib.sha256((text or "").encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def derive_address(handle: str) -> str:
    """Pseudo wallet address from a handle: hex of its bytes, zero-padded to 40 hex chars."""
    hex_chars = (handle or "").encode("utf-8").hex()[:ADDRESS_HEX_LENGTH]
    return "0x" + hex_chars.ljust(ADDRESS_HEX_LENGTH, "0")


def synthetic_promoted_assets(rng: random.Random, rugpull_share: float) -> tuple[PromotedAsset, ...]:
    """Ten promoted assets; the first rugpull_share percent are rug pulls."""
    assets: list[PromotedAsset] = []
    for index in range(PROMOTED_ASSET_COUNT):
        is_rugpull = index / PROMOTED_ASSET_COUNT * 100 < rugpull_share
        name = f"TOKEN{rng.randrange(100)}"
        if is_rugpull:
            status = AssetStatus.RUGPULL
            performance = -float(rng.randrange(50) + 50)
        else:
            status = AssetStatus.DECLINED if rng.random() > DECLINED_THRESHOLD else AssetStatus.ACTIVE
            performance = float(rng.randrange(200) - 100)
        assets.append(PromotedAsset(name=name, status=status, performance_percentage=performance))
    return tuple(assets)


def synthetic_social_metrics(handle: str) -> SocialMetrics:
    seed = stable_seed(handle)
    rng = random.Random(seed)
    rugpull_share = min(RUGPULL_SHARE_MAX, max(RUGPULL_SHARE_MIN, seed % 100))
    return SocialMetrics(
        followers=5000 + (seed % 10) * 20000,
        real_follower_percentage=float(40 + (seed % 6) * 10),
        engagement_rate=round(0.5 + (seed % 10) / 10, 2),
        promoted_assets=synthetic_promoted_assets(rng, rugpull_share),
    )


def synthetic_blockchain_activity(address: str) -> BlockchainActivity:
    """Rug-pull count 0-9; dumping and MEV rise with it (>6 HIGH, >3 MEDIUM, MEV when >5)."""
    rng = random.Random(stable_seed((address or "").lower()))
    rug_pull_count = rng.randrange(MAX_SYNTHETIC_RUG_PULLS)
    if rug_pull_count > 6:
        dumping = DumpingBehavior.HIGH
    elif rug_pull_count > 3:
        dumping = DumpingBehavior.MEDIUM
    else:
        dumping = DumpingBehavior.LOW
    return BlockchainActivity(
        address=address or None,
        rug_pull_count=rug_pull_count,
        dumping_behavior=dumping,
        mev_detected=rug_pull_count > 5,
    )


class SyntheticSocialProvider:
    async def fetch(self, handle: str, platform: Platform) -> SocialMetrics:
        return synthetic_social_metrics(handle)


class SyntheticBlockchainProvider:
    async def fetch(self, address: str) -> BlockchainActivity:
        return synthetic_blockchain_activity(address)
