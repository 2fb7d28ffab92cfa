"""
Risk engine: composite 1-99 risk score from normalized metrics.

Additive model around a neutral midpoint of 50. On-chain behavior and
promotion history add risk; an authentic audience and genuine engagement
subtract it. Every axis is capped so no single input saturates the score.
Clamp to [1, 99], round half up. Lower is safer. Pure; never raises.
"""

from __future__ import annotations

import math

from backend_riskscope.analytics.models import (
    AssetStatus,
    BlockchainActivity,
    DumpingBehavior,
    SocialMetrics,
)
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)

BASELINE_SCORE = 50
RUG_PULL_POINTS = 10
RUG_PULL_CAP = 30
DUMPING_POINTS = {
    DumpingBehavior.HIGH: 15,
    DumpingBehavior.MEDIUM: 7,
    DumpingBehavior.LOW: 0,
}
MEV_POINTS = 10
REAL_FOLLOWER_DIVISOR = 5
REAL_FOLLOWER_CAP = 20
ENGAGEMENT_MULTIPLIER = 4
ENGAGEMENT_CAP = 20
RUGPULL_ASSET_DIVISOR = 3
RUGPULL_ASSET_CAP = 30
SCORE_MIN = 1
SCORE_MAX = 99

# Bands: LOW < 30 <= MEDIUM < 70 <= HIGH
BAND_LOW = "LOW"
BAND_MEDIUM = "MEDIUM"
BAND_HIGH = "HIGH"
MEDIUM_BAND_FLOOR = 30
HIGH_BAND_FLOOR = 70


def rugpull_asset_percentage(social: SocialMetrics) -> float:
    """Share of promoted assets that rug-pulled, 0-100. Empty list -> 0."""
    total = len(social.promoted_assets)
    rugpulls = sum(1 for a in social.promoted_assets if a.status is AssetStatus.RUGPULL)
    return rugpulls / max(1, total) * 100


def score_breakdown(social: SocialMetrics, chain: BlockchainActivity) -> dict[str, float]:
    """
    Signed contribution of each axis, in application order.

    Keys: baseline, rug_pulls, dumping, mev, real_followers, engagement,
    rugpull_assets, raw (sum before clamp).
    """
    parts: dict[str, float] = {"baseline": float(BASELINE_SCORE)}
    parts["rug_pulls"] = float(min(RUG_PULL_CAP, chain.rug_pull_count * RUG_PULL_POINTS))
    parts["dumping"] = float(DUMPING_POINTS.get(chain.dumping_behavior, 0))
    parts["mev"] = float(MEV_POINTS if chain.mev_detected else 0)
    parts["real_followers"] = -min(
        REAL_FOLLOWER_CAP, social.real_follower_percentage / REAL_FOLLOWER_DIVISOR
    )
    parts["engagement"] = -min(ENGAGEMENT_CAP, social.engagement_rate * ENGAGEMENT_MULTIPLIER)
    parts["rugpull_assets"] = min(
        RUGPULL_ASSET_CAP, rugpull_asset_percentage(social) / RUGPULL_ASSET_DIVISOR
    )
    parts["raw"] = sum(parts.values())
    return parts


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_risk_score(social: SocialMetrics, chain: BlockchainActivity) -> int:
    """
    Compute the composite risk score (1-99) for normalized metrics.

    Formula: 50 + min(30, rug_pulls*10) + dumping(15/7/0) + mev(10)
    - min(20, real_follower_pct/5) - min(20, engagement*4)
    + min(30, rugpull_asset_pct/3). Clamp to [1, 99], round half up.
    """
    parts = score_breakdown(social, chain)
    clamped = max(float(SCORE_MIN), min(float(SCORE_MAX), parts["raw"]))
    score = _round_half_up(clamped)
    logger.debug(
        "risk_engine_result",
        address=chain.address,
        raw=round(parts["raw"], 2),
        score=score,
    )
    return score


def risk_band(score: int) -> str:
    """LOW (< 30), MEDIUM (30-69), HIGH (>= 70)."""
    if score < MEDIUM_BAND_FLOOR:
        return BAND_LOW
    if score < HIGH_BAND_FLOOR:
        return BAND_MEDIUM
    return BAND_HIGH
