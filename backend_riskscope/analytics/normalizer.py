"""
Metrics normalizer: sanitize raw social and blockchain inputs.

Accepts mappings (camelCase or snake_case keys) or already-built dataclasses.
Never raises: missing, unparseable, or non-finite values fall back to the most
risk-neutral value (0 for counts and rates, LOW for dumping, False for MEV).
Idempotent: normalizing a normalized value returns an equal value.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from backend_riskscope.analytics.models import (
    AssetStatus,
    BlockchainActivity,
    DumpingBehavior,
    PromotedAsset,
    SocialMetrics,
)

PERCENT_MIN = 0.0
PERCENT_MAX = 100.0

# Unknown asset statuses never count as rug pulls
DEFAULT_ASSET_STATUS = AssetStatus.DECLINED


def _pick(raw: Any, *keys: str) -> Any:
    """First present key from a mapping, or attribute from an object."""
    if isinstance(raw, Mapping):
        for key in keys:
            if key in raw and raw[key] is not None:
                return raw[key]
        return None
    for key in keys:
        value = getattr(raw, key, None)
        if value is not None:
            return value
    return None


def _to_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(out):
        return default
    return out


def _to_count(value: Any) -> int:
    """Non-negative int; floats truncate toward zero."""
    return max(0, int(_to_float(value)))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if value is None:
        return False
    return bool(value)


def _enum_value(value: Any, enum_cls: type, default: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    s = str(value or "").strip().lower()
    for member in enum_cls:
        if s in (member.value, member.name.lower()):
            return member
    return default


def _normalize_asset(raw: Any) -> PromotedAsset:
    name = _pick(raw, "name")
    return PromotedAsset(
        name=str(name).strip() if name is not None else "",
        status=_enum_value(_pick(raw, "status"), AssetStatus, DEFAULT_ASSET_STATUS),
        performance_percentage=_to_float(
            _pick(raw, "performance_percentage", "performancePercentage")
        ),
    )


def normalize_social(raw: Any) -> SocialMetrics:
    """Clamp follower percentage to [0, 100], engagement to >= 0, followers to a non-negative int."""
    if raw is None:
        raw = {}
    assets_raw = _pick(raw, "promoted_assets", "promotedAssets", "promotedTokens")
    assets: tuple[PromotedAsset, ...] = ()
    if isinstance(assets_raw, Iterable) and not isinstance(assets_raw, (str, bytes, Mapping)):
        assets = tuple(_normalize_asset(a) for a in assets_raw if a is not None)
    real_pct = _to_float(_pick(raw, "real_follower_percentage", "realFollowerPercentage"))
    return SocialMetrics(
        followers=_to_count(_pick(raw, "followers")),
        real_follower_percentage=min(PERCENT_MAX, max(PERCENT_MIN, real_pct)),
        engagement_rate=max(0.0, _to_float(_pick(raw, "engagement_rate", "engagementRate"))),
        promoted_assets=assets,
    )


def normalize_blockchain(raw: Any) -> BlockchainActivity:
    """Clamp rug-pull count to >= 0; missing dumping -> LOW, missing MEV -> False."""
    if raw is None:
        raw = {}
    address = _pick(raw, "address")
    address = str(address).strip() if address is not None else None
    return BlockchainActivity(
        address=address or None,
        rug_pull_count=_to_count(_pick(raw, "rug_pull_count", "rugPullCount")),
        dumping_behavior=_enum_value(
            _pick(raw, "dumping_behavior", "dumpingBehavior"), DumpingBehavior, DumpingBehavior.LOW
        ),
        mev_detected=_to_bool(_pick(raw, "mev_detected", "mevDetected", "mevActivity")),
    )


def normalize(raw_social: Any, raw_blockchain: Any) -> tuple[SocialMetrics, BlockchainActivity]:
    """Normalize both inputs into the canonical data model."""
    return normalize_social(raw_social), normalize_blockchain(raw_blockchain)
