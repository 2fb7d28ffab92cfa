"""
Shared test doubles: promoted-asset builders, fake providers, and a scripted
text generator.
"""

from __future__ import annotations

import asyncio
from typing import Any

from backend_riskscope.analytics.models import (
    AssetStatus,
    BlockchainActivity,
    DumpingBehavior,
    PromotedAsset,
    SocialMetrics,
)


def make_assets(rugpull: int = 0, active: int = 0, declined: int = 0) -> tuple[PromotedAsset, ...]:
    assets = []
    for i in range(rugpull):
        assets.append(PromotedAsset(f"RUG{i}", AssetStatus.RUGPULL, -80.0))
    for i in range(active):
        assets.append(PromotedAsset(f"ACT{i}", AssetStatus.ACTIVE, 25.0))
    for i in range(declined):
        assets.append(PromotedAsset(f"DEC{i}", AssetStatus.DECLINED, -30.0))
    return tuple(assets)


class FakeSocialProvider:
    """Returns fixed metrics, or raises `error` on every call."""

    def __init__(self, metrics: Any = None, error: Exception | None = None, delay: float = 0.0) -> None:
        self.metrics = metrics if metrics is not None else SocialMetrics(
            followers=125000,
            real_follower_percentage=88.0,
            engagement_rate=3.2,
            promoted_assets=make_assets(active=8, declined=2),
        )
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, Any]] = []

    async def fetch(self, handle, platform):
        self.calls.append((handle, platform))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.metrics


class FakeBlockchainProvider:
    def __init__(self, activity: Any = None, error: Exception | None = None, delay: float = 0.0) -> None:
        self.activity = activity if activity is not None else BlockchainActivity(
            address="0xabc",
            rug_pull_count=0,
            dumping_behavior=DumpingBehavior.LOW,
            mev_detected=False,
        )
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def fetch(self, address):
        self.calls.append(address)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.activity


class ScriptedTextGenerator:
    """
    Replays `responses` in order; an Exception instance in the list is raised
    instead of returned. The last entry repeats once the script runs out.
    """

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        index = min(len(self.prompts) - 1, len(self.responses) - 1)
        item = self.responses[index]
        if isinstance(item, BaseException):
            raise item
        return item


GOOD_COMPLETION = (
    "**SUMMARY:** Alice looks mostly reliable. Her audience is largely organic.\n\n"
    "**DETAILED ANALYSIS:** Alice promotes established projects and shows no "
    "rug-pull history on chain. Her wallet moves funds slowly, with no pattern of "
    "selling shortly after receiving new tokens and no sign of MEV bots or "
    "sandwich trades around her promotions. Most of the assets she has promoted "
    "over the past year are still trading, and the few that declined did so "
    "gradually along with the wider market rather than collapsing overnight. "
    "Her follower base is large and looks authentic, with a real follower share "
    "well above the typical range for crypto accounts of a similar size. "
    "Engagement is steady across posts and does not spike around paid "
    "promotions, which suggests that her reach is genuine and not purchased. "
    "She discloses sponsorships in most of her posts and rarely uses urgency "
    "tactics. Nothing in the available data points to coordinated pump activity "
    "or to repeated launches of short-lived tokens. Investor advice: stay diligent."
)


