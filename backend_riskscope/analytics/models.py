"""
Data model for risk reports.

Immutable dataclasses for social metrics, blockchain activity, subject
identity, and the assembled RiskReport. to_dict() produces the camelCase JSON
shape stored by the history store and served by the API.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AssetStatus(str, Enum):
    RUGPULL = "rugpull"
    ACTIVE = "active"
    DECLINED = "declined"


class DumpingBehavior(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Platform(str, Enum):
    X = "x"
    INSTAGRAM = "instagram"
    TELEGRAM = "telegram"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _PLATFORM_DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: Any) -> "Platform":
        """Case-insensitive lookup by value or name; 'twitter' is X; unknown -> OTHER."""
        if isinstance(value, Platform):
            return value
        s = str(value or "").strip().lower()
        if s in ("twitter", "x.com"):
            return cls.X
        for member in cls:
            if s == member.value:
                return member
        return cls.OTHER


_PLATFORM_DISPLAY_NAMES = {
    Platform.X: "X",
    Platform.INSTAGRAM: "Instagram",
    Platform.TELEGRAM: "Telegram",
    Platform.OTHER: "social media",
}


class NarrativeSource(str, Enum):
    GENERATED = "generated"
    TEMPLATE = "template"


@dataclass(frozen=True)
class PromotedAsset:
    """Token or project the subject publicly endorsed, with its outcome."""

    name: str
    status: AssetStatus
    performance_percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "performancePercentage": self.performance_percentage,
        }


@dataclass(frozen=True)
class SocialMetrics:
    followers: int = 0
    real_follower_percentage: float = 0.0
    engagement_rate: float = 0.0
    promoted_assets: tuple[PromotedAsset, ...] = ()

    def count_by_status(self) -> dict[AssetStatus, int]:
        """Number of promoted assets per status; every status present (0 if none)."""
        counts = Counter(a.status for a in self.promoted_assets)
        return {status: counts.get(status, 0) for status in AssetStatus}

    def to_dict(self) -> dict[str, Any]:
        return {
            "followers": self.followers,
            "realFollowerPercentage": self.real_follower_percentage,
            "engagementRate": self.engagement_rate,
            "promotedAssets": [a.to_dict() for a in self.promoted_assets],
        }


@dataclass(frozen=True)
class BlockchainActivity:
    address: str | None = None
    rug_pull_count: int = 0
    dumping_behavior: DumpingBehavior = DumpingBehavior.LOW
    mev_detected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "rugPullCount": self.rug_pull_count,
            "dumpingBehavior": self.dumping_behavior.value,
            "mevDetected": self.mev_detected,
        }


@dataclass(frozen=True)
class SubjectData:
    """The social-media account being analyzed."""

    handle: str
    display_name: str | None = None
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "handle": self.handle,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubjectData":
        return cls(
            handle=str(data.get("handle") or ""),
            display_name=data.get("displayName") or data.get("display_name"),
            avatar_url=data.get("avatarUrl") or data.get("avatar_url"),
        )


@dataclass(frozen=True)
class RiskReport:
    """
    One analysis result. Created once by the report pipeline, never mutated;
    persisted by the caller.
    """

    id: str
    subject: SubjectData
    social_metrics: SocialMetrics
    blockchain_activity: BlockchainActivity
    risk_score: int
    summary: str
    detailed_analysis: str
    created_at: int
    """Epoch milliseconds at assembly."""
    platform: Platform = Platform.X
    narrative_source: NarrativeSource = NarrativeSource.TEMPLATE
    score_breakdown: dict[str, float] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject.to_dict(),
            "socialMetrics": self.social_metrics.to_dict(),
            "blockchainActivity": self.blockchain_activity.to_dict(),
            "riskScore": self.risk_score,
            "summary": self.summary,
            "detailedAnalysis": self.detailed_analysis,
            "createdAt": self.created_at,
            "platform": self.platform.value,
            "narrativeSource": self.narrative_source.value,
            "scoreBreakdown": dict(self.score_breakdown),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RiskReport":
        """Rebuild a report from to_dict() output (history store rows)."""
        from backend_riskscope.analytics.normalizer import normalize

        social, chain = normalize(data.get("socialMetrics") or {}, data.get("blockchainActivity") or {})
        try:
            source = NarrativeSource(data.get("narrativeSource") or NarrativeSource.TEMPLATE.value)
        except ValueError:
            source = NarrativeSource.TEMPLATE
        return cls(
            id=str(data["id"]),
            subject=SubjectData.from_dict(data.get("subject") or {}),
            social_metrics=social,
            blockchain_activity=chain,
            risk_score=int(data.get("riskScore") or 0),
            summary=str(data.get("summary") or ""),
            detailed_analysis=str(data.get("detailedAnalysis") or ""),
            created_at=int(data.get("createdAt") or 0),
            platform=Platform.parse(data.get("platform")),
            narrative_source=source,
            score_breakdown=dict(data.get("scoreBreakdown") or {}),
        )
