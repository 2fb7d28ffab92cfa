"""
Live X/Twitter social metrics via API v2.

Looks up the profile (users/by/username), reads recent tweets
(users/{id}/tweets), and derives engagement rate as mean(likes + retweets +
replies) / followers * 100. Authentic-audience share is estimated from
engagement; promoted assets are derived deterministically from the handle
(the API exposes no promotion history). Any HTTP or payload problem raises
UpstreamFetchFailure so the pipeline can substitute synthetic data.
"""

from __future__ import annotations

import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from backend_riskscope.analytics.models import Platform, SocialMetrics
from backend_riskscope.config.settings import DEFAULT_TWITTER_API_URL
from backend_riskscope.core.exceptions import UpstreamFetchFailure
from backend_riskscope.ingestion.cache import TTLCache
from backend_riskscope.ingestion.synthetic import stable_seed, synthetic_promoted_assets
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)

SOURCE = "twitter"
DEFAULT_TIMEOUT_SEC = 10.0
DEFAULT_TIMELINE_SIZE = 50
REAL_FOLLOWER_MIN = 20.0
REAL_FOLLOWER_MAX = 95.0
RUGPULL_SHARE_FLOOR = 10.0


def engagement_rate(tweets: list[dict[str, Any]], followers: int) -> float:
    """Average interactions per tweet as a percentage of followers, 2 decimals. 0 when no followers."""
    if not tweets or followers <= 0:
        return 0.0
    total = 0
    for tweet in tweets:
        metrics = tweet.get("public_metrics") or {}
        total += (
            int(metrics.get("like_count") or 0)
            + int(metrics.get("retweet_count") or 0)
            + int(metrics.get("reply_count") or 0)
        )
    average = total / len(tweets)
    return round(average / followers * 100, 2)


def estimate_real_follower_percentage(rate: float) -> float:
    """Very low engagement usually means purchased followers: clamp(rate*10 + 40, 20, 95)."""
    return min(REAL_FOLLOWER_MAX, max(REAL_FOLLOWER_MIN, rate * 10 + 40))


class TwitterMetricsProvider:
    """SocialMetricsProvider backed by the X/Twitter API v2. Serves Platform.X only."""

    def __init__(
        self,
        bearer_token: str,
        *,
        base_url: str = DEFAULT_TWITTER_API_URL,
        client: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        timeline_size: int = DEFAULT_TIMELINE_SIZE,
        cache: TTLCache[SocialMetrics] | None = None,
    ) -> None:
        self._token = (bearer_token or "").strip()
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout_sec
        self._timeline_size = max(5, min(100, timeline_size))
        self._cache = cache

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def _get_json(self, client: httpx.AsyncClient, path: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await client.get(
                f"{self._base_url}{path}",
                params=params,
                headers={"Authorization": f"Bearer {self._token}"},
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamFetchFailure(SOURCE, f"HTTP {e.response.status_code} for {path}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamFetchFailure(SOURCE, f"{type(e).__name__}: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamFetchFailure(SOURCE, f"unexpected payload for {path}")
        return data

    async def fetch(self, handle: str, platform: Platform) -> SocialMetrics:
        if platform is not Platform.X:
            raise UpstreamFetchFailure(SOURCE, f"unsupported platform {platform.value}")
        if not self._token:
            raise UpstreamFetchFailure(SOURCE, "bearer token not configured")
        if self._cache is not None:
            cached = self._cache.get(handle)
            if cached is not None:
                return cached

        async with self._session() as client:
            profile = await self._get_json(
                client,
                f"/users/by/username/{handle}",
                {"user.fields": "profile_image_url,description,public_metrics"},
            )
            user = profile.get("data")
            if not isinstance(user, dict) or not user.get("id"):
                raise UpstreamFetchFailure(SOURCE, f"profile not found for {handle}")
            timeline = await self._get_json(
                client,
                f"/users/{user['id']}/tweets",
                {"max_results": self._timeline_size, "tweet.fields": "public_metrics,created_at"},
            )
        tweets = timeline.get("data")
        if not isinstance(tweets, list):
            raise UpstreamFetchFailure(SOURCE, f"timeline unavailable for {handle}")

        followers = int((user.get("public_metrics") or {}).get("followers_count") or 0)
        rate = engagement_rate(tweets, followers)
        # Higher engagement tends to correlate with more successful projects
        rugpull_share = max(RUGPULL_SHARE_FLOOR, 100 - rate * 10)
        metrics = SocialMetrics(
            followers=followers,
            real_follower_percentage=estimate_real_follower_percentage(rate),
            engagement_rate=rate,
            promoted_assets=synthetic_promoted_assets(random.Random(stable_seed(handle)), rugpull_share),
        )
        logger.info(
            "twitter_metrics_fetched",
            subject=handle,
            followers=followers,
            engagement_rate=rate,
            tweets=len(tweets),
        )
        if self._cache is not None:
            self._cache.set(handle, metrics)
        return metrics
