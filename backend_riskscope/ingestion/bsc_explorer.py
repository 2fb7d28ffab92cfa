"""
BNB Smart Chain wallet activity via an Etherscan-compatible explorer (txlist).

Quick-dump heuristic: an outgoing value transfer within 3 blocks after an
incoming one counts as a rug-pull event (more than 5 -> HIGH dumping, more
than 2 -> MEDIUM). MEV is flagged when any transaction paid more than
100 gwei gas. Results are cached per address in an injected TTLCache.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from backend_riskscope.analytics.models import BlockchainActivity, DumpingBehavior
from backend_riskscope.config.settings import DEFAULT_BSC_EXPLORER_URL
from backend_riskscope.core.exceptions import UpstreamFetchFailure
from backend_riskscope.ingestion.cache import DEFAULT_CACHE_TTL_SEC, TTLCache
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)

SOURCE = "bsc_explorer"
DEFAULT_TIMEOUT_SEC = 10.0
QUICK_DUMP_BLOCK_WINDOW = 3
HIGH_DUMP_THRESHOLD = 5
MEDIUM_DUMP_THRESHOLD = 2
MEV_GAS_PRICE_WEI = 100_000_000_000


def _to_int(value: Any) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def analyze_transactions(address: str, transactions: list[dict[str, Any]]) -> BlockchainActivity:
    """Derive rug-pull count, dumping behavior, and MEV flag from a txlist result."""
    addr = (address or "").lower()
    incoming_blocks: set[int] = set()
    outgoing_blocks: list[int] = []
    mev_detected = False
    for tx in transactions:
        if not isinstance(tx, dict):
            continue
        value = _to_int(tx.get("value"))
        block = _to_int(tx.get("blockNumber"))
        if value > 0:
            if str(tx.get("to") or "").lower() == addr:
                incoming_blocks.add(block)
            if str(tx.get("from") or "").lower() == addr:
                outgoing_blocks.append(block)
        if _to_int(tx.get("gasPrice")) > MEV_GAS_PRICE_WEI:
            mev_detected = True

    rug_pull_count = 0
    for block in outgoing_blocks:
        if any(block - offset in incoming_blocks for offset in range(1, QUICK_DUMP_BLOCK_WINDOW + 1)):
            rug_pull_count += 1

    if rug_pull_count > HIGH_DUMP_THRESHOLD:
        dumping = DumpingBehavior.HIGH
    elif rug_pull_count > MEDIUM_DUMP_THRESHOLD:
        dumping = DumpingBehavior.MEDIUM
    else:
        dumping = DumpingBehavior.LOW
    return BlockchainActivity(
        address=address,
        rug_pull_count=rug_pull_count,
        dumping_behavior=dumping,
        mev_detected=mev_detected,
    )


class BscExplorerProvider:
    """BlockchainActivityProvider backed by the BscScan txlist endpoint."""

    def __init__(
        self,
        api_key: str = "",
        *,
        explorer_url: str = DEFAULT_BSC_EXPLORER_URL,
        client: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        cache: TTLCache[BlockchainActivity] | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._explorer_url = explorer_url
        self._client = client
        self._timeout = timeout_sec
        self._cache = cache if cache is not None else TTLCache(DEFAULT_CACHE_TTL_SEC)

    @property
    def cache(self) -> TTLCache[BlockchainActivity]:
        return self._cache

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def fetch(self, address: str) -> BlockchainActivity:
        address = (address or "").strip()
        if not address:
            raise UpstreamFetchFailure(SOURCE, "address must be non-empty")
        key = address.lower()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        params = {"module": "account", "action": "txlist", "address": address, "sort": "asc"}
        if self._api_key:
            params["apikey"] = self._api_key
        try:
            async with self._session() as client:
                resp = await client.get(self._explorer_url, params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamFetchFailure(SOURCE, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamFetchFailure(SOURCE, f"{type(e).__name__}: {e}") from e

        if not isinstance(data, dict) or str(data.get("status")) != "1":
            message = data.get("message") if isinstance(data, dict) else "unexpected payload"
            raise UpstreamFetchFailure(SOURCE, str(message or "explorer status not ok"))
        transactions = data.get("result")
        if not isinstance(transactions, list):
            raise UpstreamFetchFailure(SOURCE, "result is not a transaction list")

        activity = analyze_transactions(address, transactions)
        logger.info(
            "bsc_activity_fetched",
            address=address,
            transactions=len(transactions),
            rug_pull_count=activity.rug_pull_count,
            dumping_behavior=activity.dumping_behavior.value,
            mev_detected=activity.mev_detected,
        )
        self._cache.set(key, activity)
        return activity
