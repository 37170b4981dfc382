from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

import httpx

from .fees import CreatorFeeTracker
from .models import utcnow

log = logging.getLogger(__name__)

DEXSCREENER_URL = "https://api.dexscreener.com/latest/dex/tokens/{mint}"

SOL_QUOTES = ("SOL", "WSOL")


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value or "0"))
    except InvalidOperation:
        return Decimal(0)


class DexScreenerClient:
    def __init__(
        self,
        base_url: str = DEXSCREENER_URL,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def close(self) -> None:
        await self.client.aclose()

    async def get_main_pair(self, mint: str) -> Optional[Dict[str, Any]]:
        """The SOL-quoted pair if there is one, else the first listed pair."""
        resp = await self.client.get(self.base_url.format(mint=mint))
        resp.raise_for_status()
        pairs = resp.json().get("pairs") or []
        for pair in pairs:
            if (pair.get("quoteToken") or {}).get("symbol") in SOL_QUOTES:
                return pair
        return pairs[0] if pairs else None


class DexScreenerFeeSource:
    """Estimates claimable creator fees from the last 5 minutes of trading volume."""

    def __init__(
        self,
        client: DexScreenerClient,
        tracker: CreatorFeeTracker | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self.tracker = tracker or CreatorFeeTracker()
        self._clock = clock

    async def fetch_claimable_fees(self, token_mint: str) -> Optional[Decimal]:
        pair = await self.client.get_main_pair(token_mint)
        if pair is None:
            log.info("Token %s not found on DexScreener - no fees to process", token_mint)
            return None

        volume_5m = _decimal((pair.get("volume") or {}).get("m5"))
        log.info(
            "DexScreener pair %s: price $%s, 5min volume $%s",
            pair.get("pairAddress"),
            pair.get("priceUsd"),
            volume_5m,
        )
        return self.tracker.process_volume(volume_5m, self._clock())
