from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Protocol, Tuple

import httpx

from .fees import CreatorFeeTracker
from .lottery import LotteryFacade
from .models import Holder
from .project_constants import FEE_CHECK_S, HOLDER_REFRESH_S
from .scheduler import RecurringTask

log = logging.getLogger(__name__)

# What a misbehaving upstream can raise: transport/status errors, JSON-RPC
# errors (RuntimeError), bad JSON (ValueError) and unexpected payload shapes.
UPSTREAM_ERRORS = (httpx.HTTPError, RuntimeError, ValueError, LookupError, TypeError)


class HolderSource(Protocol):
    async def fetch_holders(self, token_mint: str) -> List[Holder]:
        ...


class FeeSource(Protocol):
    async def fetch_claimable_fees(self, token_mint: str) -> Optional[Decimal]:
        ...


class SlotStormService:
    """Keeps a lottery fed with holder snapshots and fee claims on their own timers."""

    def __init__(
        self,
        lottery: LotteryFacade,
        holder_source: HolderSource,
        fee_source: FeeSource,
        holder_refresh_s: float = HOLDER_REFRESH_S,
        fee_check_s: float = FEE_CHECK_S,
        fee_tracker: Optional[CreatorFeeTracker] = None,
    ) -> None:
        self.lottery = lottery
        self.holder_source = holder_source
        self.fee_source = fee_source
        self.fee_tracker = fee_tracker
        self._holder_timer = RecurringTask(
            "holder refresh", self.refresh_holders, lambda: holder_refresh_s, lottery.clock
        )
        self._fee_timer = RecurringTask(
            "fee check", self.check_fees, lambda: fee_check_s, lottery.clock
        )

    async def start(self) -> None:
        mint = self.lottery.token_mint
        log.info("Starting SlotStorm for %s", mint)
        await self.refresh_holders()
        # Prize pool starts at zero; only claimed fees fund it.
        await self.check_fees()
        await self.lottery.start()
        self._holder_timer.start()
        self._fee_timer.start()
        log.info("SlotStorm started with %d token holders", len(self.lottery.holders))

    async def stop(self) -> None:
        log.info("Stopping SlotStorm...")
        await self._holder_timer.stop()
        await self._fee_timer.stop()
        await self.lottery.stop()

    async def refresh_holders(self) -> bool:
        try:
            holders = await self.holder_source.fetch_holders(self.lottery.token_mint)
        except UPSTREAM_ERRORS as e:
            log.error(
                "Failed to fetch token holders: %s; keeping %d known holders",
                e,
                len(self.lottery.holders),
            )
            return False
        self.lottery.update_holders(holders)
        return True

    async def check_fees(self) -> bool:
        """
        One fee-check period. A claim funds the next draw; anything else,
        including an upstream failure, leaves the period unfunded.
        """
        try:
            claimable = await self.fee_source.fetch_claimable_fees(self.lottery.token_mint)
        except UPSTREAM_ERRORS as e:
            log.error("Failed to check creator fees: %s; no fees processed this round", e)
            self.lottery.reset_unfunded()
            return False

        if claimable is not None and claimable > 0:
            self.lottery.inject_claimed_fees(claimable)
            return True
        self.lottery.reset_unfunded()
        return False

    def mark_dev_fees_claimed(self) -> Tuple[Decimal, Decimal, Optional[str]]:
        """Zeroes the dev share accumulated so far and returns (claimed, remaining, dev_wallet)."""
        if self.fee_tracker is None:
            raise RuntimeError("No creator fee tracker configured")
        return self.fee_tracker.mark_dev_fees_claimed(self.lottery.clock())
