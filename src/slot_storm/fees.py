from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from .project_constants import (
    CREATOR_FEE_RATE,
    LOTTERY_FEE_SHARE,
    MIN_ACCUMULATED_FEE,
    MIN_VOLUME_USD,
    SOL_PRICE_USD,
)

log = logging.getLogger(__name__)

ZERO = Decimal(0)


class FeeAccumulator:
    """
    Funding gate for the next draw.

    A claim sets the pool to the total currently claimable and marks the
    funds fresh. A draw that spends the pool consumes the freshness, so the
    same claimed batch can never fund two draws. Committed prizes move to
    `outstanding` until their payout is confirmed.
    """

    def __init__(self) -> None:
        self.pool: Decimal = ZERO
        self.has_fresh_funds = False
        self.outstanding: Decimal = ZERO

    @property
    def is_stale(self) -> bool:
        return not self.has_fresh_funds and self.pool > 0

    def record_claim(self, amount: Decimal) -> None:
        amount = Decimal(amount)
        if amount < 0:
            raise ValueError(f"Claimed amount must be >= 0, got {amount}")
        self.pool = amount
        self.has_fresh_funds = True
        log.info("Claim recorded: pool is now %s SOL", self.pool)

    def reset_if_unfunded(self) -> None:
        if self.pool > 0:
            log.info("No new claim this period; dropping unconfirmed pool of %s SOL", self.pool)
        self.pool = ZERO
        self.has_fresh_funds = False

    def consume(self) -> None:
        self.has_fresh_funds = False

    def commit(self, prize: Decimal) -> None:
        self.outstanding += prize
        self.pool = ZERO
        self.consume()

    def settle(self, amount: Decimal) -> None:
        self.outstanding = max(ZERO, self.outstanding - amount)


@dataclass
class CreatorFeeTracker:
    """Turns 5-minute trading volume into creator fees split between dev and lottery."""

    dev_wallet: Optional[str] = None
    total_fees: Decimal = ZERO
    available_dev_fees: Decimal = ZERO
    total_dev_share: Decimal = ZERO
    total_lottery_share: Decimal = ZERO
    accumulated_fees: Decimal = ZERO
    total_volume_usd: Decimal = ZERO
    last_processed_at: Optional[datetime] = None
    dev_fees_claimed_at: Optional[datetime] = None

    def process_volume(self, volume_usd: Decimal, now: datetime) -> Optional[Decimal]:
        """Returns the lottery share of newly claimable fees, or None if nothing is claimable."""
        volume_usd = Decimal(volume_usd)
        self.total_volume_usd += volume_usd
        if volume_usd <= 0:
            log.info("No 5min volume detected - no fees to process")
            return None

        fees = volume_usd / SOL_PRICE_USD * CREATOR_FEE_RATE

        if volume_usd < MIN_VOLUME_USD:
            if fees > MIN_ACCUMULATED_FEE:
                self.accumulated_fees += fees
                log.info(
                    "5min volume $%s below $%s threshold - accumulated fees now %s SOL",
                    volume_usd,
                    MIN_VOLUME_USD,
                    self.accumulated_fees,
                )
            else:
                log.info("Very low 5min volume: $%s - no fees to process", volume_usd)
            return None

        batch = fees + self.accumulated_fees
        lottery_share = batch * LOTTERY_FEE_SHARE
        dev_share = batch - lottery_share

        self.total_fees += batch
        self.available_dev_fees += dev_share
        self.total_dev_share += dev_share
        self.total_lottery_share += lottery_share
        self.accumulated_fees = ZERO
        self.last_processed_at = now

        log.info(
            "Processed %s SOL creator fees: dev %s, lottery %s",
            batch,
            dev_share,
            lottery_share,
        )
        return lottery_share

    def mark_dev_fees_claimed(self, now: datetime) -> Tuple[Decimal, Decimal, Optional[str]]:
        claimed = self.available_dev_fees
        self.available_dev_fees = ZERO
        self.dev_fees_claimed_at = now
        log.info("Dev fees claimed: %s SOL to %s", claimed, self.dev_wallet)
        return claimed, self.available_dev_fees, self.dev_wallet
