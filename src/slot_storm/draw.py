from __future__ import annotations

import logging
import random
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Callable, List, Sequence, Tuple

from .fees import FeeAccumulator
from .ledger import RewardLedger
from .models import DrawKind, DrawOutcome, SkipReason, TicketedHolder, WinTier
from .project_constants import (
    BONUS_MULTIPLIER,
    BONUS_PAIR,
    COMMON_SYMBOLS,
    JACKPOT_MULTIPLIER,
    LAMPORT,
    LARGE_MULTIPLIER,
    LEGENDARY_SYMBOLS,
    LIGHTNING_MIN_PRIZE,
    LIGHTNING_POOL_SHARE,
    LIGHTNING_PRIZE_CAP,
    MEDIUM_MULTIPLIER,
    RARE_SYMBOLS,
    SLOT_POOL_SHARE,
    SLOT_PRIZE_CAP,
    SMALL_MULTIPLIER,
    TIER_WEIGHTS,
)
from .tickets import select_winner
from .weather import WeatherController

log = logging.getLogger(__name__)

Symbols = Tuple[str, str, str]

SYMBOL_TIERS = (COMMON_SYMBOLS, RARE_SYMBOLS, LEGENDARY_SYMBOLS)


class EngineState(str, Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    AWAITING_PAYOUT = "awaiting_payout"


def spin_symbols(rng: random.Random) -> Symbols:
    out: List[str] = []
    for _ in range(3):
        roll = rng.random()
        cumulative = 0.0
        pool = SYMBOL_TIERS[-1]
        for weight, tier in zip(TIER_WEIGHTS, SYMBOL_TIERS):
            cumulative += weight
            if roll < cumulative:
                pool = tier
                break
        out.append(pool[min(int(rng.random() * len(pool)), len(pool) - 1)])
    return out[0], out[1], out[2]


def evaluate_symbols(symbols: Sequence[str]) -> Tuple[WinTier, Decimal]:
    a, b, c = symbols
    if a == b == c:
        if a in LEGENDARY_SYMBOLS:
            return WinTier.JACKPOT, JACKPOT_MULTIPLIER
        if a in RARE_SYMBOLS:
            return WinTier.LARGE, LARGE_MULTIPLIER
        return WinTier.MEDIUM, MEDIUM_MULTIPLIER

    if a == b or b == c or a == c:
        return WinTier.SMALL, SMALL_MULTIPLIER

    if all(s in symbols for s in BONUS_PAIR):
        return WinTier.MEDIUM, BONUS_MULTIPLIER

    return WinTier.NONE, Decimal(0)


def compute_prize(
    kind: DrawKind,
    pool: Decimal,
    tier_multiplier: Decimal,
    weather_multiplier: Decimal,
) -> Decimal:
    """Prize in SOL, rounded down to whole lamports and never more than the pool."""
    if kind is DrawKind.SLOT:
        base = min(pool * SLOT_POOL_SHARE, SLOT_PRIZE_CAP)
    else:
        base = min(pool * LIGHTNING_POOL_SHARE, LIGHTNING_PRIZE_CAP)
    prize = base * tier_multiplier * weather_multiplier
    return min(prize, pool).quantize(LAMPORT, rounding=ROUND_DOWN)


class DrawEngine:
    """
    Runs slot and lightning draws against the current holder set.

    A draw only spends a pool that was freshly claimed, and only while the
    reward ledger has no unresolved payout. A win opens a pending reward and
    commits the prize out of the pool in the same step.
    """

    def __init__(
        self,
        fees: FeeAccumulator,
        ledger: RewardLedger,
        weather: WeatherController,
        rng: random.Random,
        clock: Callable[[], datetime],
    ) -> None:
        self.fees = fees
        self.ledger = ledger
        self.weather = weather
        self._rng = rng
        self._clock = clock
        self._evaluating = False

    @property
    def state(self) -> EngineState:
        if self._evaluating:
            return EngineState.EVALUATING
        if not self.ledger.can_start_new_round:
            return EngineState.AWAITING_PAYOUT
        return EngineState.IDLE

    def evaluate(self, kind: DrawKind, holders: List[TicketedHolder]) -> DrawOutcome:
        self._evaluating = True
        try:
            outcome = self._evaluate(kind, holders, self._clock())
        finally:
            self._evaluating = False

        if outcome.skip_reason is not None:
            log.info("%s draw skipped: %s", kind.value.capitalize(), outcome.skip_reason.value)
        return outcome

    def _evaluate(
        self, kind: DrawKind, holders: List[TicketedHolder], now: datetime
    ) -> DrawOutcome:
        weather_multiplier = self.weather.multiplier

        def skip(reason: SkipReason, **extra) -> DrawOutcome:
            return DrawOutcome(
                kind=kind,
                timestamp=now,
                weather_multiplier=weather_multiplier,
                skip_reason=reason,
                **extra,
            )

        if not self.ledger.can_start_new_round:
            return skip(SkipReason.ROUND_BLOCKED)
        if not holders:
            return skip(SkipReason.NO_HOLDERS)
        if self.fees.is_stale:
            return skip(SkipReason.STALE_FUNDS)
        pool = self.fees.pool
        if pool <= 0:
            return skip(SkipReason.EMPTY_POOL)

        symbols = None
        if kind is DrawKind.SLOT:
            symbols = spin_symbols(self._rng)
            tier, tier_multiplier = evaluate_symbols(symbols)
            log.info("Spinning slots: %s (weather %s)", " - ".join(symbols), self.weather.current.kind.value)
            if tier is WinTier.NONE:
                return skip(SkipReason.NO_WIN, symbols=symbols)
        else:
            tier, tier_multiplier = WinTier.LIGHTNING, Decimal(1)

        result = dict(symbols=symbols, tier=tier, tier_multiplier=tier_multiplier)

        winner = select_winner(holders, self._rng)
        if winner is None:
            return skip(SkipReason.NO_TICKETS, **result)

        prize = compute_prize(kind, pool, tier_multiplier, weather_multiplier)
        if kind is DrawKind.LIGHTNING and prize < LIGHTNING_MIN_PRIZE:
            return skip(SkipReason.BELOW_MINIMUM, **result)
        if prize <= 0:
            return skip(SkipReason.NO_WIN, **result)

        reward = self.ledger.open(winner, prize, kind, now)
        self.fees.commit(prize)
        log.info("WINNER! %s won %s SOL (%s, %sx)", winner, prize, tier.value, tier_multiplier * weather_multiplier)

        return DrawOutcome(
            kind=kind,
            timestamp=now,
            weather_multiplier=weather_multiplier,
            winner=winner,
            prize=prize,
            reward_id=reward.id,
            **result,
        )
