from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DrawKind(str, Enum):
    SLOT = "slot"
    LIGHTNING = "lightning"


class WinTier(str, Enum):
    NONE = "none"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    JACKPOT = "jackpot"
    LIGHTNING = "lightning"


class SkipReason(str, Enum):
    ROUND_BLOCKED = "round_blocked"
    NO_HOLDERS = "no_holders"
    STALE_FUNDS = "stale_funds"
    EMPTY_POOL = "empty_pool"
    NO_WIN = "no_win"
    NO_TICKETS = "no_tickets"
    BELOW_MINIMUM = "below_minimum"


class RewardStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class WeatherKind(str, Enum):
    SUNNY = "sunny"
    RAINY = "rainy"
    STORM = "storm"


@dataclass(frozen=True)
class Holder:
    wallet_address: str
    token_balance: Decimal


@dataclass(frozen=True)
class TicketedHolder:
    wallet_address: str
    token_balance: Decimal
    tickets: int


@dataclass(frozen=True)
class WeatherState:
    kind: WeatherKind
    multiplier: Decimal
    started_at: datetime
    duration: timedelta

    @property
    def ends_at(self) -> datetime:
        return self.started_at + self.duration


@dataclass
class PendingReward:
    """A promised payout, tracked until the transfer is confirmed on-chain."""

    id: str
    winner: str
    amount: Decimal
    kind: DrawKind
    created_at: datetime
    status: RewardStatus = RewardStatus.PENDING
    tx_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    attempts: int = 0

    @property
    def unresolved(self) -> bool:
        return self.status is not RewardStatus.CONFIRMED


@dataclass(frozen=True)
class DrawOutcome:
    kind: DrawKind
    timestamp: datetime
    symbols: Optional[Tuple[str, str, str]] = None
    tier: WinTier = WinTier.NONE
    tier_multiplier: Decimal = Decimal(0)
    weather_multiplier: Decimal = Decimal(1)
    winner: Optional[str] = None
    prize: Decimal = Decimal(0)
    reward_id: Optional[str] = None
    skip_reason: Optional[SkipReason] = None

    @property
    def won(self) -> bool:
        return self.reward_id is not None

    @property
    def multiplier(self) -> Decimal:
        """Effective multiplier (outcome tier times weather) for display."""
        return self.tier_multiplier * self.weather_multiplier


@dataclass(frozen=True)
class Participant:
    address: str
    balance: Decimal
    tickets: int
    win_chance: float  # percent


@dataclass(frozen=True)
class WinnerStats:
    total_winners: int
    total_winnings: Decimal
    slot_winnings: Decimal
    lightning_winnings: Decimal
    pending_amount: Decimal
    last_winner: Optional[PendingReward]


@dataclass(frozen=True)
class LotterySnapshot:
    token_mint: str
    is_running: bool
    prize_pool: Decimal
    outstanding: Decimal
    has_fresh_funds: bool
    weather: WeatherState
    holder_count: int
    total_tickets: int
    draws_paused: bool
    next_draw_at: Optional[datetime]  # None while paused or stopped
    participants: List[Participant] = field(default_factory=list)
