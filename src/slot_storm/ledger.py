from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from .models import DrawKind, PendingReward, RewardStatus, WinnerStats
from .project_constants import REWARD_HISTORY_LIMIT

log = logging.getLogger(__name__)

ZERO = Decimal(0)


def reward_id(kind: DrawKind, winner: str, created_at: datetime) -> str:
    return f"{kind.value}-{winner}-{int(created_at.timestamp() * 1000)}"


class RewardLedger:
    """
    Tracks every promised payout from Pending to Confirmed or Failed.

    The round gate is derived from the ledger: new draws are blocked while
    any reward is Pending or Failed. A failed reward stays on the books until
    it is retried and confirmed, so an unpaid winner is never lost. History
    is bounded, but only confirmed rewards are ever evicted.
    """

    def __init__(self, history_limit: int = REWARD_HISTORY_LIMIT) -> None:
        self.history_limit = history_limit
        self._rewards: List[PendingReward] = []  # newest first
        self._by_id: Dict[str, PendingReward] = {}
        self._total_winners = 0
        self._totals: Dict[DrawKind, Decimal] = {k: ZERO for k in DrawKind}
        self._last_confirmed: Optional[PendingReward] = None

    @property
    def can_start_new_round(self) -> bool:
        return not any(r.unresolved for r in self._rewards)

    def open(
        self,
        winner: str,
        amount: Decimal,
        kind: DrawKind,
        created_at: datetime,
    ) -> PendingReward:
        if amount <= 0:
            raise ValueError(f"Reward amount must be > 0, got {amount}")

        base_id = reward_id(kind, winner, created_at)
        rid, n = base_id, 1
        while rid in self._by_id:
            n += 1
            rid = f"{base_id}-{n}"

        reward = PendingReward(
            id=rid, winner=winner, amount=amount, kind=kind, created_at=created_at
        )
        self._rewards.insert(0, reward)
        self._by_id[rid] = reward
        self._evict()
        log.info("Reward %s opened: %s SOL to %s; new rounds blocked", rid, amount, winner)
        return reward

    def get(self, rid: str) -> Optional[PendingReward]:
        return self._by_id.get(rid)

    def confirm(self, rid: str, tx_ref: str) -> bool:
        reward = self._transition(rid, RewardStatus.PENDING, RewardStatus.CONFIRMED)
        if reward is None:
            return False
        reward.tx_ref = tx_ref
        reward.failure_reason = None
        self._total_winners += 1
        self._totals[reward.kind] += reward.amount
        self._last_confirmed = reward
        log.info("Reward %s confirmed (tx %s)", rid, tx_ref)
        if self.can_start_new_round:
            log.info("All rewards settled; new rounds unblocked")
        self._evict()
        return True

    def fail(self, rid: str, reason: str) -> bool:
        reward = self._transition(rid, RewardStatus.PENDING, RewardStatus.FAILED)
        if reward is None:
            return False
        reward.failure_reason = reason
        log.warning("Reward %s failed: %s; rounds stay blocked until retried", rid, reason)
        return True

    def retry(self, rid: str) -> bool:
        return self._transition(rid, RewardStatus.FAILED, RewardStatus.PENDING) is not None

    def _transition(
        self, rid: str, expected: RewardStatus, target: RewardStatus
    ) -> Optional[PendingReward]:
        reward = self._by_id.get(rid)
        if reward is None:
            log.debug("Reward %s not found; ignoring %s", rid, target.value)
            return None
        if reward.status is not expected:
            log.debug(
                "Reward %s is %s, not %s; ignoring %s",
                rid,
                reward.status.value,
                expected.value,
                target.value,
            )
            return None
        reward.status = target
        return reward

    def _evict(self) -> None:
        while len(self._rewards) > self.history_limit:
            for i in range(len(self._rewards) - 1, -1, -1):
                if not self._rewards[i].unresolved:
                    del self._by_id[self._rewards.pop(i).id]
                    break
            else:
                return

    def unresolved(self) -> List[PendingReward]:
        return [r for r in self._rewards if r.unresolved]

    def recent(self, limit: int = 20) -> List[PendingReward]:
        return self._rewards[:limit]

    def stats(self) -> WinnerStats:
        return WinnerStats(
            total_winners=self._total_winners,
            total_winnings=sum(self._totals.values(), ZERO),
            slot_winnings=self._totals[DrawKind.SLOT],
            lightning_winnings=self._totals[DrawKind.LIGHTNING],
            pending_amount=sum((r.amount for r in self.unresolved()), ZERO),
            last_winner=self._last_confirmed,
        )
