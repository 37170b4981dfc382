from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Optional, Set, Tuple

from .draw import DrawEngine
from .fees import FeeAccumulator
from .ledger import RewardLedger
from .models import (
    DrawKind,
    DrawOutcome,
    Holder,
    LotterySnapshot,
    Participant,
    PendingReward,
    RewardStatus,
    TicketedHolder,
    WinnerStats,
    utcnow,
)
from .payouts import PayoutResult, PayoutSubmitter
from .project_constants import LIGHTNING_DELAY_S, SLOT_INTERVAL_S, WEATHER_DELAY_S
from .scheduler import RecurringTask
from .tickets import allocate, total_tickets
from .weather import WeatherController, random_interval

log = logging.getLogger(__name__)

Listener = Callable[[str, Any], None]


@dataclass(frozen=True)
class LotteryTimings:
    slot_interval_s: float = SLOT_INTERVAL_S
    lightning_delay_s: Tuple[float, float] = LIGHTNING_DELAY_S
    weather_delay_s: Tuple[float, float] = WEATHER_DELAY_S
    payout_timeout_s: float = 30.0


class LotteryFacade:
    """
    One token's lottery: holders, funding, draws, rewards and their timers.

    All state is owned by the instance. Draw evaluation is synchronous and
    commits the prize before the payout is awaited, so a timer firing while
    a payout is in flight always sees the round gate closed.
    """

    def __init__(
        self,
        token_mint: str,
        payouts: Optional[PayoutSubmitter] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
        timings: Optional[LotteryTimings] = None,
    ) -> None:
        self.token_mint = token_mint
        self.payouts = payouts
        self.clock = clock
        self.timings = timings or LotteryTimings()
        self._rng = rng or random.Random()

        self.fees = FeeAccumulator()
        self.ledger = RewardLedger()
        self.weather = WeatherController(self._rng, clock)
        self.weather.add_listener(lambda state: self._emit("weather-changed", state))
        self.engine = DrawEngine(self.fees, self.ledger, self.weather, self._rng, clock)

        self.is_running = False
        self._holders: List[TicketedHolder] = []
        self._listeners: List[Listener] = []
        self._in_flight: Set[str] = set()

        self._slot_timer = RecurringTask(
            "slot draw", self._on_slot_timer, lambda: self.timings.slot_interval_s, clock
        )
        self._lightning_timer = RecurringTask(
            "lightning strike", self._on_lightning_timer, self._lightning_delay, clock
        )
        self._weather_timer = RecurringTask(
            "weather change", self._on_weather_timer, self._weather_delay, clock
        )

    # ---------- lifecycle ----------

    @property
    def _timers(self) -> Tuple[RecurringTask, ...]:
        return self._slot_timer, self._lightning_timer, self._weather_timer

    async def start(self) -> None:
        if self.is_running:
            return
        self.is_running = True
        self.weather.reset()
        for timer in self._timers:
            timer.start()
        log.info("Starting Slot Storm for token %s", self.token_mint)
        self._emit("lottery-started", self.token_mint)

    async def stop(self) -> None:
        if not self.is_running:
            return
        self.is_running = False
        for timer in self._timers:
            await timer.stop()
        log.info("Stopped Slot Storm for token %s", self.token_mint)
        self._emit("lottery-stopped", self.token_mint)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: str, payload: Any) -> None:
        for listener in self._listeners:
            try:
                listener(event, payload)
            except Exception:
                log.exception("Listener failed on %s", event)

    # ---------- inputs ----------

    @property
    def holders(self) -> List[TicketedHolder]:
        return list(self._holders)

    def update_holders(self, holders: Iterable[Holder]) -> List[TicketedHolder]:
        eligible = sorted(
            (h for h in holders if h.token_balance > 0), key=lambda h: h.wallet_address
        )
        self._holders = allocate(eligible)
        log.info(
            "Updated lottery with %d participants (%d tickets)",
            len(self._holders),
            total_tickets(self._holders),
        )
        self._emit("holders-updated", len(self._holders))
        return self.holders

    def inject_claimed_fees(self, amount: Decimal) -> None:
        self.fees.record_claim(amount)
        self._emit("prize-pool-updated", self.fees.pool)

    def reset_unfunded(self) -> None:
        self.fees.reset_if_unfunded()
        self._emit("prize-pool-updated", self.fees.pool)

    # ---------- draws ----------

    async def force_draw(self, kind: DrawKind = DrawKind.SLOT) -> DrawOutcome:
        """Runs a draw now. Funding and round-gate preconditions still apply."""
        return await self._run_draw(kind)

    async def _run_draw(self, kind: DrawKind) -> DrawOutcome:
        outcome = self.engine.evaluate(kind, self._holders)
        self._emit("slot-result" if kind is DrawKind.SLOT else "lightning-strike", outcome)
        if outcome.reward_id is not None:
            self._emit("reward-opened", self.ledger.get(outcome.reward_id))
            self._emit("prize-pool-updated", self.fees.pool)
            await self._submit(outcome.reward_id)
        return outcome

    async def _on_slot_timer(self) -> None:
        await self._run_draw(DrawKind.SLOT)

    async def _on_lightning_timer(self) -> None:
        await self._run_draw(DrawKind.LIGHTNING)

    async def _on_weather_timer(self) -> None:
        self.weather.transition()

    def _lightning_delay(self) -> float:
        low, high = self.timings.lightning_delay_s
        return random_interval(self._rng, low, high)

    def _weather_delay(self) -> float:
        return self.weather.next_interval(self.timings.weather_delay_s)

    # ---------- payouts ----------

    async def _submit(self, rid: str) -> None:
        if self.payouts is None:
            log.info("No payout submitter configured; reward %s awaits manual confirmation", rid)
            return
        reward = self.ledger.get(rid)
        if reward is None or reward.status is not RewardStatus.PENDING or rid in self._in_flight:
            return

        self._in_flight.add(rid)
        reward.attempts += 1
        try:
            result = await asyncio.wait_for(
                self.payouts.submit_payout(reward.winner, reward.amount),
                timeout=self.timings.payout_timeout_s,
            )
        except asyncio.TimeoutError:
            result = PayoutResult.failed(
                f"payout timed out after {self.timings.payout_timeout_s}s"
            )
        except asyncio.CancelledError:
            self._fail(reward, "payout interrupted by shutdown; verify on-chain before retrying")
            raise
        except Exception as e:
            log.exception("Payout submission for reward %s raised", rid)
            result = PayoutResult.failed(f"{type(e).__name__}: {e}")
        finally:
            self._in_flight.discard(rid)

        if result.success and result.tx_ref:
            self._confirm(reward, result.tx_ref)
        else:
            self._fail(reward, result.reason or "payout rejected")

    def _confirm(self, reward: PendingReward, tx_ref: str) -> bool:
        if not self.ledger.confirm(reward.id, tx_ref):
            return False
        self.fees.settle(reward.amount)
        self._emit("reward-confirmed", reward)
        return True

    def _fail(self, reward: PendingReward, reason: str) -> bool:
        if not self.ledger.fail(reward.id, reason):
            return False
        self._emit("reward-failed", reward)
        return True

    def confirm_reward(self, rid: str, tx_ref: str) -> bool:
        reward = self.ledger.get(rid)
        if reward is None or rid in self._in_flight:
            return False
        return self._confirm(reward, tx_ref)

    def fail_reward(self, rid: str, reason: str) -> bool:
        reward = self.ledger.get(rid)
        if reward is None or rid in self._in_flight:
            return False
        return self._fail(reward, reason)

    async def retry_reward(self, rid: str) -> bool:
        """Moves a failed reward back to pending and re-submits it if a submitter is configured."""
        if not self.ledger.retry(rid):
            return False
        log.info("Reward %s queued for retry", rid)
        await self._submit(rid)
        return True

    # ---------- reads ----------

    def snapshot(self) -> LotterySnapshot:
        total = total_tickets(self._holders)
        paused = not self.ledger.can_start_new_round
        next_draw_at = None
        if self.is_running and not paused:
            next_draw_at = self._slot_timer.next_run_at

        participants = [
            Participant(
                address=h.wallet_address,
                balance=h.token_balance,
                tickets=h.tickets,
                win_chance=h.tickets / total * 100 if total else 0.0,
            )
            for h in sorted(self._holders, key=lambda h: h.tickets, reverse=True)
        ]
        return LotterySnapshot(
            token_mint=self.token_mint,
            is_running=self.is_running,
            prize_pool=self.fees.pool,
            outstanding=self.fees.outstanding,
            has_fresh_funds=self.fees.has_fresh_funds,
            weather=self.weather.current,
            holder_count=len(self._holders),
            total_tickets=total,
            draws_paused=paused,
            next_draw_at=next_draw_at,
            participants=participants,
        )

    def recent_winners(self, limit: int = 20) -> List[PendingReward]:
        return self.ledger.recent(limit)

    def winner_stats(self) -> WinnerStats:
        return self.ledger.stats()

    def pending_rewards(self) -> List[PendingReward]:
        return self.ledger.unresolved()
