from decimal import Decimal

import pytest

from conftest import APPLE_PAIR, APPLES, CROWNS, NO_MATCH
from slot_storm.draw import DrawEngine, EngineState, compute_prize, evaluate_symbols, spin_symbols
from slot_storm.fees import FeeAccumulator
from slot_storm.ledger import RewardLedger
from slot_storm.models import DrawKind, RewardStatus, SkipReason, WinTier
from slot_storm.tickets import allocate
from slot_storm.weather import WeatherController


@pytest.mark.parametrize(
    "symbols, tier, multiplier",
    [
        (("👑", "👑", "👑"), WinTier.JACKPOT, 50),
        (("🎰", "🎰", "🎰"), WinTier.JACKPOT, 50),
        (("💎", "💎", "💎"), WinTier.LARGE, 10),
        (("⚡", "⚡", "⚡"), WinTier.LARGE, 10),
        (("🍒", "🍒", "🍒"), WinTier.MEDIUM, 5),
        (("🍎", "🍎", "🍊"), WinTier.SMALL, 2),
        (("👑", "🍇", "👑"), WinTier.SMALL, 2),
        (("⚡", "⚡", "🔥"), WinTier.SMALL, 2),
        (("⚡", "🔥", "🍒"), WinTier.MEDIUM, 8),
        (("🔥", "💰", "⚡"), WinTier.MEDIUM, 8),
        (("⚡", "🍒", "🍎"), WinTier.NONE, 0),
        (("🍎", "🍊", "🍇"), WinTier.NONE, 0),
    ],
)
def test_evaluate_symbols(symbols, tier, multiplier):
    assert evaluate_symbols(symbols) == (tier, Decimal(multiplier))


def test_spin_symbols_follows_tier_table(rng):
    rng.script(*APPLES)
    assert spin_symbols(rng) == ("🍎", "🍎", "🍎")
    rng.script(*CROWNS)
    assert spin_symbols(rng) == ("👑", "👑", "👑")
    rng.script(0.69, 0.99, 0.71, 0.5, 0.96, 0.25)
    assert spin_symbols(rng) == ("🍒", "🔥", "🏆")


def test_compute_prize_slot_and_lightning():
    assert compute_prize(DrawKind.SLOT, Decimal(1), Decimal(5), Decimal(1)) == Decimal("0.5")
    # 10% of the pool is capped at 1 SOL
    assert compute_prize(DrawKind.SLOT, Decimal(100), Decimal(2), Decimal(1)) == Decimal(2)
    assert compute_prize(DrawKind.LIGHTNING, Decimal(2), Decimal(1), Decimal(1)) == Decimal("0.1")
    assert compute_prize(DrawKind.LIGHTNING, Decimal(100), Decimal(1), Decimal(1)) == Decimal("0.5")


def test_prize_never_exceeds_pool():
    assert compute_prize(DrawKind.SLOT, Decimal(1), Decimal(50), Decimal(3)) == Decimal(1)


def test_storm_triples_the_sunny_prize():
    sunny = compute_prize(DrawKind.SLOT, Decimal(10), Decimal(2), Decimal(1))
    storm = compute_prize(DrawKind.SLOT, Decimal(10), Decimal(2), Decimal(3))
    assert storm == sunny * 3


def test_prize_rounds_down_to_lamports():
    prize = compute_prize(DrawKind.SLOT, Decimal("0.123456789"), Decimal(1), Decimal("1.5"))
    assert prize == Decimal("0.018518518")


@pytest.fixture
def engine(rng, clock):
    fees = FeeAccumulator()
    ledger = RewardLedger()
    weather = WeatherController(rng, clock)
    return DrawEngine(fees, ledger, weather, rng, clock)


def test_slot_win_opens_reward_and_commits_pool(engine, rng, holders):
    engine.fees.record_claim(Decimal(1))
    rng.script(*APPLES, 0.1)
    outcome = engine.evaluate(DrawKind.SLOT, allocate(holders))

    assert outcome.won
    assert outcome.symbols == ("🍎", "🍎", "🍎")
    assert outcome.tier is WinTier.MEDIUM
    assert outcome.winner == "AliceWallet111"
    assert outcome.prize == Decimal("0.5")
    assert outcome.multiplier == Decimal(5)

    reward = engine.ledger.get(outcome.reward_id)
    assert reward.status is RewardStatus.PENDING
    assert reward.amount == Decimal("0.5")
    assert engine.fees.pool == 0
    assert engine.fees.outstanding == Decimal("0.5")
    assert not engine.fees.has_fresh_funds
    assert engine.state is EngineState.AWAITING_PAYOUT


def test_no_win_keeps_pool_and_gate(engine, rng, holders):
    engine.fees.record_claim(Decimal(1))
    rng.script(*NO_MATCH)
    outcome = engine.evaluate(DrawKind.SLOT, allocate(holders))

    assert not outcome.won
    assert outcome.skip_reason is SkipReason.NO_WIN
    assert outcome.symbols == ("🍎", "🍊", "🍇")
    assert outcome.winner is None
    assert engine.fees.pool == Decimal(1)
    assert engine.fees.has_fresh_funds
    assert engine.ledger.can_start_new_round
    assert engine.state is EngineState.IDLE


def test_stale_funds_are_never_distributed(engine, rng, holders):
    engine.fees.record_claim(Decimal(1))
    engine.fees.consume()
    rng.script(*APPLES, 0.1)
    outcome = engine.evaluate(DrawKind.SLOT, allocate(holders))

    assert outcome.skip_reason is SkipReason.STALE_FUNDS
    assert engine.fees.pool == Decimal(1)
    assert engine.ledger.recent() == []


def test_skips_without_holders_or_pool(engine, holders):
    engine.fees.record_claim(Decimal(1))
    assert engine.evaluate(DrawKind.SLOT, []).skip_reason is SkipReason.NO_HOLDERS

    engine.fees.reset_if_unfunded()
    outcome = engine.evaluate(DrawKind.LIGHTNING, allocate(holders))
    assert outcome.skip_reason is SkipReason.EMPTY_POOL


def test_lightning_always_wins_when_funded(engine, rng, holders):
    engine.fees.record_claim(Decimal(2))
    rng.script(0.95)
    outcome = engine.evaluate(DrawKind.LIGHTNING, allocate(holders))

    assert outcome.won
    assert outcome.symbols is None
    assert outcome.tier is WinTier.LIGHTNING
    assert outcome.winner == "BobWallet22222"
    assert outcome.prize == Decimal("0.1")
    assert engine.ledger.get(outcome.reward_id).kind is DrawKind.LIGHTNING


def test_lightning_below_minimum_is_skipped(engine, rng, holders):
    engine.fees.record_claim(Decimal("0.1"))  # 5% = 0.005 SOL
    rng.script(0.1)
    outcome = engine.evaluate(DrawKind.LIGHTNING, allocate(holders))

    assert outcome.skip_reason is SkipReason.BELOW_MINIMUM
    assert outcome.winner is None
    assert engine.fees.pool == Decimal("0.1")
    assert engine.ledger.can_start_new_round


def test_blocked_round_skips_both_draw_kinds(engine, rng, holders):
    engine.fees.record_claim(Decimal(1))
    rng.script(*APPLES, 0.1)
    first = engine.evaluate(DrawKind.SLOT, allocate(holders))
    assert first.won

    engine.fees.record_claim(Decimal(1))
    assert engine.evaluate(DrawKind.SLOT, allocate(holders)).skip_reason is SkipReason.ROUND_BLOCKED
    assert engine.evaluate(DrawKind.LIGHTNING, allocate(holders)).skip_reason is SkipReason.ROUND_BLOCKED
    assert len(engine.ledger.recent()) == 1
    assert engine.fees.pool == Decimal(1)


def test_weather_multiplier_scales_draw_prize(engine, rng, holders):
    engine.fees.record_claim(Decimal(10))
    rng.script(0.9)  # storm
    engine.weather.transition()
    rng.script(*APPLE_PAIR, 0.1)
    outcome = engine.evaluate(DrawKind.SLOT, allocate(holders))

    assert outcome.tier is WinTier.SMALL
    assert outcome.weather_multiplier == Decimal(3)
    assert outcome.multiplier == Decimal(6)
    assert outcome.prize == Decimal(6)
