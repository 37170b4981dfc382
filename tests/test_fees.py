from decimal import Decimal

import pytest

from slot_storm.fees import CreatorFeeTracker, FeeAccumulator


def test_claims_are_absolute_not_additive():
    fees = FeeAccumulator()
    fees.record_claim(Decimal("0.4"))
    fees.record_claim(Decimal("0.7"))
    assert fees.pool == Decimal("0.7")
    assert fees.has_fresh_funds


def test_reset_drops_unconfirmed_pool():
    fees = FeeAccumulator()
    fees.record_claim(Decimal(1))
    fees.reset_if_unfunded()
    assert fees.pool == 0
    assert not fees.has_fresh_funds
    assert not fees.is_stale


def test_consume_makes_remaining_pool_stale():
    fees = FeeAccumulator()
    fees.record_claim(Decimal(1))
    fees.consume()
    assert fees.pool == Decimal(1)
    assert fees.is_stale


def test_commit_and_settle_track_outstanding():
    fees = FeeAccumulator()
    fees.record_claim(Decimal(1))
    fees.commit(Decimal("0.3"))
    assert fees.pool == 0
    assert fees.outstanding == Decimal("0.3")
    assert not fees.has_fresh_funds

    fees.settle(Decimal("0.3"))
    assert fees.outstanding == 0
    fees.settle(Decimal("0.1"))
    assert fees.outstanding == 0


def test_negative_claim_is_rejected():
    with pytest.raises(ValueError):
        FeeAccumulator().record_claim(Decimal("-1"))


def test_volume_above_threshold_splits_fees(clock):
    tracker = CreatorFeeTracker(dev_wallet="dev")
    # $300 / $150 per SOL * 1% = 0.02 SOL
    share = tracker.process_volume(Decimal(300), clock.now)
    assert share == Decimal("0.01")
    assert tracker.total_fees == Decimal("0.02")
    assert tracker.available_dev_fees == Decimal("0.01")
    assert tracker.total_lottery_share == Decimal("0.01")
    assert tracker.last_processed_at == clock.now


def test_low_volume_accumulates_until_threshold(clock):
    tracker = CreatorFeeTracker()
    assert tracker.process_volume(Decimal(10), clock.now) is None
    assert tracker.accumulated_fees > 0
    carried = tracker.accumulated_fees

    share = tracker.process_volume(Decimal(300), clock.now)
    assert share == (Decimal("0.02") + carried) / 2
    assert tracker.accumulated_fees == 0
    assert tracker.total_volume_usd == Decimal(310)


def test_no_volume_or_dust_claims_nothing(clock):
    tracker = CreatorFeeTracker()
    assert tracker.process_volume(Decimal(0), clock.now) is None
    assert tracker.process_volume(Decimal("0.1"), clock.now) is None
    assert tracker.accumulated_fees == 0


def test_mark_dev_fees_claimed(clock):
    tracker = CreatorFeeTracker(dev_wallet="dev")
    tracker.process_volume(Decimal(300), clock.now)
    claimed, remaining, wallet = tracker.mark_dev_fees_claimed(clock.now)
    assert (claimed, remaining, wallet) == (Decimal("0.01"), 0, "dev")
    assert tracker.dev_fees_claimed_at == clock.now
