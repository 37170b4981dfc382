import asyncio
from decimal import Decimal

import httpx
import pytest

from slot_storm.fees import CreatorFeeTracker
from slot_storm.lottery import LotteryFacade
from slot_storm.models import Holder
from slot_storm.service import SlotStormService


class FakeHolderSource:
    def __init__(self, *responses):
        self.responses = list(responses)

    async def fetch_holders(self, token_mint):
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeFeeSource(FakeHolderSource):
    async def fetch_claimable_fees(self, token_mint):
        return await self.fetch_holders(token_mint)


def make_service(rng, clock, holders=(), fees=()):
    lottery = LotteryFacade("MintXYZ", rng=rng, clock=clock)
    return SlotStormService(lottery, FakeHolderSource(*holders), FakeFeeSource(*fees))


def test_holder_refresh_replaces_set(rng, clock, holders):
    service = make_service(rng, clock, holders=[holders, holders[:1]])
    assert asyncio.run(service.refresh_holders())
    assert len(service.lottery.holders) == 2
    assert asyncio.run(service.refresh_holders())
    assert [h.wallet_address for h in service.lottery.holders] == ["AliceWallet111"]


def test_failed_holder_fetch_keeps_previous_holders(rng, clock, holders):
    service = make_service(
        rng,
        clock,
        holders=[holders, httpx.ConnectError("indexer down"), RuntimeError("RPC error: 429")],
    )
    asyncio.run(service.refresh_holders())
    assert not asyncio.run(service.refresh_holders())
    assert not asyncio.run(service.refresh_holders())
    assert len(service.lottery.holders) == 2


def test_fee_check_records_claim_or_resets(rng, clock):
    service = make_service(
        rng,
        clock,
        fees=[Decimal("0.2"), None, Decimal("0.3"), httpx.ReadTimeout("slow")],
    )
    fees = service.lottery.fees

    assert asyncio.run(service.check_fees())
    assert (fees.pool, fees.has_fresh_funds) == (Decimal("0.2"), True)

    assert not asyncio.run(service.check_fees())
    assert (fees.pool, fees.has_fresh_funds) == (0, False)

    asyncio.run(service.check_fees())
    assert not asyncio.run(service.check_fees())
    assert (fees.pool, fees.has_fresh_funds) == (0, False)


def test_start_primes_state_and_stop_tears_down(rng, clock):
    service = make_service(
        rng,
        clock,
        holders=[[Holder("w1", Decimal(4000))]],
        fees=[Decimal("0.5")],
    )

    async def scenario():
        await service.start()
        running = service.lottery.is_running
        await service.stop()
        return running

    assert asyncio.run(scenario())
    assert not service.lottery.is_running
    assert service.lottery.holders[0].tickets == 4
    assert service.lottery.fees.pool == Decimal("0.5")


def test_mark_dev_fees_claimed_uses_shared_tracker(rng, clock):
    tracker = CreatorFeeTracker(dev_wallet="DevWallet")
    tracker.process_volume(Decimal(300), clock.now)
    lottery = LotteryFacade("MintXYZ", rng=rng, clock=clock)
    service = SlotStormService(
        lottery, FakeHolderSource(), FakeFeeSource(), fee_tracker=tracker
    )

    assert service.mark_dev_fees_claimed() == (Decimal("0.01"), 0, "DevWallet")
    assert tracker.dev_fees_claimed_at == clock.now
    assert service.mark_dev_fees_claimed()[0] == 0


def test_mark_dev_fees_claimed_needs_a_tracker(rng, clock):
    service = make_service(rng, clock)
    with pytest.raises(RuntimeError, match="fee tracker"):
        service.mark_dev_fees_claimed()
