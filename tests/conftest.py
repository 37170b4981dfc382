from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List

import pytest

from slot_storm.models import Holder


class ScriptedRandom(random.Random):
    """random() returns the scripted values in order, then falls back to a seeded stream."""

    def __init__(self, values: Iterable[float] = (), seed: int = 1234) -> None:
        super().__init__(seed)
        self.values: List[float] = list(values)

    def script(self, *values: float) -> None:
        self.values.extend(values)

    def random(self) -> float:
        if self.values:
            return self.values.pop(0)
        return super().random()


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# Two rng values per reel: tier roll, then symbol index within the tier.
APPLES = (0.0, 0.0) * 3            # 🍎 🍎 🍎  common triple -> medium x5
CROWNS = (0.99, 0.0) * 3           # 👑 👑 👑  legendary triple -> jackpot x50
APPLE_PAIR = (0.0, 0.0, 0.0, 0.0, 0.0, 0.3)  # 🍎 🍎 🍊 -> small x2
NO_MATCH = (0.0, 0.0, 0.0, 0.3, 0.0, 0.6)    # 🍎 🍊 🍇 -> no win


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture
def holders() -> List[Holder]:
    return [
        Holder("AliceWallet111", Decimal(5000)),
        Holder("BobWallet22222", Decimal(1000)),
    ]
