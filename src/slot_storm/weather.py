from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from .models import WeatherKind, WeatherState, utcnow
from .project_constants import WEATHER_DELAY_S, WEATHER_TABLE, WEATHER_WEIGHTS

log = logging.getLogger(__name__)

WeatherListener = Callable[[WeatherState], None]


def weather_state(kind: WeatherKind, started_at: datetime) -> WeatherState:
    multiplier, duration_s = WEATHER_TABLE[kind.value]
    return WeatherState(
        kind=kind,
        multiplier=multiplier,
        started_at=started_at,
        duration=timedelta(seconds=duration_s),
    )


def random_interval(rng: random.Random, low: float, high: float) -> float:
    """Uniform delay in [low, high), drawn with a single rng.random() call."""
    return low + rng.random() * (high - low)


class WeatherController:
    """
    Holds the active weather and picks the next one.

    The controller does not own a timer: the lottery re-arms a fresh
    next_interval() after every transition and tears it down on stop.
    """

    def __init__(
        self,
        rng: random.Random,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._rng = rng
        self._clock = clock
        self._listeners: List[WeatherListener] = []
        self.current = weather_state(WeatherKind.SUNNY, clock())

    @property
    def multiplier(self) -> Decimal:
        return self.current.multiplier

    def add_listener(self, listener: WeatherListener) -> None:
        self._listeners.append(listener)

    def reset(self) -> WeatherState:
        self.current = weather_state(WeatherKind.SUNNY, self._clock())
        return self.current

    def pick_kind(self) -> WeatherKind:
        roll = self._rng.random()
        cumulative = 0.0
        for name, weight in WEATHER_WEIGHTS:
            cumulative += weight
            if roll < cumulative:
                return WeatherKind(name)
        return WeatherKind(WEATHER_WEIGHTS[-1][0])

    def transition(self) -> WeatherState:
        self.current = weather_state(self.pick_kind(), self._clock())
        log.info(
            "Weather changed to %s (%sx multiplier)",
            self.current.kind.value,
            self.current.multiplier,
        )
        for listener in self._listeners:
            listener(self.current)
        return self.current

    def next_interval(self, bounds: Optional[Tuple[float, float]] = None) -> float:
        low, high = bounds or WEATHER_DELAY_S
        return random_interval(self._rng, low, high)
