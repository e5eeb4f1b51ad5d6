"""Shared fixtures for all tests."""

import asyncio
import heapq
import itertools

import pytest

from statcraft.config import Settings, get_settings
from statcraft.effects import EffectApplier
from statcraft.stats import StatDefinition, StatValue


class ManualClock:
    """
    Deterministic replacement for ``asyncio.sleep``.

    Sleepers wake only when the test calls :meth:`advance`, in deadline
    order, with the loop settled between wake-ups so chained sleeps (tick
    loops) register against the right time.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._sequence = itertools.count()

    @property
    def pending(self) -> int:
        return sum(1 for _, _, future in self._sleepers if not future.done())

    async def sleep(self, delay: float) -> None:
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + delay, next(self._sequence), future))
        await future

    @staticmethod
    async def settle(rounds: int = 25) -> None:
        """Let every ready task run until the loop goes quiet."""
        for _ in range(rounds):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self.now = deadline
            if not future.done():
                future.set_result(None)
            await self.settle()
        self.now = target


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Keep cached settings from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def settings() -> Settings:
    """Settings reproducing the reference behaviour."""
    return Settings(interrupt_cancelled_waits=False, prevent_replaces_tick_loops=False)


@pytest.fixture
def strict_settings() -> Settings:
    """Settings with interrupting waits and replacing Prevent tick loops."""
    return Settings(interrupt_cancelled_waits=True, prevent_replaces_tick_loops=True)


@pytest.fixture
def make_stat(clock: ManualClock):
    """Factory for numeric stats driven by the manual clock."""

    def _make(
        base: float = 100.0,
        min_value: float = 0.0,
        max_value: float = 1000.0,
        stat_id: str = "strength",
        interrupt: bool = False,
    ) -> StatValue:
        definition = StatDefinition(
            stat_id=stat_id, base_value=base, min_value=min_value, max_value=max_value
        )
        return StatValue(definition, sleep=clock.sleep, interrupt_cancelled_waits=interrupt)

    return _make


@pytest.fixture
async def applier(settings: Settings):
    applier = EffectApplier(settings)
    yield applier
    await applier.aclose()


@pytest.fixture
async def strict_applier(strict_settings: Settings):
    applier = EffectApplier(strict_settings)
    yield applier
    await applier.aclose()
