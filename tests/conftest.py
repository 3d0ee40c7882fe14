from typing import Any, Callable, List, Optional, Tuple

import pytest

from climate_controller.config import AppConfig
from climate_controller.service import ClimateService
from climate_controller.store import MemoryStore


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeScheduler:
    def __init__(self) -> None:
        self.delays: List[float] = []
        self.callback: Optional[Callable[[], Any]] = None
        self.cancelled = 0

    @property
    def last_delay(self) -> Optional[float]:
        return self.delays[-1] if self.delays else None

    def schedule(self, delay_seconds: float, callback: Callable[[], Any]) -> None:
        self.delays.append(delay_seconds)
        self.callback = callback

    def cancel(self) -> None:
        self.cancelled += 1
        self.callback = None


class FakeOutput:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.sent: List[Tuple[bool, bool]] = []
        self.error = error

    def send(self, heating: bool, cooling: bool) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((heating, cooling))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_000_000.0)


@pytest.fixture
def make_service(clock: FakeClock) -> Callable[..., ClimateService]:
    def _make(
        config: Optional[AppConfig] = None,
        store: Optional[MemoryStore] = None,
        output_error: Optional[Exception] = None,
    ) -> ClimateService:
        return ClimateService(
            config or AppConfig(),
            store if store is not None else MemoryStore(),
            output=FakeOutput(error=output_error),
            scheduler=FakeScheduler(),
            clock=clock,
        )

    return _make
