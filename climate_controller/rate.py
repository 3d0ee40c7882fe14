from collections import deque
from typing import Deque, List, Optional

from .models import RateSample

RATE_WINDOW_SECONDS = 5 * 60
MIN_RATE_SPAN_SECONDS = 30


class RateEstimator:
    """Rate of temperature change in degrees per minute over a short sliding window."""

    def __init__(
        self,
        window_seconds: float = RATE_WINDOW_SECONDS,
        min_span_seconds: float = MIN_RATE_SPAN_SECONDS,
    ) -> None:
        self._window_seconds = window_seconds
        self._min_span_seconds = min_span_seconds
        self._samples: Deque[RateSample] = deque()
        self._rate = 0.0

    @property
    def rate(self) -> float:
        """Rate returned by the most recent call to record."""
        return self._rate

    @property
    def last_time(self) -> Optional[float]:
        return self._samples[-1].time if self._samples else None

    @property
    def samples(self) -> List[RateSample]:
        return list(self._samples)

    def record(self, temperature: float, now: float) -> float:
        if self._samples and now < self._samples[-1].time:
            # keep the window ordered if the clock steps backwards
            self._samples.clear()
        self._samples.append(RateSample(temperature=temperature, time=now))
        while self._samples and now - self._samples[0].time > self._window_seconds:
            self._samples.popleft()

        self._rate = self._compute()
        return self._rate

    def clear(self) -> None:
        self._samples.clear()
        self._rate = 0.0

    def _compute(self) -> float:
        if len(self._samples) < 2:
            return 0.0
        oldest = self._samples[0]
        newest = self._samples[-1]
        span = newest.time - oldest.time
        if span < self._min_span_seconds:
            return 0.0
        return (newest.temperature - oldest.temperature) / (span / 60.0)
