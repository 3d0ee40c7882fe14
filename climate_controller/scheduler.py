import threading
from typing import Any, Callable, Optional


class TickScheduler:
    """Holds at most one pending future tick.

    Scheduling a new tick cancels the previous one. A timer that already
    fired but lost the race against a cancel does not run its callback.
    """

    def __init__(self, timer_factory: Optional[Callable[..., Any]] = None) -> None:
        self._timer_factory = timer_factory or threading.Timer
        self._timer: Optional[Any] = None
        self._token: Optional[object] = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        with self._lock:
            self._cancel_locked()
            token = object()
            timer = self._timer_factory(max(0.0, delay_seconds), self._fire, args=(token, callback))
            timer.daemon = True
            self._timer = timer
            self._token = token
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _fire(self, token: object, callback: Callable[[], None]) -> None:
        with self._lock:
            if token is not self._token:
                return
            self._timer = None
            self._token = None
        callback()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._token = None
