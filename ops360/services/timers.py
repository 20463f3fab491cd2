"""Keyed, time-triggered callbacks executed by a worker pool."""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass(order=True)
class _Timer:
    fire_at: datetime
    seq: int
    key: str = field(compare=False)
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)
    started: bool = field(default=False, compare=False)


class TimerService:
    """Priority queue of ``(fire_at, callback)`` entries keyed by string.

    Scheduling an existing key replaces the previous entry. A callback is
    claimed under the lock right before it runs: once ``cancel`` has
    returned ``True`` the callback will never run, and ``cancel`` returns
    ``False`` when the callback is already running or unknown.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        max_workers: int = 4,
        poll_seconds: float = 30.0,
    ) -> None:
        self._clock = clock
        self._max_workers = max_workers
        self._poll_seconds = poll_seconds
        self._heap: list[_Timer] = []
        self._timers: dict[str, _Timer] = {}
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._stopping = False

    def schedule(self, key: str, fire_at: datetime, callback: Callable[[], None]) -> None:
        with self._cond:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancelled = True
            timer = _Timer(fire_at=fire_at, seq=next(self._seq), key=key, callback=callback)
            heapq.heappush(self._heap, timer)
            self._timers[key] = timer
            self._cond.notify()
        logger.debug("Timer %s scheduled for %s", key, fire_at)

    def cancel(self, key: str) -> bool:
        with self._cond:
            timer = self._timers.pop(key, None)
            if timer is None or timer.started:
                return False
            timer.cancelled = True
        logger.debug("Timer %s cancelled", key)
        return True

    def is_pending(self, key: str) -> bool:
        with self._cond:
            return key in self._timers

    def pending(self) -> dict[str, datetime]:
        with self._cond:
            return {key: timer.fire_at for key, timer in self._timers.items()}

    def run_pending(self, now: datetime | None = None) -> int:
        """Run every callback due at ``now`` in the calling thread."""
        due = self._pop_due(now or self._clock())
        return sum(1 for timer in due if self._run(timer))

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stopping = False
        self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="ops360-timer")
        self._thread = threading.Thread(target=self._loop, name="ops360-timers", daemon=True)
        self._thread.start()
        logger.info("Timer service started with %d worker(s)", self._max_workers)

    def stop(self, wait: bool = True) -> None:
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        logger.info("Timer service stopped")

    def _loop(self) -> None:
        while True:
            with self._cond:
                if self._stopping:
                    return
                timeout = self._poll_seconds
                if self._heap:
                    until_next = (self._heap[0].fire_at - self._clock()).total_seconds()
                    timeout = max(0.0, min(timeout, until_next))
                if timeout > 0:
                    self._cond.wait(timeout)
                if self._stopping:
                    return
            for timer in self._pop_due(self._clock()):
                self._executor.submit(self._run, timer)

    def _pop_due(self, now: datetime) -> list[_Timer]:
        due: list[_Timer] = []
        with self._cond:
            while self._heap and self._heap[0].fire_at <= now:
                timer = heapq.heappop(self._heap)
                if not timer.cancelled:
                    due.append(timer)
        return due

    def _run(self, timer: _Timer) -> bool:
        with self._cond:
            if timer.cancelled:
                return False
            timer.started = True
            if self._timers.get(timer.key) is timer:
                del self._timers[timer.key]
        try:
            timer.callback()
        except Exception:  # noqa: BLE001
            logger.exception("Timer %s failed", timer.key)
        return True
