import threading
from typing import Callable


class TurnTimer:
    """One countdown for one turn of one room.

    ``on_tick(timer, remaining)`` is called at ``duration``, ``duration - 1``
    ... ``0`` one second apart and returns False to stop the countdown (the
    room moved on). ``on_expire(timer)`` fires once after the zero tick.
    A cancelled timer never calls back again.
    """

    def __init__(self, duration: int, on_tick: Callable, on_expire: Callable,
                 spawn: Callable, sleep: Callable):
        self.duration = duration
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._spawn = spawn
        self._sleep = sleep
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> None:
        self._spawn(self._run)

    def cancel(self) -> None:
        self._cancelled.set()

    def _run(self) -> None:
        remaining = self.duration
        while True:
            if self.cancelled or not self._on_tick(self, remaining):
                return
            if remaining <= 0:
                break
            self._sleep(1)
            remaining -= 1
        if not self.cancelled:
            self._on_expire(self)
