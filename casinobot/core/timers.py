"""
Soft phase deadlines.

A PhaseTimer checks a wall-clock deadline once per tick and calls back when
it has passed. Each timer is tagged with the round it was created for, and
tables ignore callbacks for a round that is no longer current.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from discord.ext import tasks

from .utility import now_ms

TICK_SECONDS = 1.0

ExpireCallback = Callable[[int], Awaitable[object]]
TickCallback = Callable[[int, int], Awaitable[None]]


class PhaseTimer:
    def __init__(
        self,
        round_id: int,
        deadline_ms: int,
        on_expire: ExpireCallback,
        on_tick: Optional[TickCallback] = None,
        clock: Callable[[], int] = now_ms,
        interval: float = TICK_SECONDS,
    ):
        self.round_id = round_id
        self.deadline_ms = deadline_ms
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.clock = clock
        self.interval = interval
        self.active = True
        self._loop: tasks.Loop | None = None

    def start(self):
        if self._loop is None:
            self._loop = tasks.loop(seconds=self.interval)(self.tick)
        self._loop.start()

    def extend(self, ms: int):
        self.deadline_ms += ms

    def remaining_ms(self) -> int:
        return max(0, self.deadline_ms - self.clock())

    def cancel(self):
        self.active = False
        # stop() lets the current tick finish, so a timer may cancel itself
        if self._loop is not None and self._loop.is_running():
            self._loop.stop()

    async def tick(self):
        if not self.active:
            return
        left = self.remaining_ms()
        if left == 0:
            self.cancel()
            await self.on_expire(self.round_id)
        elif self.on_tick is not None:
            await self.on_tick(self.round_id, left)


class TimerFactory:
    """Creates timers for tables. With run=False timers are tracked but never ticked."""

    def __init__(self, clock: Callable[[], int] = now_ms, run: bool = True):
        self.clock = clock
        self.run = run

    def __call__(
        self,
        round_id: int,
        deadline_ms: int,
        on_expire: ExpireCallback,
        on_tick: Optional[TickCallback] = None,
    ) -> PhaseTimer:
        timer = PhaseTimer(round_id, deadline_ms, on_expire, on_tick, clock=self.clock)
        if self.run:
            timer.start()
        return timer
