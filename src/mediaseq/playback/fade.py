"""Pausable linear fade animations driven by the event loop."""

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class Ramp:
    """One animated property: a linear ramp from `start` to `end`."""

    start: float
    end: float
    apply: Callable[[float], None]

    def value_at(self, progress: float) -> float:
        return self.start + (self.end - self.start) * progress


class FadeAnimation:
    """
    Animate several properties together over a fixed duration.

    The animation advances only while running: time spent paused is not
    counted. Stopping it resolves the completion future without applying
    the final values.
    """

    def __init__(self, ramps: Dict[str, Ramp], duration: float, step: float = 0.05):
        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")
        self.ramps = ramps
        self.duration = max(duration, 0.0)
        self.step = step
        self._running = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._done: Optional[asyncio.Future] = None

    @property
    def paused(self) -> bool:
        return self._task is not None and not self._running.is_set()

    def start(self) -> asyncio.Future:
        """
        Start the animation.

        Returns:
            Future resolved once the animation completes or is stopped
        """
        if self._done is not None:
            return self._done

        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        self._running.set()
        self._task = loop.create_task(self._run())
        self._task.add_done_callback(self._finish)
        return self._done

    def pause(self) -> None:
        self._running.clear()

    def resume(self) -> None:
        self._running.set()

    def stop(self) -> None:
        """Abandon the animation where it is."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._done is not None and not self._done.done():
            self._done.set_result(None)

    def _apply(self, progress: float) -> None:
        for ramp in self.ramps.values():
            ramp.apply(ramp.value_at(progress))

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        elapsed = 0.0

        while elapsed < self.duration:
            await self._running.wait()
            tick_start = loop.time()
            await asyncio.sleep(self.step)
            if not self._running.is_set():
                # paused during the step, the step does not count
                continue
            elapsed += loop.time() - tick_start
            self._apply(min(elapsed / self.duration, 1.0))

        self._apply(1.0)

    def _finish(self, task: asyncio.Task) -> None:
        if self._done is None or self._done.done():
            return
        if task.cancelled():
            self._done.set_result(None)
        elif task.exception() is not None:
            self._done.set_exception(task.exception())
        else:
            self._done.set_result(None)
