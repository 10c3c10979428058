"""Spinner suffix for running tasks."""

from __future__ import annotations

import time
from typing import Callable, Sequence

FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


class Spinner:
    """Animated suffix: pass an instance as a task's ``suffix``.

    The frame is derived from elapsed time, so it advances with the render
    loop without a timer of its own.
    """

    def __init__(
        self,
        frames: Sequence[str] = FRAMES,
        interval: float = 0.08,
        color_fn: Callable[[str], str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not frames:
            raise ValueError("spinner needs at least one frame")
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.frames = list(frames)
        self.interval = interval
        self._color_fn = color_fn
        self._clock = clock
        self._start = clock()

    def frame(self) -> str:
        elapsed = self._clock() - self._start
        text = self.frames[int(elapsed / self.interval) % len(self.frames)]
        return self._color_fn(text) if self._color_fn is not None else text

    def __call__(self) -> str:
        return self.frame()
