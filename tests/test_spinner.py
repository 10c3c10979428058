"""Tests for tasklog.spinner -- time-driven suffix frames."""

from __future__ import annotations

import pytest

from tasklog.spinner import FRAMES, Spinner
from tasklog.task import Task, TaskRegistry


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestSpinner:
    def test_first_frame(self) -> None:
        spinner = Spinner(clock=FakeClock())
        assert spinner() == FRAMES[0]

    def test_advances_with_time(self) -> None:
        clock = FakeClock()
        spinner = Spinner(interval=0.1, clock=clock)
        clock.now += 0.25
        assert spinner.frame() == FRAMES[2]

    def test_wraps_around(self) -> None:
        clock = FakeClock()
        spinner = Spinner(frames=["a", "b"], interval=1.0, clock=clock)
        clock.now += 3.0
        assert spinner() == "b"

    def test_color_fn(self) -> None:
        spinner = Spinner(frames=["*"], color_fn=lambda s: f"<{s}>", clock=FakeClock())
        assert spinner() == "<*>"

    def test_invalid_arguments(self) -> None:
        with pytest.raises(ValueError):
            Spinner(frames=[])
        with pytest.raises(ValueError):
            Spinner(interval=0)

    def test_as_task_suffix(self) -> None:
        task = Task(
            "wait",
            suffix=Spinner(frames=["|"], clock=FakeClock()),
            registry=TaskRegistry(),
        ).start()
        assert task.render().endswith(" |")
